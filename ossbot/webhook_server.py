"""Webhook server for real-time GitHub event processing."""

import hashlib
import hmac
import json
import os
from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request

from ossbot.config.repos import BotConfig
from ossbot.config.settings import BotSettings
from ossbot.engine.dispatcher import ActionDispatcher
from ossbot.engine.issues import IssueHandler
from ossbot.engine.pull_requests import PullRequestHandler
from ossbot.enums import GitHubEvent
from ossbot.exceptions import ConfigurationError, OssBotError, UnknownActionError
from ossbot.models.actions import Action
from ossbot.models.domain import Issue, IssueEvent, Repository
from ossbot.providers.base import EmailClient, GitHubClient
from ossbot.providers.github_rest import GitHubRestClient
from ossbot.providers.mailgun import MailgunEmailClient

log = structlog.get_logger(__name__)

SETTINGS_PATH_ENV = "OSSBOT_SETTINGS_FILE"


@dataclass
class BotRuntime:
    """Everything a request handler needs, built once at startup."""

    settings: BotSettings
    config: BotConfig
    github: GitHubClient
    email: EmailClient | None
    issues: IssueHandler
    pull_requests: PullRequestHandler
    dispatcher: ActionDispatcher

    @classmethod
    def build(
        cls,
        settings: BotSettings,
        config: BotConfig,
        github: GitHubClient,
        email: EmailClient | None = None,
    ) -> "BotRuntime":
        return cls(
            settings=settings,
            config=config,
            github=github,
            email=email,
            issues=IssueHandler(github, config, bot_login=settings.github.bot_login),
            pull_requests=PullRequestHandler(config),
            dispatcher=ActionDispatcher(github, email),
        )

    @classmethod
    async def from_settings(cls, settings: BotSettings) -> "BotRuntime":
        """Load the repo config and connect the GitHub and Mailgun clients."""
        config = BotConfig.from_file(settings.repo_config_path)

        github = GitHubRestClient(
            token=settings.github.token.get_secret_value(),
            base_url=settings.github.base_url,
        )
        await github.connect()

        email = None
        if settings.mailgun.enabled:
            email = MailgunEmailClient(
                api_key=settings.mailgun.api_key.get_secret_value(),
                domain=settings.mailgun.domain,
                sender=settings.mailgun.sender,
                base_url=settings.mailgun.base_url,
                timeout=settings.mailgun.timeout,
            )
            await email.connect()
        else:
            log.info("email_notifications_disabled")

        return cls.build(settings, config, github, email)


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Verify a GitHub ``X-Hub-Signature-256`` header.

    Args:
        secret: Webhook secret shared with GitHub
        body: Raw request body
        signature: Header value, ``sha256=<hexdigest>``

    Returns:
        True if signature matches, False otherwise.
    """
    if not signature or not signature.startswith("sha256="):
        return False

    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature.removeprefix("sha256="), expected)


async def route_event(runtime: BotRuntime, event_type: str, payload: dict[str, Any]) -> list[Action]:
    """Turn a webhook payload into actions.

    Raises:
        KeyError, TypeError, ValueError: If the payload lacks required fields
    """
    if event_type == GitHubEvent.ISSUES:
        return await runtime.issues.handle_issue_event(IssueEvent.from_payload(payload))

    if event_type == GitHubEvent.ISSUE_COMMENT:
        return await runtime.issues.handle_issue_comment_event(IssueEvent.from_payload(payload))

    if event_type == GitHubEvent.PULL_REQUEST:
        repo = Repository.from_payload(payload["repository"])
        pr = Issue.from_payload(payload["pull_request"])
        return await runtime.pull_requests.handle_pull_request_event(payload.get("action", ""), repo, pr)

    if event_type != GitHubEvent.PING:
        log.warning("unhandled_event_type", event_type=event_type)
    return []


def load_settings() -> BotSettings:
    """Settings from the file named by ``OSSBOT_SETTINGS_FILE``, else from the environment."""
    settings_path = os.environ.get(SETTINGS_PATH_ENV)
    return BotSettings.from_yaml(settings_path) if settings_path else BotSettings()


def create_app(runtime: BotRuntime | None = None, settings: BotSettings | None = None) -> FastAPI:
    """Create the webhook application.

    When no runtime is passed, one is built on startup from ``settings``,
    or from :func:`load_settings` when those are not given either.
    """
    app = FastAPI(title="OSS Bot Webhook Server")
    app.state.runtime = runtime

    @app.on_event("startup")
    async def startup() -> None:
        """Initialize on startup."""
        if app.state.runtime is not None:
            return
        try:
            app.state.runtime = await BotRuntime.from_settings(settings or load_settings())
            log.info("webhook_server_started", repo_config=app.state.runtime.settings.repo_config_path)
        except ConfigurationError as e:
            log.error("webhook_startup_failed", error=e.message, exc_info=True)
            raise

    @app.post("/webhook/github")
    async def github_webhook(request: Request) -> dict[str, Any]:
        """Handle GitHub webhook events."""
        runtime: BotRuntime = request.app.state.runtime
        event_type = request.headers.get("X-GitHub-Event")
        delivery = request.headers.get("X-GitHub-Delivery", "")

        if not event_type:
            raise HTTPException(status_code=400, detail="Missing X-GitHub-Event header")

        body = await request.body()

        secret = runtime.settings.webhook_secret
        if secret and secret.get_secret_value():
            if not verify_signature(secret.get_secret_value(), body, request.headers.get("X-Hub-Signature-256")):
                log.warning("webhook_signature_invalid", event_type=event_type, delivery=delivery)
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from e

        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Payload must be a JSON object")

        log.info("webhook_received", event_type=event_type, action=payload.get("action"), delivery=delivery)

        try:
            actions = await route_event(runtime, event_type, payload)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("webhook_payload_malformed", event_type=event_type, error=str(e))
            raise HTTPException(status_code=400, detail="Malformed payload") from e
        except OssBotError as e:
            log.error("webhook_processing_failed", error=e.message, exc_info=True)
            raise HTTPException(status_code=422, detail=e.message) from e
        except Exception as e:
            log.error("webhook_processing_unexpected", error=str(e), exc_info=True)
            raise HTTPException(status_code=500, detail="Internal server error") from e

        try:
            result = await runtime.dispatcher.dispatch_all(actions)
        except UnknownActionError as e:
            log.error("webhook_dispatch_failed", error=e.message, exc_info=True)
            raise HTTPException(status_code=500, detail="Internal server error") from e

        return {
            "status": "success",
            "event_type": event_type,
            "actions": len(result.succeeded),
            "failed": len(result.failed),
        }

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "ossbot-webhook"}

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)  # nosec B104 # Development server binding
