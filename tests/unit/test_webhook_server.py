"""Tests for ossbot/webhook_server.py."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, patch

import pytest

# Skip if fastapi not available
pytest.importorskip("fastapi")

from fastapi.testclient import TestClient

from ossbot.config.settings import BotSettings
from ossbot.exceptions import ConfigurationError, UnknownActionError
from ossbot.models.actions import AddLabelAction
from ossbot.webhook_server import SETTINGS_PATH_ENV, BotRuntime, create_app, route_event, verify_signature

SECRET = "s3cret"


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def issue_payload(action="opened", body="Product: Auth", author="issue-author"):
    return {
        "action": action,
        "repository": {"name": "BotTest", "owner": {"login": "samtstern"}},
        "issue": {
            "number": 3,
            "title": "Sign in broken",
            "body": body,
            "user": {"login": author},
            "labels": [],
            "state": "open",
            "html_url": "https://github.com/samtstern/BotTest/issues/3",
        },
        "sender": {"login": author},
    }


@pytest.fixture
def runtime(mock_github, mock_email, bot_config):
    return BotRuntime.build(BotSettings(), bot_config, mock_github, mock_email)


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime), raise_server_exceptions=False)


def post(client, event, payload, headers=None):
    body = json.dumps(payload).encode()
    all_headers = {"X-GitHub-Event": event, "Content-Type": "application/json"}
    all_headers.update(headers or {})
    return client.post("/webhook/github", content=body, headers=all_headers)


class TestVerifySignature:
    """Tests for verify_signature function."""

    def test_valid_signature(self):
        """Should accept a matching sha256 signature."""
        assert verify_signature(SECRET, b"{}", sign(b"{}"))

    def test_wrong_secret(self):
        """Should reject a signature made with another secret."""
        assert not verify_signature(SECRET, b"{}", sign(b"{}", "other"))

    def test_missing_or_malformed_header(self):
        """Should reject absent and non-sha256 signatures."""
        assert not verify_signature(SECRET, b"{}", None)
        assert not verify_signature(SECRET, b"{}", "sha1=abc")


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check_returns_healthy(self, client):
        """Should return healthy status."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "ossbot-webhook"}


class TestGitHubWebhookEndpoint:
    """Tests for /webhook/github endpoint."""

    def test_missing_event_header(self, client):
        """Should return 400 when X-GitHub-Event header is missing."""
        response = client.post("/webhook/github", json={})

        assert response.status_code == 400
        assert "Missing X-GitHub-Event" in response.json()["detail"]

    def test_invalid_json(self, client):
        """Should return 400 for a body that is not JSON."""
        response = client.post("/webhook/github", content=b"not json", headers={"X-GitHub-Event": "issues"})

        assert response.status_code == 400

    def test_non_object_payload(self, client):
        response = post(client, "issues", [1, 2])

        assert response.status_code == 400

    def test_ping(self, client, mock_github):
        """Should acknowledge ping events without actions."""
        response = post(client, "ping", {"zen": "Keep it logically awesome."})

        assert response.status_code == 200
        assert response.json()["actions"] == 0
        assert mock_github.method_calls == []

    def test_new_issue_labeled(self, client, mock_github):
        """Should classify a new issue and execute the resulting actions."""
        response = post(client, "issues", issue_payload())

        assert response.status_code == 200
        assert response.json() == {"status": "success", "event_type": "issues", "actions": 1, "failed": 0}
        mock_github.add_label.assert_awaited_once_with("samtstern", "BotTest", 3, "auth")

    def test_new_issue_collapses_comments(self, client, mock_github):
        """Should post one merged comment for a free-form unlabeled issue."""
        response = post(client, "issues", issue_payload(body="it does not work"))

        assert response.status_code == 200
        mock_github.add_comment.assert_awaited_once()
        comment = mock_github.add_comment.await_args.args[3]
        assert comment.startswith("I found a few problems with this issue:")

    def test_failed_action_reported(self, client, mock_github):
        """Should still return 200 and report a failed action."""
        mock_github.add_label.side_effect = RuntimeError("boom")

        response = post(client, "issues", issue_payload())

        assert response.status_code == 200
        assert response.json()["failed"] == 1

    def test_malformed_payload(self, client):
        """Should return 400 when required payload fields are missing."""
        response = post(client, "issues", {"action": "opened"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Malformed payload"

    def test_handler_error_returns_500(self, client, runtime):
        """Should return 500 when a handler fails unexpectedly."""
        runtime.issues.handle_issue_event = AsyncMock(side_effect=RuntimeError("kaboom"))

        response = post(client, "issues", issue_payload())

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"

    def test_bot_error_returns_422(self, client, runtime):
        runtime.issues.handle_issue_event = AsyncMock(side_effect=ConfigurationError("bad config"))

        response = post(client, "issues", issue_payload())

        assert response.status_code == 422

    def test_unknown_action_returns_500(self, client, runtime):
        runtime.dispatcher.dispatch_all = AsyncMock(side_effect=UnknownActionError("x"))

        response = post(client, "issues", issue_payload())

        assert response.status_code == 500


class TestSignatureCheck:
    """Tests for webhook secret enforcement."""

    @pytest.fixture
    def signed_client(self, mock_github, mock_email, bot_config):
        settings = BotSettings(webhook_secret=SECRET)
        runtime = BotRuntime.build(settings, bot_config, mock_github, mock_email)
        return TestClient(create_app(runtime), raise_server_exceptions=False)

    def test_missing_signature_rejected(self, signed_client):
        """Should return 401 when a secret is configured and no signature is sent."""
        response = post(signed_client, "ping", {})

        assert response.status_code == 401

    def test_valid_signature_accepted(self, signed_client):
        body = json.dumps({"zen": "hi"}).encode()

        response = signed_client.post(
            "/webhook/github",
            content=body,
            headers={"X-GitHub-Event": "ping", "X-Hub-Signature-256": sign(body)},
        )

        assert response.status_code == 200


class TestRouteEvent:
    """Tests for route_event."""

    @pytest.mark.asyncio
    async def test_issues_event(self, runtime):
        actions = await route_event(runtime, "issues", issue_payload())

        assert actions == [
            AddLabelAction("samtstern", "BotTest", 3, "auth", reason=r"Matched regex: Product:\s*Auth")
        ]

    @pytest.mark.asyncio
    async def test_pull_request_event(self, runtime):
        payload = {
            "action": "opened",
            "repository": {"name": "BotTest", "owner": {"login": "samtstern"}},
            "pull_request": {"number": 4, "title": "Fix", "body": "Fixes #3", "user": {"login": "dev"}},
        }

        assert await route_event(runtime, "pull_request", payload) == []

    @pytest.mark.asyncio
    async def test_unknown_event(self, runtime):
        assert await route_event(runtime, "star", {"action": "created"}) == []


class TestStartup:
    """Tests for building the runtime on application startup."""

    def test_given_settings_used(self, runtime, monkeypatch):
        """Should build the runtime from the settings passed to create_app."""
        monkeypatch.delenv(SETTINGS_PATH_ENV, raising=False)
        settings = BotSettings(repo_config_path="from_cli.yaml")
        from_settings = AsyncMock(return_value=runtime)

        with patch("ossbot.webhook_server.BotRuntime.from_settings", new=from_settings):
            with TestClient(create_app(settings=settings)) as client:
                assert client.get("/health").status_code == 200

        from_settings.assert_awaited_once_with(settings)

    def test_settings_file_from_environment(self, runtime, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("repo_config_path: from_file.yaml\n")
        monkeypatch.setenv(SETTINGS_PATH_ENV, str(path))
        from_settings = AsyncMock(return_value=runtime)

        with patch("ossbot.webhook_server.BotRuntime.from_settings", new=from_settings):
            with TestClient(create_app()):
                pass

        assert from_settings.await_args.args[0].repo_config_path == "from_file.yaml"
