"""
Periodic cleanup sweep over all configured repositories.

For each repo with ``cleanup.issue`` configured, every open issue is run
through the staleness state machine. For each repo with ``cleanup.pr``
configured, open pull requests that have not been updated for that many
days are closed with a comment.

Issues are evaluated concurrently, bounded by a semaphore, with a short
pause after each one to stay under GitHub's secondary rate limits. A failure
on one issue or repo is recorded and the sweep moves on.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from ossbot.config.repos import BotConfig, IssueCleanupConfig
from ossbot.config.settings import SweepSettings
from ossbot.engine.dispatcher import ActionDispatcher, DispatchResult
from ossbot.engine.staleness import StalenessEvaluator
from ossbot.models.actions import Action, CloseAction, CommentAction
from ossbot.models.domain import Issue
from ossbot.providers.base import GitHubClient

log = structlog.get_logger(__name__)

STALE_PR_MSG = (
    "It's been a while since anyone updated this pull request so I am going to close it. "
    "Please @mention a repo owner if you think this is a mistake!"
)


@dataclass
class SweepResult:
    """Actions collected by a sweep plus everything that went wrong."""

    actions: list[Action] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    issues_checked: int = 0

    def merge(self, other: "SweepResult") -> None:
        self.actions.extend(other.actions)
        self.failures.update(other.failures)
        self.issues_checked += other.issues_checked


class CronHandler:
    """Drives the staleness and old pull request sweeps."""

    def __init__(
        self,
        github: GitHubClient,
        config: BotConfig,
        settings: SweepSettings | None = None,
        bot_login: str | None = None,
    ):
        """Initialize the sweep.

        Args:
            github: GitHub client for reads
            config: Repo configuration
            settings: Concurrency and pacing settings
            bot_login: Login the bot posts as
        """
        self.github = github
        self.config = config
        self.settings = settings or SweepSettings()
        self.evaluator = StalenessEvaluator(bot_login=bot_login)

    async def handle_stale_issue(
        self,
        org: str,
        name: str,
        issue: Issue,
        collaborators: set[str],
        config: IssueCleanupConfig,
        now: datetime,
    ) -> list[Action]:
        """Fetch one issue's comments and evaluate its staleness."""
        labels = set(issue.labels)
        if not labels.intersection({config.label_needs_info, config.label_stale}):
            return []

        comments = await self.github.get_comments(org, name, issue.number)
        return self.evaluator.evaluate_staleness(org, name, issue, comments, collaborators, config, now)

    async def handle_stale_issues(
        self,
        org: str,
        name: str,
        config: IssueCleanupConfig,
        now: datetime | None = None,
    ) -> SweepResult:
        """Evaluate every open issue in a repo."""
        now = now or datetime.now(UTC)
        result = SweepResult()
        semaphore = asyncio.Semaphore(self.settings.max_concurrency)

        collaborators = await self.github.get_collaborators(org, name)
        issues = await self.github.get_open_issues(org, name)
        log.info("stale_issue_sweep_started", org=org, repo=name, issues=len(issues))

        async def _check(issue: Issue) -> list[Action]:
            async with semaphore:
                try:
                    return await self.handle_stale_issue(org, name, issue, collaborators, config, now)
                finally:
                    if self.settings.request_delay_seconds:
                        await asyncio.sleep(self.settings.request_delay_seconds)

        outcomes = await asyncio.gather(*(_check(issue) for issue in issues), return_exceptions=True)

        for issue, outcome in zip(issues, outcomes, strict=True):
            result.issues_checked += 1
            if isinstance(outcome, Exception):
                key = f"{org}/{name}#{issue.number}"
                log.warning("stale_issue_check_failed", issue=key, error=str(outcome))
                result.failures[key] = str(outcome)
            else:
                result.actions.extend(outcome)

        return result

    async def handle_cleanup(self, org: str, name: str, days: int) -> list[Action]:
        """Close open pull requests not updated for ``days`` days."""
        old_pull_requests = await self.github.get_old_pull_requests(org, name, days)

        actions: list[Action] = []
        for pr in old_pull_requests:
            log.info("expired_pull_request", org=org, repo=name, pr=pr.number)
            reason = f"No update in {days} days"
            actions.append(CommentAction(org, name, pr.number, STALE_PR_MSG, reason=reason))
            actions.append(CloseAction(org, name, pr.number, reason=reason))
        return actions

    async def sweep(self, now: datetime | None = None) -> SweepResult:
        """Collect cleanup actions for every configured repo."""
        now = now or datetime.now(UTC)
        result = SweepResult()

        for ref in self.config.get_all_repos():
            cleanup = self.config.get_repo_cleanup_config(ref.org, ref.name)
            if not cleanup:
                continue

            repo_key = f"{ref.org}/{ref.name}"

            if cleanup.pr is not None:
                try:
                    result.actions.extend(await self.handle_cleanup(ref.org, ref.name, cleanup.pr))
                except Exception as e:
                    log.warning("pull_request_cleanup_failed", repo=repo_key, error=str(e))
                    result.failures[f"{repo_key}:pulls"] = str(e)

            if cleanup.issue is not None:
                try:
                    result.merge(await self.handle_stale_issues(ref.org, ref.name, cleanup.issue, now))
                except Exception as e:
                    log.warning("stale_issue_sweep_failed", repo=repo_key, error=str(e))
                    result.failures[f"{repo_key}:issues"] = str(e)

        log.info(
            "cleanup_sweep_finished",
            actions=len(result.actions),
            issues_checked=result.issues_checked,
            failures=len(result.failures),
        )
        return result

    async def run(self, dispatcher: ActionDispatcher, now: datetime | None = None) -> tuple[SweepResult, DispatchResult]:
        """Sweep all repos and execute the collected actions one by one."""
        result = await self.sweep(now)
        dispatched = await dispatcher.dispatch_each(result.actions)
        return result, dispatched
