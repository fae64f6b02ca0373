"""Pull request webhook handling."""

import re

import structlog

from ossbot.config.repos import BotConfig
from ossbot.enums import PullRequestAction
from ossbot.models.actions import Action
from ossbot.models.domain import Issue, Repository

log = structlog.get_logger(__name__)

SKIP_TAG = "[triage-skip]"

_ISSUE_LINK_RE = re.compile(r"(/issues/|#)[0-9]+")


def has_skip_tag(pr: Issue) -> bool:
    """True when the title opts the PR out of triage."""
    return SKIP_TAG in pr.title


def has_issue_link(pr: Issue) -> bool:
    """True when the body references an issue as ``#123`` or ``.../issues/123``."""
    return bool(_ISSUE_LINK_RE.search(pr.body or ""))


class PullRequestHandler:
    """Handles ``pull_request`` webhook events.

    Pull requests are not labeled or validated; the handler only records
    what it saw so the audit log shows every event the bot received.
    """

    def __init__(self, config: BotConfig):
        self.config = config

    async def handle_pull_request_event(self, action: str, repo: Repository, pr: Issue) -> list[Action]:
        if action == PullRequestAction.OPENED:
            return await self.on_new_pull_request(repo, pr)

        log.debug("unsupported_pull_request_action", action=action, repo=repo.full_name, pr=pr.number)
        return []

    async def on_new_pull_request(self, repo: Repository, pr: Issue) -> list[Action]:
        if has_skip_tag(pr):
            log.info("pull_request_triage_skipped", repo=repo.full_name, pr=pr.number)
            return []

        features = self.config.get_repo_features(repo.owner, repo.name)
        log.info(
            "pull_request_opened",
            repo=repo.full_name,
            pr=pr.number,
            has_issue_link=has_issue_link(pr),
            issue_labels=features.issue_labels,
        )
        return []
