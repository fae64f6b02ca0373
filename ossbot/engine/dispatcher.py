"""
Action dispatcher: executes actions against GitHub and the email service.

Each action type maps to exactly one collaborator call. Webhook handlers use
:meth:`ActionDispatcher.dispatch_all`, which merges collapsible comments
and runs everything concurrently. The cron sweep uses
:meth:`ActionDispatcher.dispatch_each`, which runs actions one at a time so
a single failing action never stops the sweep.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from ossbot.exceptions import UnknownActionError
from ossbot.models.actions import (
    Action,
    ActionType,
    AddLabelAction,
    CloseAction,
    CommentAction,
    GitHubIssueAction,
    NoOpAction,
    RemoveLabelAction,
    SendEmailAction,
)
from ossbot.providers.base import EmailClient, GitHubClient

log = structlog.get_logger(__name__)
audit_log = structlog.get_logger("ossbot.audit")

COLLAPSED_COMMENT_HEADER = "I found a few problems with this issue:"


@dataclass
class DispatchResult:
    """Outcome of dispatching a batch of actions."""

    succeeded: list[Action] = field(default_factory=list)
    failed: list[tuple[Action, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def collapse_comments(actions: Sequence[Action]) -> list[Action]:
    """Merge collapsible comments on the same issue into one bulleted comment.

    A single collapsible comment is kept as is. Non-comment actions and
    comments without ``collapse`` keep their relative order; merged comments
    take the position of the first comment they replace.
    """
    groups: dict[str, list[CommentAction]] = {}
    for action in actions:
        if isinstance(action, CommentAction) and action.collapse:
            groups.setdefault(action.target, []).append(action)

    result: list[Action] = []
    for action in actions:
        if not (isinstance(action, CommentAction) and action.collapse):
            result.append(action)
            continue

        group = groups[action.target]
        if action is not group[0]:
            continue

        if len(group) == 1:
            result.append(action)
            continue

        message = COLLAPSED_COMMENT_HEADER
        reason = ""
        for comment in group:
            message += f"\n  * {comment.message}"
            if comment.reason:
                reason += f"{comment.reason}. "

        result.append(
            CommentAction(
                action.org,
                action.repo,
                action.issue_number,
                message,
                collapse=False,
                reason=reason.strip(),
            )
        )

    return result


class ActionDispatcher:
    """Executes actions produced by the handlers."""

    def __init__(self, github: GitHubClient, email: EmailClient | None = None):
        """Initialize the dispatcher.

        Args:
            github: GitHub client for issue actions
            email: Email client; None disables email actions
        """
        self.github = github
        self.email = email

    async def execute(self, action: Action) -> None:
        """Execute one action.

        Raises:
            UnknownActionError: If the action type has no handler
        """
        action_type = getattr(action, "type", None)

        if action_type == ActionType.GITHUB_ADD_LABEL and isinstance(action, AddLabelAction):
            await self.github.add_label(action.org, action.repo, action.issue_number, action.label)
        elif action_type == ActionType.GITHUB_REMOVE_LABEL and isinstance(action, RemoveLabelAction):
            await self.github.remove_label(action.org, action.repo, action.issue_number, action.label)
        elif action_type == ActionType.GITHUB_COMMENT and isinstance(action, CommentAction):
            await self.github.add_comment(action.org, action.repo, action.issue_number, action.message)
        elif action_type == ActionType.GITHUB_CLOSE and isinstance(action, CloseAction):
            await self.github.close_issue(action.org, action.repo, action.issue_number)
        elif action_type == ActionType.GITHUB_NO_OP and isinstance(action, NoOpAction):
            log.debug("no_op_action", target=action.target, reason=action.reason)
        elif action_type == ActionType.EMAIL_SEND and isinstance(action, SendEmailAction):
            if self.email is None:
                log.info("email_disabled", recipient=action.recipient, subject=action.subject)
            else:
                await self.email.send_styled_email(
                    action.recipient,
                    action.subject,
                    action.header,
                    action.body,
                    action.link,
                    action.action_label,
                )
        else:
            raise UnknownActionError(action)

        self._audit(action)

    async def dispatch_all(self, actions: Sequence[Action]) -> DispatchResult:
        """Execute webhook actions concurrently after collapsing comments.

        Individual failures are logged and collected. An unknown action type
        is re-raised.
        """
        to_run = collapse_comments(actions)
        outcomes = await asyncio.gather(*(self.execute(a) for a in to_run), return_exceptions=True)

        result = DispatchResult()
        for action, outcome in zip(to_run, outcomes, strict=True):
            if isinstance(outcome, UnknownActionError):
                raise outcome
            if isinstance(outcome, Exception):
                log.error("action_failed", action=str(action), error=str(outcome))
                result.failed.append((action, str(outcome)))
            else:
                result.succeeded.append(action)

        log.info("actions_dispatched", succeeded=len(result.succeeded), failed=len(result.failed))
        return result

    async def dispatch_each(self, actions: Sequence[Action]) -> DispatchResult:
        """Execute cron actions one at a time, continuing past failures."""
        result = DispatchResult()
        for action in actions:
            try:
                await self.execute(action)
            except UnknownActionError:
                raise
            except Exception as e:
                log.warning("action_failed", action=str(action), error=str(e))
                result.failed.append((action, str(e)))
            else:
                result.succeeded.append(action)

        return result

    def _audit(self, action: Action) -> None:
        if not isinstance(action, GitHubIssueAction):
            return
        try:
            audit_log.info("action_audit", target=action.target, **action.details())
        except Exception as e:
            log.warning("action_audit_failed", action=str(action), error=str(e))
