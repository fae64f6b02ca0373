"""
Staleness state machine for issues waiting on their author.

An issue's state comes from its labels:

- NORMAL: neither the needs-info nor the stale label is present
- NEEDS_INFO: the bot or a maintainer asked the author for details
- STALE: the bot marked the issue stale and will close it soon

The cron sweep calls :meth:`StalenessEvaluator.evaluate_staleness` for every
open issue; the webhook calls :meth:`StalenessEvaluator.evaluate_new_comment`
when someone comments. Both return actions and never touch GitHub.

The bot's own stale and close comments carry hidden HTML markers so the
sweep can find when an issue was marked stale by re-reading its comments.
"""

from collections.abc import Collection, Iterable
from datetime import datetime, timedelta

import structlog

from ossbot.config.repos import IssueCleanupConfig
from ossbot.models.actions import Action, AddLabelAction, CloseAction, CommentAction, RemoveLabelAction
from ossbot.models.domain import Comment, IssueLike, sort_comments_newest_first

log = structlog.get_logger(__name__)

MARKER_MARK_STALE = "<!-- ossbot: mark-stale -->"
MARKER_CLOSE_STALE = "<!-- ossbot: close-stale -->"


def get_mark_stale_comment(author: str, needs_info_days: int, stale_days: int) -> str:
    return (
        f"Hey @{author}. We need more information to resolve this issue but there hasn't been "
        f"an update in {needs_info_days} days. I'm marking the issue as stale and if there are "
        f"no new updates in the next {stale_days} days I will close it automatically.\n\n"
        "If you have more information that will help us get to the bottom of this, "
        "just add a comment!\n\n"
        f"{MARKER_MARK_STALE}"
    )


def get_close_comment(author: str) -> str:
    return (
        "Since there haven't been any recent updates here, I am going to close this issue.\n\n"
        f"@{author} if you're still experiencing this problem and want to continue the "
        "discussion just leave a comment here and we are happy to re-open this.\n\n"
        f"{MARKER_CLOSE_STALE}"
    )


def same_login(a: str, b: str) -> bool:
    """GitHub logins are case-insensitive."""
    return a.lower() == b.lower()


def is_bot_comment(comment: Comment, bot_login: str | None = None) -> bool:
    """True when the comment was written by the bot."""
    if bot_login and same_login(comment.author, bot_login):
        return True
    return MARKER_MARK_STALE in comment.body or MARKER_CLOSE_STALE in comment.body


class StalenessEvaluator:
    """Decides label transitions and closures for issues awaiting information."""

    def __init__(self, bot_login: str | None = None):
        """Initialize the evaluator.

        Args:
            bot_login: Login the bot comments as; its comments never trigger transitions
        """
        self.bot_login = bot_login

    def evaluate_staleness(
        self,
        org: str,
        repo: str,
        issue: IssueLike,
        comments: Iterable[Comment],
        collaborators: Collection[str],
        config: IssueCleanupConfig,
        now: datetime,
    ) -> list[Action]:
        """Evaluate one open issue during the cron sweep.

        Comments may be passed in any order; they are sorted newest first
        here. ``now`` must be timezone-aware.
        """
        labels = set(issue.labels)
        number = issue.number

        ignored = labels.intersection(config.ignore_labels)
        if ignored:
            log.debug("staleness_ignored", org=org, repo=repo, issue=number, labels=sorted(ignored))
            return []

        needs_info = config.label_needs_info in labels
        stale = config.label_stale in labels
        if not (needs_info or stale):
            return []

        ordered = sort_comments_newest_first(comments)
        actions: list[Action] = []

        if needs_info:
            actions.extend(self._evaluate_needs_info(org, repo, issue, ordered, collaborators, config, now))

        if stale:
            actions.extend(self._evaluate_stale(org, repo, issue, ordered, config, now))

        return actions

    def _evaluate_needs_info(
        self,
        org: str,
        repo: str,
        issue: IssueLike,
        comments: list[Comment],
        collaborators: Collection[str],
        config: IssueCleanupConfig,
        now: datetime,
    ) -> list[Action]:
        threshold = timedelta(days=config.needs_info_days)

        maintainers = {login.lower() for login in collaborators}
        last_collaborator_comment = next((c for c in comments if c.author.lower() in maintainers), None)
        last_author_comment = next((c for c in comments if same_login(c.author, issue.author)), None)

        collaborator_expired = (
            last_collaborator_comment is not None and now - last_collaborator_comment.created_at >= threshold
        )
        author_expired = last_author_comment is not None and now - last_author_comment.created_at >= threshold

        if not (collaborator_expired or author_expired):
            log.debug("needs_info_still_fresh", org=org, repo=repo, issue=issue.number)
            return []

        log.info(
            "marking_issue_stale",
            org=org,
            repo=repo,
            issue=issue.number,
            collaborator_expired=collaborator_expired,
            author_expired=author_expired,
        )
        reason = f"No update in {config.needs_info_days} days"
        return [
            RemoveLabelAction(org, repo, issue.number, config.label_needs_info, reason=reason),
            AddLabelAction(org, repo, issue.number, config.label_stale, reason=reason),
            CommentAction(
                org,
                repo,
                issue.number,
                get_mark_stale_comment(issue.author, config.needs_info_days, config.stale_days),
                reason=reason,
            ),
        ]

    def _evaluate_stale(
        self,
        org: str,
        repo: str,
        issue: IssueLike,
        comments: list[Comment],
        config: IssueCleanupConfig,
        now: datetime,
    ) -> list[Action]:
        mark_stale_comment = next((c for c in comments if MARKER_MARK_STALE in c.body), None)

        if mark_stale_comment is None:
            log.warning("stale_marker_comment_missing", org=org, repo=repo, issue=issue.number)
            return []

        if now - mark_stale_comment.created_at < timedelta(days=config.stale_days):
            return []

        log.info("closing_stale_issue", org=org, repo=repo, issue=issue.number)
        reason = f"Stale for {config.stale_days} days"
        return [
            CommentAction(org, repo, issue.number, get_close_comment(issue.author), reason=reason),
            CloseAction(org, repo, issue.number, reason=reason),
        ]

    def evaluate_new_comment(
        self,
        org: str,
        repo: str,
        issue: IssueLike,
        comment: Comment,
        config: IssueCleanupConfig,
        is_closed: bool = False,
    ) -> list[Action]:
        """Evaluate label transitions caused by a new comment."""
        if is_closed or getattr(issue, "is_closed", False):
            return []

        if is_bot_comment(comment, self.bot_login):
            return []

        labels = set(issue.labels)
        number = issue.number
        by_author = same_login(comment.author, issue.author)
        actions: list[Action] = []

        def add(label: str, reason: str) -> None:
            if label in labels:
                return
            action = AddLabelAction(org, repo, number, label, reason=reason)
            if action not in actions:
                actions.append(action)

        if config.label_stale in labels:
            actions.append(
                RemoveLabelAction(org, repo, number, config.label_stale, reason=f"Comment by {comment.author}")
            )
            if by_author:
                if config.label_needs_attention:
                    add(config.label_needs_attention, "Author responded")
            else:
                add(config.label_needs_info, f"Comment by {comment.author}")

        if config.label_needs_info in labels and by_author:
            actions.append(RemoveLabelAction(org, repo, number, config.label_needs_info, reason="Author responded"))
            if config.label_needs_attention:
                add(config.label_needs_attention, "Author responded")

        if actions:
            log.info(
                "comment_label_transition",
                org=org,
                repo=repo,
                issue=number,
                commenter=comment.author,
                actions=[str(a) for a in actions],
            )
        return actions
