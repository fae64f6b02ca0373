"""
Domain models for the bot.

These are narrow, immutable records built either from raw webhook payloads or
from PyGithub objects. The classifier and the staleness state machine only
need the handful of fields kept here; everything else GitHub sends is dropped
at the edge.

Example:
    Building an issue from an ``issues`` webhook payload::

        issue = Issue.from_payload(payload["issue"])
        repo = Repository.from_payload(payload["repository"])
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol


class IssueState(str, Enum):
    """Enumeration of possible issue states."""

    OPEN = "open"
    """Issue is active and awaiting resolution."""

    CLOSED = "closed"
    """Issue has been resolved or dismissed."""


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse a GitHub timestamp into an aware UTC datetime.

    Accepts ISO strings with a trailing ``Z`` as sent in webhook payloads and
    naive datetimes as returned by older PyGithub releases.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _label_names(labels: Iterable[Any]) -> tuple[str, ...]:
    return tuple(label["name"] if isinstance(label, dict) else str(label) for label in labels or ())


class IssueLike(Protocol):
    """The capability the classifier and state machine need from an issue or PR."""

    number: int
    title: str
    body: str
    labels: tuple[str, ...]
    author: str


@dataclass(frozen=True)
class Repository:
    """A repository reference (owner login and repo name)."""

    owner: str
    """Login of the owning user or organization."""

    name: str
    """Repository name without the owner."""

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Repository":
        return cls(owner=data["owner"]["login"], name=data["name"])


@dataclass(frozen=True)
class Issue:
    """Represents a GitHub issue or pull request.

    GitHub treats pull requests as issues for labels and comments, so the
    same record is used for both; ``is_pull_request`` tells them apart.
    """

    number: int
    """Human-readable issue number (e.g., #42)."""

    title: str
    """Issue title, a single line."""

    body: str
    """Full issue description in Markdown. Empty string when GitHub sends null."""

    author: str
    """Login of the user who opened the issue."""

    labels: tuple[str, ...] = ()
    """Label names currently on the issue, in the order GitHub returns them."""

    state: IssueState = IssueState.OPEN
    """Current state of the issue."""

    url: str = ""
    """Web URL of the issue."""

    created_at: datetime | None = None
    """Timestamp when the issue was opened."""

    updated_at: datetime | None = None
    """Timestamp of the most recent update."""

    assignee: str | None = None
    """Login of the assignee, if any."""

    is_pull_request: bool = False
    """True when this record describes a pull request."""

    def has_label(self, label: str) -> bool:
        return label in self.labels

    @property
    def is_closed(self) -> bool:
        return self.state == IssueState.CLOSED

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Issue":
        """Build an issue from the ``issue`` or ``pull_request`` object of a webhook."""
        state = data.get("state") or "open"
        assignee = data.get("assignee") or {}
        return cls(
            number=data["number"],
            title=data.get("title") or "",
            body=data.get("body") or "",
            author=(data.get("user") or {}).get("login", "unknown"),
            labels=_label_names(data.get("labels", [])),
            state=IssueState(state) if state in ("open", "closed") else IssueState.OPEN,
            url=data.get("html_url", ""),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            assignee=assignee.get("login"),
            is_pull_request="pull_request" in data or "head" in data,
        )


@dataclass(frozen=True)
class Comment:
    """An issue comment as consumed by the staleness state machine."""

    id: int
    """Comment id; used to break ties between comments with equal timestamps."""

    author: str
    """Login of the comment author."""

    body: str
    """Comment content in Markdown."""

    created_at: datetime
    """Timestamp when the comment was posted (aware, UTC)."""

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            id=data.get("id", 0),
            author=(data.get("user") or {}).get("login", "unknown"),
            body=data.get("body") or "",
            created_at=parse_datetime(data["created_at"]),
        )


def sort_comments_newest_first(comments: Iterable[Comment]) -> list[Comment]:
    """Sort comments newest first.

    GitHub does not guarantee comment order. Comments sharing a timestamp are
    ordered by id so the result never depends on input order.
    """
    return sorted(comments, key=lambda c: (c.created_at, c.id), reverse=True)


@dataclass(frozen=True)
class IssueEvent:
    """The parts of an ``issues`` / ``issue_comment`` webhook the handlers use."""

    action: str
    repository: Repository
    issue: Issue
    sender: str = ""
    label: str | None = None
    comment: Comment | None = None
    transferred_from: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "IssueEvent":
        """Parse an ``issues`` or ``issue_comment`` payload.

        ``changes.old_issue`` is present when the issue was transferred from
        another repository.
        """
        changes = payload.get("changes") or {}
        old_issue = changes.get("old_issue")
        comment = payload.get("comment")
        return cls(
            action=payload.get("action", ""),
            repository=Repository.from_payload(payload["repository"]),
            issue=Issue.from_payload(payload["issue"]),
            sender=(payload.get("sender") or {}).get("login", ""),
            label=(payload.get("label") or {}).get("name"),
            comment=Comment.from_payload(comment) if comment else None,
            transferred_from=(old_issue or {}).get("html_url", "unknown") if old_issue else None,
        )
