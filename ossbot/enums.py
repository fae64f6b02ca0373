"""Enumerations for GitHub events and template validation levels."""

from enum import Enum


class GitHubEvent(str, Enum):
    """Webhook event names sent in the X-GitHub-Event header."""

    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST = "pull_request"
    PING = "ping"

    def __str__(self) -> str:
        return self.value


class IssueAction(str, Enum):
    """Values of ``action`` in an ``issues`` event."""

    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    LABELED = "labeled"
    UNLABELED = "unlabeled"
    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"
    TRANSFERRED = "transferred"


class CommentAction(str, Enum):
    """Values of ``action`` in an ``issue_comment`` event."""

    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"


class PullRequestAction(str, Enum):
    """Values of ``action`` in a ``pull_request`` event."""

    ASSIGNED = "assigned"
    UNASSIGNED = "unassigned"
    REVIEW_REQUESTED = "review_requested"
    REVIEW_REQUEST_REMOVED = "review_request_removed"
    LABELED = "labeled"
    UNLABELED = "unlabeled"
    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"


class ValidationLevel(str, Enum):
    """How strictly required template sections are enforced.

    - strict: every required section must be filled in
    - relaxed: at least one required section must be filled in
    - none: required sections are not checked
    """

    STRICT = "strict"
    RELAXED = "relaxed"
    NONE = "none"

    def __str__(self) -> str:
        return self.value

    def max_empty_sections(self, required_count: int) -> int:
        """Return how many required sections may be left empty."""
        if self == ValidationLevel.STRICT:
            return 0
        if self == ValidationLevel.RELAXED:
            return max(required_count - 1, 0)
        return required_count
