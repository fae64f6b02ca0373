"""
Action model: side-effect-free intents produced by the engine.

The issue classifier, the staleness state machine and the pull request
handler never talk to GitHub or Mailgun directly. They return a list of
actions; the dispatcher maps each action type to exactly one collaborator call
and writes an audit log entry for it.

Actions are frozen dataclasses and compare by value, so tests can assert on
whole action lists.

Example:
    >>> AddLabelAction("firebase", "ios-sdk", 12, "auth", reason="Matched regex: auth")
    AddLabelAction(org='firebase', repo='ios-sdk', issue_number=12, label='auth', ...)
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, ClassVar


class ActionType(str, Enum):
    """Closed set of action kinds the dispatcher knows how to execute."""

    GITHUB_COMMENT = "GITHUB_COMMENT"
    GITHUB_ADD_LABEL = "GITHUB_LABEL"
    GITHUB_REMOVE_LABEL = "GITHUB_REMOVE_LABEL"
    GITHUB_CLOSE = "GITHUB_CLOSE"
    GITHUB_NO_OP = "GITHUB_NO_OP"
    EMAIL_SEND = "EMAIL_SEND"

    def __str__(self) -> str:
        return self.value


GITHUB_ISSUE_ACTIONS = frozenset(
    {
        ActionType.GITHUB_COMMENT,
        ActionType.GITHUB_ADD_LABEL,
        ActionType.GITHUB_REMOVE_LABEL,
        ActionType.GITHUB_CLOSE,
        ActionType.GITHUB_NO_OP,
    }
)


@dataclass(frozen=True)
class Action:
    """Base class for all actions."""

    type: ClassVar[ActionType]

    def details(self) -> dict[str, Any]:
        """Return a flat dict suitable for structured logging."""
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass(frozen=True)
class GitHubIssueAction(Action):
    """An action that targets a single issue or pull request."""

    org: str
    repo: str
    issue_number: int

    @property
    def target(self) -> str:
        return f"{self.org}/{self.repo}#{self.issue_number}"


@dataclass(frozen=True)
class CommentAction(GitHubIssueAction):
    """Post a comment.

    ``collapse`` marks comments that may be merged with other collapsible
    comments for the same webhook into a single bulleted comment.
    """

    type: ClassVar[ActionType] = ActionType.GITHUB_COMMENT

    message: str
    collapse: bool = False
    reason: str = ""

    def __str__(self) -> str:
        return f"Comment on {self.target}: {self.message[:60]!r}"


@dataclass(frozen=True)
class AddLabelAction(GitHubIssueAction):
    type: ClassVar[ActionType] = ActionType.GITHUB_ADD_LABEL

    label: str
    reason: str = ""

    def __str__(self) -> str:
        return f"Add label {self.label!r} to {self.target}"


@dataclass(frozen=True)
class RemoveLabelAction(GitHubIssueAction):
    type: ClassVar[ActionType] = ActionType.GITHUB_REMOVE_LABEL

    label: str
    reason: str = ""

    def __str__(self) -> str:
        return f"Remove label {self.label!r} from {self.target}"


@dataclass(frozen=True)
class CloseAction(GitHubIssueAction):
    type: ClassVar[ActionType] = ActionType.GITHUB_CLOSE

    reason: str = ""

    def __str__(self) -> str:
        return f"Close {self.target}"


@dataclass(frozen=True)
class NoOpAction(GitHubIssueAction):
    """Records that the bot deliberately did nothing."""

    type: ClassVar[ActionType] = ActionType.GITHUB_NO_OP

    reason: str = ""

    def __str__(self) -> str:
        return f"No action on {self.target}: {self.reason}"


@dataclass(frozen=True)
class SendEmailAction(Action):
    """Send a styled notification email."""

    type: ClassVar[ActionType] = ActionType.EMAIL_SEND

    recipient: str
    subject: str
    header: str
    body: str
    link: str
    action_label: str = "Open Issue"
    reason: str = ""

    def __str__(self) -> str:
        return f"Email {self.recipient}: {self.subject}"
