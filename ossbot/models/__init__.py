"""Core data models for the bot.

Key Models:
    - Issue: GitHub issue or pull request (narrow, immutable)
    - Comment: Issue comment
    - Repository: owner/name reference
    - IssueEvent: parsed issues / issue_comment webhook payload

Actions:
    - AddLabelAction, RemoveLabelAction, CommentAction, CloseAction,
      NoOpAction, SendEmailAction

Example:
    >>> from ossbot.models import AddLabelAction, Issue
    >>> issue = Issue(number=42, title="Crash on start", body="...", author="jdoe")
    >>> AddLabelAction("org", "repo", issue.number, "needs-triage")
"""

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
from ossbot.models.domain import Comment, Issue, IssueEvent, IssueState, Repository

__all__ = [
    "Action",
    "ActionType",
    "AddLabelAction",
    "CloseAction",
    "Comment",
    "CommentAction",
    "GitHubIssueAction",
    "Issue",
    "IssueEvent",
    "IssueState",
    "NoOpAction",
    "RemoveLabelAction",
    "Repository",
    "SendEmailAction",
]
