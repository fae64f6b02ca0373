"""
Issue webhook handling and new-issue classification.

New issues are labeled from the repo config, triaged, and checked against
the repo's issue template. Later events (assignment, status changes,
labels, comments) notify the owning team by email. Every handler returns a
list of actions; nothing here writes to GitHub.
"""

import re
from dataclasses import dataclass

import structlog

from ossbot.config.repos import BotConfig
from ossbot.engine.staleness import StalenessEvaluator
from ossbot.engine.template import TemplateChecker, TemplateCheckKind, TemplateCheckResult
from ossbot.enums import CommentAction as CommentEventAction
from ossbot.enums import IssueAction, ValidationLevel
from ossbot.exceptions import GitHubOperationError
from ossbot.models.actions import Action, AddLabelAction, CommentAction, NoOpAction, SendEmailAction
from ossbot.models.domain import Comment, Issue, IssueEvent, IssueState, Repository
from ossbot.providers.base import GitHubClient

log = structlog.get_logger(__name__)

MSG_FOLLOW_TEMPLATE = (
    "This issue does not seem to follow the issue template. Make sure you provide all the required information."
)

MSG_MISSING_INFO = (
    "This issue does not have all the information required by the template.  "
    "Looks like you forgot to fill out some sections.  "
    "Please update the issue with more information."
)

MSG_NEEDS_TRIAGE = "I couldn't figure out how to label this issue, so I've labeled it for a human to triage. Hang tight."

LABEL_NEEDS_TRIAGE = "needs-triage"
LABEL_FR = "feature-request"

FR_TITLE_PREFIX = "FR"

TEMPLATE_MESSAGES = {
    TemplateCheckKind.MISSING_SECTIONS: MSG_FOLLOW_TEMPLATE,
    TemplateCheckKind.EMPTY_REQUIRED_SECTIONS: MSG_MISSING_INFO,
}

_TEMPLATE_PATH_RE = re.compile(r"template_path=(.*)")
_VALIDATE_TEMPLATE_RE = re.compile(r"validate_template=(.*)")


@dataclass(frozen=True)
class TemplateOptions:
    """Which template an issue is checked against, and whether it is checked at all."""

    path: str
    validate: bool = True


def is_feature_request(issue: Issue) -> bool:
    return bool(issue.title) and issue.title.startswith(FR_TITLE_PREFIX)


def get_issue_email_subject(title: str, org: str, name: str, label: str) -> str:
    """Subject suitable for mail filters, e.g. ``[firebase/ios-sdk][auth] Crash on start``."""
    return f"[{org}/{name}][{label}] {title}"


class IssueHandler:
    """Handles ``issues`` and ``issue_comment`` webhook events."""

    def __init__(self, github: GitHubClient, config: BotConfig, bot_login: str | None = None):
        """Initialize the handler.

        Args:
            github: GitHubClient used for template and collaborator lookups
            config: Repo configuration
            bot_login: Login the bot posts as
        """
        self.github = github
        self.config = config
        self.staleness = StalenessEvaluator(bot_login=bot_login)

    async def handle_issue_event(self, event: IssueEvent) -> list[Action]:
        """Route an ``issues`` event to the matching handler."""
        repo = event.repository
        issue = event.issue

        if event.action == IssueAction.OPENED:
            return await self.on_new_issue(repo, issue, transferred_from=event.transferred_from)
        if event.action == IssueAction.ASSIGNED:
            return self.on_issue_assigned(repo, issue)
        if event.action == IssueAction.CLOSED:
            return self.on_issue_status_changed(repo, issue, IssueState.CLOSED)
        if event.action == IssueAction.REOPENED:
            return self.on_issue_status_changed(repo, issue, IssueState.OPEN)
        if event.action == IssueAction.LABELED and event.label:
            return self.on_issue_labeled(repo, issue, event.label)

        log.debug("unsupported_issue_action", action=event.action, repo=repo.full_name, issue=issue.number)
        return []

    async def handle_issue_comment_event(self, event: IssueEvent) -> list[Action]:
        """Route an ``issue_comment`` event to the matching handler."""
        if event.action == CommentEventAction.CREATED and event.comment is not None:
            return self.on_comment_created(event.repository, event.issue, event.comment)

        log.debug(
            "unsupported_comment_action",
            action=event.action,
            repo=event.repository.full_name,
            issue=event.issue.number,
        )
        return []

    async def on_new_issue(
        self,
        repo: Repository,
        issue: Issue,
        transferred_from: str | None = None,
    ) -> list[Action]:
        """Classify a newly opened issue.

        Order of precedence: transferred issues are left alone, feature
        requests skip matching and validation, collaborator issues get a
        single no-op, everything else is labeled and checked against the
        template.
        """
        org, name, number = repo.owner, repo.name, issue.number

        if transferred_from:
            log.info("issue_transferred_skipped", org=org, repo=name, issue=number, source=transferred_from)
            return []

        actions: list[Action] = []
        is_fr = is_feature_request(issue)
        matched_label = False

        if is_fr:
            log.info("feature_request_detected", org=org, repo=name, issue=number)
            actions.append(AddLabelAction(org, name, number, LABEL_FR, reason="Title starts with FR"))
        else:
            response = self.config.get_relevant_label(org, name, issue)
            if response.found:
                matched_label = True
                if response.matched_regex:
                    reason = f"Matched regex: {response.matched_regex}"
                else:
                    reason = f"Issue already has label {response.label}"
                actions.append(AddLabelAction(org, name, number, response.label, reason=reason))
            elif response.error:
                log.info("label_matching_unavailable", org=org, repo=name, issue=number, error=response.error)
            else:
                log.info("issue_needs_triage", org=org, repo=name, issue=number)
                actions.append(AddLabelAction(org, name, number, LABEL_NEEDS_TRIAGE, reason="No label matched"))
                actions.append(CommentAction(org, name, number, MSG_NEEDS_TRIAGE, collapse=True))

        try:
            collaborators = await self.github.get_collaborators(org, name)
        except GitHubOperationError as e:
            log.warning("collaborator_lookup_failed", org=org, repo=name, issue=number, error=str(e))
            return actions

        if issue.author.lower() in {login.lower() for login in collaborators}:
            log.info("issue_by_collaborator", org=org, repo=name, issue=number, author=issue.author)
            return [NoOpAction(org, name, number, reason=f"Issue filed by collaborator {issue.author}")]

        should_validate = not (is_fr or matched_label)
        if not should_validate:
            log.debug("template_validation_skipped", org=org, repo=name, issue=number)
            return actions

        result = await self.check_matches_template(org, name, issue)
        if result.matches:
            return actions

        options = self.parse_issue_options(org, name, issue)
        actions.append(
            CommentAction(
                org,
                name,
                number,
                TEMPLATE_MESSAGES[result.kind],
                collapse=True,
                reason=f"Template check failed: {result.kind.value}",
            )
        )

        validation = self.config.get_repo_template_validation_config(org, name, options.path)
        if validation and validation.validation_failed_label:
            actions.append(
                AddLabelAction(
                    org,
                    name,
                    number,
                    validation.validation_failed_label,
                    reason=f"Template check failed: {result.kind.value}",
                )
            )

        return actions

    async def classify_new_issue(self, repo: Repository, issue: Issue) -> list[Action]:
        return await self.on_new_issue(repo, issue)

    async def check_matches_template(self, org: str, name: str, issue: Issue) -> TemplateCheckResult:
        """Check an issue body against its template.

        A template that cannot be fetched skips validation instead of
        failing the issue.
        """
        options = self.parse_issue_options(org, name, issue)
        if not options.validate:
            log.info("template_validation_disabled", org=org, repo=name, issue=issue.number)
            return TemplateCheckResult.skip()

        try:
            template_text = await self.github.get_issue_template(org, name, options.path)
        except GitHubOperationError as e:
            log.warning(
                "template_fetch_failed",
                org=org,
                repo=name,
                issue=issue.number,
                path=options.path,
                status=e.status,
            )
            return TemplateCheckResult.skip(error=e.message)

        validation = self.config.get_repo_template_validation_config(org, name, options.path)
        level = validation.required_section_validation if validation else ValidationLevel.STRICT

        result = TemplateChecker(template_text).check(issue.body, level)
        log.info(
            "template_checked",
            org=org,
            repo=name,
            issue=issue.number,
            path=options.path,
            level=str(level),
            result=result.kind.value,
        )
        return result

    def parse_issue_options(self, org: str, name: str, issue: Issue) -> TemplateOptions:
        """Choose the template for an issue.

        The repo config sets the default; ``template_path=`` and
        ``validate_template=`` lines in the issue body override it.
        """
        path = self.config.get_repo_template_config(org, name, "issue")
        if not path:
            path = BotConfig.default_template_path("issue")

        validate = True
        body = issue.body or ""

        path_match = _TEMPLATE_PATH_RE.search(body)
        if path_match:
            path = path_match.group(1).strip()

        validate_match = _VALIDATE_TEMPLATE_RE.search(body)
        if validate_match:
            validate = validate_match.group(1).strip() == "true"

        return TemplateOptions(path=path, validate=validate)

    def on_issue_assigned(self, repo: Repository, issue: Issue) -> list[Action]:
        action = self.get_issue_update_email_action(
            repo,
            issue,
            header="Changed: Assignee",
            body=f"Assigned to {issue.assignee or 'nobody'}",
        )
        return [action] if action else []

    def on_issue_status_changed(self, repo: Repository, issue: Issue, new_status: IssueState) -> list[Action]:
        action = self.get_issue_update_email_action(
            repo,
            issue,
            header="Changed: Status",
            body=f"New status: {new_status.value}",
        )
        return [action] if action else []

    def on_issue_labeled(self, repo: Repository, issue: Issue, label: str) -> list[Action]:
        action = self.get_issue_update_email_action(
            repo,
            issue,
            header=f"New Issue in label {label}",
            body=issue.body,
            label=label,
        )
        return [action] if action else []

    def on_comment_created(self, repo: Repository, issue: Issue, comment: Comment) -> list[Action]:
        """Update staleness labels and notify the owning team of a new comment."""
        actions: list[Action] = []

        cleanup = self.config.get_repo_cleanup_config(repo.owner, repo.name)
        if cleanup and cleanup.issue:
            actions.extend(self.staleness.evaluate_new_comment(repo.owner, repo.name, issue, comment, cleanup.issue))

        email = self.get_issue_update_email_action(
            repo,
            issue,
            header=f"New Comment by {comment.author}",
            body=comment.body,
        )
        if email:
            actions.append(email)

        return actions

    def get_issue_update_email_action(
        self,
        repo: Repository,
        issue: Issue,
        header: str,
        body: str,
        label: str | None = None,
    ) -> SendEmailAction | None:
        """Build the notification email for the team that owns an issue.

        Returns None when the issue has no relevant label or the label has no
        email configured.
        """
        org, name = repo.owner, repo.name

        if not label:
            label = self.config.get_relevant_label(org, name, issue).label
        if not label:
            log.debug("email_skipped_no_label", org=org, repo=name, issue=issue.number)
            return None

        label_config = self.config.get_repo_label_config(org, name, label)
        recipient = label_config.email if label_config else None
        if not recipient:
            log.debug("email_skipped_no_recipient", org=org, repo=name, issue=issue.number, label=label)
            return None

        return SendEmailAction(
            recipient=recipient,
            subject=get_issue_email_subject(issue.title, org, name, label),
            header=header,
            body=body,
            link=issue.url,
            action_label="Open Issue",
            reason=f"Update for label {label}",
        )
