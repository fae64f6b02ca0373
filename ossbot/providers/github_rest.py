"""GitHub client implementation using PyGithub and REST API."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TypeVar

import requests
import structlog
from github import Auth, Github, GithubException  # type: ignore[import-not-found]
from github.Issue import Issue as GHIssue  # type: ignore[import-not-found]
from github.IssueComment import IssueComment as GHComment  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from ossbot.exceptions import GitHubOperationError, TemplateFetchError
from ossbot.models.domain import Comment, Issue, IssueState, parse_datetime
from ossbot.providers.base import GitHubClient

log = structlog.get_logger(__name__)

T = TypeVar("T")

LABEL_CLOSED_BY_BOT = "closed-by-bot"

# PyGithub lets transport failures from requests through unwrapped.
GITHUB_ERRORS = (GithubException, requests.exceptions.RequestException)


def _status(error: Exception) -> int | None:
    return getattr(error, "status", None)


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a synchronous function in a thread pool.

    This prevents blocking the event loop when calling synchronous
    PyGithub methods.
    """
    return await asyncio.to_thread(func)


class GitHubRestClient(GitHubClient):
    """GitHub implementation using PyGithub library.

    One instance serves every repository the token can reach. Repository
    handles are cached per ``org/repo``.
    """

    def __init__(self, token: str, base_url: str = "https://api.github.com", timeout: int = 15):
        """Initialize GitHub client.

        Args:
            token: GitHub personal access token or App token
            base_url: GitHub API base URL (for GitHub Enterprise)
            timeout: Per-request timeout in seconds
        """
        self.token = token.strip() if token else token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client: Github | None = None
        self._repos: dict[str, GHRepository] = {}

    async def connect(self) -> None:
        """Initialize GitHub client."""

        def _connect() -> Github:
            return Github(auth=Auth.Token(self.token), base_url=self.base_url, timeout=self.timeout)

        self._client = await _run_sync(_connect)
        log.info("github_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repos = {}

    def _get_repo(self, org: str, repo: str) -> GHRepository:
        """Return a cached repository handle. Must run inside ``_run_sync``."""
        if self._client is None:
            raise GitHubOperationError("GitHub client is not connected")

        key = f"{org}/{repo}"
        if key not in self._repos:
            self._repos[key] = self._client.get_repo(key)
        return self._repos[key]

    async def get_issue_template(self, org: str, repo: str, path: str) -> str:
        """Fetch and decode a template file from the default branch."""
        log.info("get_issue_template", org=org, repo=repo, path=path)

        def _get_file() -> str:
            contents = self._get_repo(org, repo).get_contents(path)
            if isinstance(contents, list):
                raise TemplateFetchError(f"Template path is a directory: {path}", path=path)
            return contents.decoded_content.decode("utf-8")

        try:
            return await _run_sync(_get_file)
        except GITHUB_ERRORS as e:
            log.warning("github_get_template_failed", org=org, repo=repo, path=path, status=_status(e))
            raise TemplateFetchError(f"Cannot fetch template {path}: {e}", path=path, status=_status(e)) from e

    async def get_comments(self, org: str, repo: str, number: int) -> list[Comment]:
        """Retrieve all comments for an issue."""
        log.info("get_comments", org=org, repo=repo, number=number)

        def _get_comments() -> list[GHComment]:
            return list(self._get_repo(org, repo).get_issue(number).get_comments())

        try:
            gh_comments = await _run_sync(_get_comments)
        except GITHUB_ERRORS as e:
            log.error("github_get_comments_failed", org=org, repo=repo, number=number, error=str(e))
            raise GitHubOperationError(f"Cannot fetch comments for {org}/{repo}#{number}", _status(e)) from e

        return [self._convert_comment(c) for c in gh_comments]

    async def get_collaborators(self, org: str, repo: str) -> set[str]:
        """Retrieve collaborator logins."""
        log.info("get_collaborators", org=org, repo=repo)

        def _get_collaborators() -> set[str]:
            return {user.login for user in self._get_repo(org, repo).get_collaborators()}

        try:
            return await _run_sync(_get_collaborators)
        except GITHUB_ERRORS as e:
            log.error("github_get_collaborators_failed", org=org, repo=repo, error=str(e))
            raise GitHubOperationError(f"Cannot fetch collaborators for {org}/{repo}", _status(e)) from e

    async def get_open_issues(self, org: str, repo: str) -> list[Issue]:
        """Retrieve open issues, skipping pull requests."""
        log.info("get_open_issues", org=org, repo=repo)

        def _get_issues() -> list[GHIssue]:
            issues = self._get_repo(org, repo).get_issues(state="open")
            return [issue for issue in issues if issue.pull_request is None]

        try:
            gh_issues = await _run_sync(_get_issues)
        except GITHUB_ERRORS as e:
            log.error("github_get_issues_failed", org=org, repo=repo, error=str(e))
            raise GitHubOperationError(f"Cannot list issues for {org}/{repo}", _status(e)) from e

        return [self._convert_issue(i) for i in gh_issues]

    async def get_old_pull_requests(self, org: str, repo: str, days: int) -> list[Issue]:
        """Retrieve open pull requests not updated for ``days`` days."""
        log.info("get_old_pull_requests", org=org, repo=repo, days=days)
        cutoff = datetime.now(UTC) - timedelta(days=days)

        def _get_pulls() -> list[GHPullRequest]:
            pulls = self._get_repo(org, repo).get_pulls(state="open", sort="updated", direction="asc")
            old = []
            # Sorted oldest first, so stop at the first recent one.
            for pr in pulls:
                if parse_datetime(pr.updated_at) >= cutoff:
                    break
                old.append(pr)
            return old

        try:
            gh_pulls = await _run_sync(_get_pulls)
        except GITHUB_ERRORS as e:
            log.error("github_get_pulls_failed", org=org, repo=repo, error=str(e))
            raise GitHubOperationError(f"Cannot list pull requests for {org}/{repo}", _status(e)) from e

        return [self._convert_pull_request(pr) for pr in gh_pulls]

    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        log.info("add_label", org=org, repo=repo, number=number, label=label)

        try:
            await _run_sync(lambda: self._get_repo(org, repo).get_issue(number).add_to_labels(label))
        except GITHUB_ERRORS as e:
            log.error("github_add_label_failed", org=org, repo=repo, number=number, error=str(e))
            raise GitHubOperationError(f"Cannot add label {label!r} to {org}/{repo}#{number}", _status(e)) from e

    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        log.info("remove_label", org=org, repo=repo, number=number, label=label)

        try:
            await _run_sync(lambda: self._get_repo(org, repo).get_issue(number).remove_from_labels(label))
        except GITHUB_ERRORS as e:
            if _status(e) == 404:
                log.debug("label_not_present", org=org, repo=repo, number=number, label=label)
                return
            log.error("github_remove_label_failed", org=org, repo=repo, number=number, error=str(e))
            raise GitHubOperationError(
                f"Cannot remove label {label!r} from {org}/{repo}#{number}", _status(e)
            ) from e

    async def add_comment(self, org: str, repo: str, number: int, body: str) -> None:
        log.info("add_comment", org=org, repo=repo, number=number)

        try:
            await _run_sync(lambda: self._get_repo(org, repo).get_issue(number).create_comment(body))
        except GITHUB_ERRORS as e:
            log.error("github_add_comment_failed", org=org, repo=repo, number=number, error=str(e))
            raise GitHubOperationError(f"Cannot comment on {org}/{repo}#{number}", _status(e)) from e

    async def close_issue(self, org: str, repo: str, number: int) -> None:
        """Close an issue or pull request and tag it as closed by the bot."""
        log.info("close_issue", org=org, repo=repo, number=number)

        def _close() -> None:
            gh_issue = self._get_repo(org, repo).get_issue(number)
            gh_issue.add_to_labels(LABEL_CLOSED_BY_BOT)
            gh_issue.edit(state="closed")

        try:
            await _run_sync(_close)
        except GITHUB_ERRORS as e:
            log.error("github_close_issue_failed", org=org, repo=repo, number=number, error=str(e))
            raise GitHubOperationError(f"Cannot close {org}/{repo}#{number}", _status(e)) from e

    def _convert_issue(self, gh_issue: GHIssue) -> Issue:
        """Convert GitHub Issue to our Issue model."""
        state = IssueState.CLOSED if gh_issue.state == "closed" else IssueState.OPEN

        return Issue(
            number=gh_issue.number,
            title=gh_issue.title or "",
            body=gh_issue.body or "",
            author=gh_issue.user.login if gh_issue.user else "unknown",
            labels=tuple(label.name for label in gh_issue.labels),
            state=state,
            url=gh_issue.html_url,
            created_at=parse_datetime(gh_issue.created_at),
            updated_at=parse_datetime(gh_issue.updated_at),
            assignee=gh_issue.assignee.login if gh_issue.assignee else None,
        )

    def _convert_comment(self, gh_comment: GHComment) -> Comment:
        """Convert GitHub Comment to our Comment model."""
        return Comment(
            id=gh_comment.id,
            body=gh_comment.body or "",
            author=gh_comment.user.login if gh_comment.user else "unknown",
            created_at=parse_datetime(gh_comment.created_at),
        )

    def _convert_pull_request(self, gh_pr: GHPullRequest) -> Issue:
        """Convert GitHub PullRequest to our Issue model."""
        return Issue(
            number=gh_pr.number,
            title=gh_pr.title or "",
            body=gh_pr.body or "",
            author=gh_pr.user.login if gh_pr.user else "unknown",
            labels=tuple(label.name for label in gh_pr.labels),
            state=IssueState.CLOSED if gh_pr.state == "closed" else IssueState.OPEN,
            url=gh_pr.html_url,
            created_at=parse_datetime(gh_pr.created_at),
            updated_at=parse_datetime(gh_pr.updated_at),
            is_pull_request=True,
        )
