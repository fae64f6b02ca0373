"""Tests for ossbot/providers/github_rest.py - GitHub client implementation."""

from datetime import UTC, datetime, timedelta
from unittest.mock import Mock, patch

import pytest
import pytest_asyncio
import requests
from github import GithubException

from ossbot.exceptions import GitHubOperationError, TemplateFetchError
from ossbot.models.domain import IssueState
from ossbot.providers.github_rest import LABEL_CLOSED_BY_BOT, GitHubRestClient


def make_user(login):
    user = Mock()
    user.login = login
    return user


def make_label(name):
    label = Mock()
    label.name = name
    return label


def make_gh_issue(number=1, labels=(), pull_request=None, **overrides):
    issue = Mock()
    issue.number = number
    issue.title = overrides.get("title", "Crash")
    issue.body = overrides.get("body", "details")
    issue.user = make_user(overrides.get("author", "alice"))
    issue.labels = [make_label(name) for name in labels]
    issue.state = overrides.get("state", "open")
    issue.html_url = f"https://github.com/o/r/issues/{number}"
    issue.created_at = datetime(2024, 1, 1, 12, 0)
    issue.updated_at = overrides.get("updated_at", datetime(2024, 1, 2, 12, 0, tzinfo=UTC))
    issue.assignee = None
    issue.pull_request = pull_request
    return issue


@pytest.fixture
def mock_github_repo():
    """Create a mock GitHub repository."""
    return Mock()


@pytest_asyncio.fixture
async def client(mock_github_repo):
    """Create a connected GitHubRestClient backed by a mock Github instance."""
    with patch("ossbot.providers.github_rest.Github") as github_cls:
        github_cls.return_value.get_repo.return_value = mock_github_repo
        gh = GitHubRestClient(token="ghp_test_token_123")
        await gh.connect()
        yield gh


class TestGitHubRestClientInit:
    """Tests for GitHubRestClient initialization."""

    def test_init_with_defaults(self):
        """Should initialize with default base URL and no connection."""
        gh = GitHubRestClient(token=" token \n")

        assert gh.token == "token"
        assert gh.base_url == "https://api.github.com"
        assert gh._client is None

    def test_custom_base_url_trailing_slash(self):
        gh = GitHubRestClient(token="t", base_url="https://ghe.example.com/api/v3/")

        assert gh.base_url == "https://ghe.example.com/api/v3"

    @pytest.mark.asyncio
    async def test_not_connected(self):
        """Should raise when used before connect."""
        gh = GitHubRestClient(token="t")

        with pytest.raises(GitHubOperationError, match="not connected"):
            await gh.get_collaborators("o", "r")


class TestReads:
    """Tests for read operations."""

    @pytest.mark.asyncio
    async def test_get_issue_template(self, client, mock_github_repo):
        contents = Mock()
        contents.decoded_content = b"### Title [REQUIRED]\n"
        mock_github_repo.get_contents.return_value = contents

        text = await client.get_issue_template("o", "r", ".github/ISSUE_TEMPLATE.md")

        assert text == "### Title [REQUIRED]\n"
        mock_github_repo.get_contents.assert_called_once_with(".github/ISSUE_TEMPLATE.md")

    @pytest.mark.asyncio
    async def test_get_issue_template_not_found(self, client, mock_github_repo):
        """Should raise TemplateFetchError carrying the status."""
        mock_github_repo.get_contents.side_effect = GithubException(404, {"message": "Not Found"}, None)

        with pytest.raises(TemplateFetchError) as exc_info:
            await client.get_issue_template("o", "r", "MISSING.md")

        assert exc_info.value.not_found
        assert exc_info.value.path == "MISSING.md"

    @pytest.mark.asyncio
    async def test_get_issue_template_directory(self, client, mock_github_repo):
        mock_github_repo.get_contents.return_value = [Mock(), Mock()]

        with pytest.raises(TemplateFetchError, match="directory"):
            await client.get_issue_template("o", "r", ".github")

    @pytest.mark.asyncio
    async def test_get_comments(self, client, mock_github_repo):
        """Should convert comments to aware domain comments."""
        gh_comment = Mock()
        gh_comment.id = 9
        gh_comment.body = "hello"
        gh_comment.user = make_user("bob")
        gh_comment.created_at = datetime(2024, 1, 5, 8, 0)
        mock_github_repo.get_issue.return_value.get_comments.return_value = [gh_comment]

        comments = await client.get_comments("o", "r", 1)

        assert len(comments) == 1
        assert comments[0].author == "bob"
        assert comments[0].created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_collaborators(self, client, mock_github_repo):
        mock_github_repo.get_collaborators.return_value = [make_user("a"), make_user("b")]

        assert await client.get_collaborators("o", "r") == {"a", "b"}

    @pytest.mark.asyncio
    async def test_get_open_issues_skips_pull_requests(self, client, mock_github_repo):
        """Should drop pull requests from the issue listing."""
        mock_github_repo.get_issues.return_value = [
            make_gh_issue(1, labels=("bug",)),
            make_gh_issue(2, pull_request=Mock()),
        ]

        issues = await client.get_open_issues("o", "r")

        assert [i.number for i in issues] == [1]
        assert issues[0].labels == ("bug",)
        assert issues[0].state == IssueState.OPEN
        mock_github_repo.get_issues.assert_called_once_with(state="open")

    @pytest.mark.asyncio
    async def test_get_old_pull_requests(self, client, mock_github_repo):
        """Should return PRs older than the cutoff and stop at the first recent one."""
        now = datetime.now(UTC)
        mock_github_repo.get_pulls.return_value = [
            make_gh_issue(5, updated_at=now - timedelta(days=60)),
            make_gh_issue(6, updated_at=now - timedelta(days=45)),
            make_gh_issue(7, updated_at=now - timedelta(days=1)),
            make_gh_issue(8, updated_at=now - timedelta(days=90)),
        ]

        pulls = await client.get_old_pull_requests("o", "r", 30)

        assert [p.number for p in pulls] == [5, 6]
        assert all(p.is_pull_request for p in pulls)
        mock_github_repo.get_pulls.assert_called_once_with(state="open", sort="updated", direction="asc")

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self, client, mock_github_repo):
        mock_github_repo.get_collaborators.side_effect = GithubException(403, {"message": "Forbidden"}, None)

        with pytest.raises(GitHubOperationError) as exc_info:
            await client.get_collaborators("o", "r")

        assert exc_info.value.status == 403

    @pytest.mark.asyncio
    async def test_template_transport_failure_wrapped(self, client, mock_github_repo):
        """Should wrap connection failures from requests in TemplateFetchError."""
        mock_github_repo.get_contents.side_effect = requests.exceptions.ConnectionError("reset")

        with pytest.raises(TemplateFetchError) as exc_info:
            await client.get_issue_template("o", "r", ".github/ISSUE_TEMPLATE.md")

        assert exc_info.value.status is None
        assert not exc_info.value.not_found

    @pytest.mark.asyncio
    async def test_collaborators_timeout_wrapped(self, client, mock_github_repo):
        mock_github_repo.get_collaborators.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(GitHubOperationError):
            await client.get_collaborators("o", "r")


class TestWrites:
    """Tests for write operations."""

    @pytest.mark.asyncio
    async def test_add_label(self, client, mock_github_repo):
        await client.add_label("o", "r", 3, "auth")

        mock_github_repo.get_issue.assert_called_with(3)
        mock_github_repo.get_issue.return_value.add_to_labels.assert_called_once_with("auth")

    @pytest.mark.asyncio
    async def test_remove_missing_label_is_no_op(self, client, mock_github_repo):
        """Should treat removing an absent label as success."""
        issue = mock_github_repo.get_issue.return_value
        issue.remove_from_labels.side_effect = GithubException(404, {"message": "Label does not exist"}, None)

        await client.remove_label("o", "r", 3, "stale")

    @pytest.mark.asyncio
    async def test_remove_label_other_error(self, client, mock_github_repo):
        issue = mock_github_repo.get_issue.return_value
        issue.remove_from_labels.side_effect = GithubException(500, {"message": "oops"}, None)

        with pytest.raises(GitHubOperationError):
            await client.remove_label("o", "r", 3, "stale")

    @pytest.mark.asyncio
    async def test_add_comment(self, client, mock_github_repo):
        await client.add_comment("o", "r", 3, "hello")

        mock_github_repo.get_issue.return_value.create_comment.assert_called_once_with("hello")

    @pytest.mark.asyncio
    async def test_close_issue_labels_and_closes(self, client, mock_github_repo):
        """Should tag the issue as closed by the bot and then close it."""
        await client.close_issue("o", "r", 3)

        issue = mock_github_repo.get_issue.return_value
        issue.add_to_labels.assert_called_once_with(LABEL_CLOSED_BY_BOT)
        issue.edit.assert_called_once_with(state="closed")

    @pytest.mark.asyncio
    async def test_repo_handle_cached(self, client, mock_github_repo):
        await client.add_comment("o", "r", 1, "a")
        await client.add_comment("o", "r", 2, "b")

        client._client.get_repo.assert_called_once_with("o/r")

    @pytest.mark.asyncio
    async def test_disconnect(self, client):
        github = client._client

        await client.disconnect()

        github.close.assert_called_once()
        assert client._client is None
