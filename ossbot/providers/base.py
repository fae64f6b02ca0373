"""
Abstract base classes for providers.

This module defines the collaborator interfaces the engine depends on:
GitHub reads and writes, and email delivery. The handlers only see these
interfaces, so tests substitute ``AsyncMock`` instances and deployments can
swap implementations.
"""

from abc import ABC, abstractmethod

from ossbot.models.domain import Comment, Issue


class GitHubClient(ABC):
    """Abstract base class for GitHub access across an organization.

    Unlike a single-repo provider, every method takes ``org`` and ``repo`` so
    one client serves all configured repositories. All methods are async to
    support non-blocking I/O.
    """

    @abstractmethod
    async def get_issue_template(self, org: str, repo: str, path: str) -> str:
        """Fetch the text of an issue template file.

        Args:
            org: Repository owner
            repo: Repository name
            path: Path of the template file within the repository

        Returns:
            Decoded file content.

        Raises:
            TemplateFetchError: If the file is missing or cannot be read.
        """
        pass

    @abstractmethod
    async def get_comments(self, org: str, repo: str, number: int) -> list[Comment]:
        """Retrieve all comments for an issue, in no guaranteed order."""
        pass

    @abstractmethod
    async def get_collaborators(self, org: str, repo: str) -> set[str]:
        """Retrieve the logins of all repository collaborators."""
        pass

    @abstractmethod
    async def get_open_issues(self, org: str, repo: str) -> list[Issue]:
        """Retrieve open issues, excluding pull requests."""
        pass

    @abstractmethod
    async def get_old_pull_requests(self, org: str, repo: str, days: int) -> list[Issue]:
        """Retrieve open pull requests not updated within the last ``days`` days."""
        pass

    @abstractmethod
    async def add_label(self, org: str, repo: str, number: int, label: str) -> None:
        pass

    @abstractmethod
    async def remove_label(self, org: str, repo: str, number: int, label: str) -> None:
        """Remove a label. Removing a label the issue does not carry is not an error."""
        pass

    @abstractmethod
    async def add_comment(self, org: str, repo: str, number: int, body: str) -> None:
        pass

    @abstractmethod
    async def close_issue(self, org: str, repo: str, number: int) -> None:
        pass


class EmailClient(ABC):
    """Abstract base class for notification email delivery."""

    @abstractmethod
    async def send_styled_email(
        self,
        recipient: str,
        subject: str,
        header: str,
        body_html: str,
        link: str,
        action_label: str,
    ) -> None:
        """Send an HTML notification with a header, a body and a call-to-action link.

        Raises:
            EmailDeliveryError: If the email could not be sent.
        """
        pass
