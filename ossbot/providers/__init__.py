"""Collaborator implementations for GitHub and email delivery.

Key Components:
    - GitHubClient: Abstract GitHub access used by the engine
    - EmailClient: Abstract email delivery used by the dispatcher
    - GitHubRestClient: PyGithub implementation
    - MailgunEmailClient: Mailgun implementation over httpx

Example:
    >>> from ossbot.providers import GitHubRestClient
    >>> github = GitHubRestClient(token="...")
    >>> await github.connect()
    >>> comments = await github.get_comments("firebase", "firebase-ios-sdk", 42)
"""

from ossbot.providers.base import EmailClient, GitHubClient
from ossbot.providers.github_rest import GitHubRestClient
from ossbot.providers.mailgun import MailgunEmailClient

__all__ = [
    "EmailClient",
    "GitHubClient",
    "GitHubRestClient",
    "MailgunEmailClient",
]
