"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import structlog

from ossbot.config.repos import BotConfig
from ossbot.models.domain import Comment, Issue, Repository
from ossbot.providers.base import EmailClient, GitHubClient

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)

ISSUE_TEMPLATE = """<!-- Thanks for filing an issue! -->

### Describe your environment [REQUIRED]

  * Operating System version: _____
  * Library version: _____

### Describe the problem [REQUIRED]

Steps to reproduce:

What happened? How can we make the problem occur?

### Relevant Code

```
// TODO(you): code here
```
"""


def days_ago(days: float) -> datetime:
    return NOW - timedelta(days=days)


@pytest.fixture(autouse=True)
def quiet_logging():
    """Send structlog output nowhere so CLI output stays parseable."""
    structlog.configure(logger_factory=structlog.ReturnLoggerFactory(), cache_logger_on_first_use=False)
    yield
    structlog.reset_defaults()


@pytest.fixture
def now() -> datetime:
    """Fixed clock for time-dependent tests."""
    return NOW


@pytest.fixture
def repo_config_data() -> dict:
    """Raw repo config covering every feature."""
    return {
        "samtstern": {
            "BotTest": {
                "labels": {
                    "Auth": {"regex": r"Product:\s*Auth", "email": "auth-team@example.com"},
                    "database": {"regex": r"Product:\s*Database", "email": "db-team@example.com"},
                    "storage": {"regex": r"Product:\s*Storage"},
                    "docs": {"email": "docs-team@example.com"},
                },
                "templates": {"issue": ".github/ISSUE_TEMPLATE.md"},
                "validation": {
                    "templates": {
                        ".github/ISSUE_TEMPLATE.md": {
                            "validation_failed_label": "needs-info",
                            "required_section_validation": "strict",
                        },
                        ".github/RELAXED_TEMPLATE.md": {
                            "required_section_validation": "relaxed",
                        },
                    }
                },
                "cleanup": {
                    "pr": 30,
                    "issue": {
                        "label_needs_info": "needs-info",
                        "label_needs_attention": "needs-attention",
                        "label_stale": "stale",
                        "ignore_labels": ["feature-request"],
                        "needs_info_days": 7,
                        "stale_days": 3,
                    },
                },
                "reports": {"email": "reports@example.com"},
            },
            "empty-repo": {},
        },
        "firebase": {
            "quickstart": {
                "labels": {"android": {"regex": "Android"}},
            },
        },
    }


@pytest.fixture
def bot_config(repo_config_data: dict) -> BotConfig:
    """BotConfig built from repo_config_data."""
    return BotConfig.from_dict(repo_config_data)


@pytest.fixture
def repo() -> Repository:
    return Repository(owner="samtstern", name="BotTest")


@pytest.fixture
def make_issue():
    """Factory for issues with sensible defaults."""

    def _make(
        number: int = 1,
        title: str = "Crash when signing in",
        body: str = "",
        author: str = "issue-author",
        labels: tuple[str, ...] = (),
        **kwargs,
    ) -> Issue:
        return Issue(
            number=number,
            title=title,
            body=body,
            author=author,
            labels=labels,
            url=f"https://github.com/samtstern/BotTest/issues/{number}",
            **kwargs,
        )

    return _make


@pytest.fixture
def make_comment():
    """Factory for comments aged relative to NOW."""
    counter = {"id": 100}

    def _make(author: str, age_days: float, body: str = "A comment", comment_id: int | None = None) -> Comment:
        counter["id"] += 1
        return Comment(
            id=comment_id if comment_id is not None else counter["id"],
            author=author,
            body=body,
            created_at=days_ago(age_days),
        )

    return _make


@pytest.fixture
def mock_github() -> AsyncMock:
    """GitHub client mock with no collaborators and the standard template."""
    github = AsyncMock(spec=GitHubClient)
    github.get_collaborators.return_value = {"maintainer"}
    github.get_issue_template.return_value = ISSUE_TEMPLATE
    github.get_comments.return_value = []
    github.get_open_issues.return_value = []
    github.get_old_pull_requests.return_value = []
    return github


@pytest.fixture
def mock_email() -> AsyncMock:
    return AsyncMock(spec=EmailClient)


@pytest.fixture
def issue_template() -> str:
    """Template with two required sections and one optional section."""
    return ISSUE_TEMPLATE
