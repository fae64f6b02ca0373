"""Custom exception hierarchy for ossbot.

Exception Hierarchy:
    OssBotError (base)
    ├── ConfigurationError
    ├── GitHubOperationError
    │   └── TemplateFetchError
    ├── ExternalServiceError
    │   └── EmailDeliveryError
    └── UnknownActionError

Absent configuration is never an error: callers treat a missing repo config
as "feature disabled". Upstream fetch failures are raised by providers and
recovered by the engine as degraded results. UnknownActionError is the only
error the engine treats as fatal.

Example Usage:
    >>> from ossbot.exceptions import ConfigurationError
    >>> try:
    ...     load_config(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Config file not found: {path}") from e
"""

from typing import Any


class OssBotError(Exception):
    """Base exception for all ossbot errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(OssBotError):
    """Configuration-related errors.

    Raised when settings or repo config files are invalid or unreadable.

    Examples:
        - Configuration file not found
        - Invalid YAML/JSON syntax
        - Invalid label regex or negative day thresholds
    """

    pass


class GitHubOperationError(OssBotError):
    """A GitHub API call failed.

    Attributes:
        message: Human-readable error description
        status: HTTP status returned by GitHub, if any
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class TemplateFetchError(GitHubOperationError):
    """The canonical issue template could not be fetched.

    Raised for missing files (404) as well as authentication failures. The
    issue classifier recovers from it by skipping template validation.
    """

    def __init__(self, message: str, path: str, status: int | None = None) -> None:
        self.path = path
        super().__init__(message, status=status)

    @property
    def not_found(self) -> bool:
        return self.status == 404


class ExternalServiceError(OssBotError):
    """Errors from external services other than GitHub.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code (if applicable)
        response_text: Raw response body (if available)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_text: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class EmailDeliveryError(ExternalServiceError):
    """Sending an email through Mailgun failed."""

    pass


class UnknownActionError(OssBotError):
    """The dispatcher received an action type it cannot execute.

    This means the action model and the dispatcher have drifted apart and is
    never recovered from.
    """

    def __init__(self, action: Any) -> None:
        self.action = action
        super().__init__(f"Unrecognized action: {action!r}")
