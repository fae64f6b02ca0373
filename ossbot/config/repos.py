"""
Per-repository bot configuration and lookup.

The repo config file maps ``org -> repo -> RepoConfig``::

    firebase:
      firebase-ios-sdk:
        labels:
          auth:
            regex: "Product:\\s*Auth"
            email: auth-team@example.com
        templates:
          issue: .github/ISSUE_TEMPLATE.md
        validation:
          templates:
            .github/ISSUE_TEMPLATE.md:
              validation_failed_label: needs-info
              required_section_validation: relaxed
        cleanup:
          pr: 15
          issue:
            label_needs_info: needs-info
            label_needs_attention: needs-attention
            label_stale: stale
            ignore_labels: [feature-request]
            needs_info_days: 7
            stale_days: 3

Org, repo, label, template kind and validation path keys are sanitized
(lowercased and trimmed) on load and on lookup, so ``BotTest``, ``bottest ``
and ``bottest`` all resolve to the same entry. A missing entry always means
"no rules apply", never an error.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ossbot.enums import ValidationLevel
from ossbot.exceptions import ConfigurationError
from ossbot.models.domain import IssueLike

log = structlog.get_logger(__name__)

DEFAULT_ISSUE_TEMPLATE = "ISSUE_TEMPLATE.md"
DEFAULT_PULL_REQUEST_TEMPLATE = "PULL_REQUEST_TEMPLATE.md"


def sanitize_key(key: str) -> str:
    """Canonical form for every config key: lowercase, surrounding whitespace removed."""
    return key.lower().strip()


def _sanitize_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {sanitize_key(str(k)): v for k, v in value.items()}
    return value


class LabelConfig(BaseModel):
    """Rules for one label."""

    regex: str | None = Field(default=None, description="Pattern searched for in the issue body")
    email: str | None = Field(default=None, description="Address notified about issues with this label")

    @field_validator("regex")
    @classmethod
    def validate_regex(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"Invalid label regex {v!r}: {e}") from e
        return v


class TemplateValidationConfig(BaseModel):
    """Validation settings for one template path."""

    validation_failed_label: str | None = Field(
        default=None, description="Label added when an issue fails template validation"
    )
    required_section_validation: ValidationLevel = Field(
        default=ValidationLevel.STRICT, description="How many required sections may stay empty"
    )


class ValidationConfig(BaseModel):
    templates: dict[str, TemplateValidationConfig] = Field(default_factory=dict)

    @field_validator("templates", mode="before")
    @classmethod
    def sanitize_keys(cls, v: Any) -> Any:
        return _sanitize_keys(v)


class IssueCleanupConfig(BaseModel):
    """Settings for the needs-info -> stale -> closed sweep."""

    label_needs_info: str = Field(..., description="Label meaning the bot is waiting on the author")
    label_needs_attention: str | None = Field(
        default=None, description="Label added when the author responds"
    )
    label_stale: str = Field(..., description="Label for issues that went quiet")
    ignore_labels: list[str] = Field(default_factory=list, description="Labels that exempt an issue")
    needs_info_days: int = Field(default=7, ge=0, description="Days of silence before needs-info becomes stale")
    stale_days: int = Field(default=3, ge=0, description="Days after marking stale before closing")


class CleanupConfig(BaseModel):
    pr: int | None = Field(default=None, ge=0, description="Close open PRs not updated for this many days")
    issue: IssueCleanupConfig | None = None


class ReportConfig(BaseModel):
    email: str


class RepoConfig(BaseModel):
    """Complete configuration for one repository."""

    labels: dict[str, LabelConfig] = Field(default_factory=dict)
    templates: dict[str, str] = Field(default_factory=dict)
    validation: ValidationConfig | None = None
    cleanup: CleanupConfig | None = None
    reports: ReportConfig | None = None

    @field_validator("labels", "templates", mode="before")
    @classmethod
    def sanitize_keys(cls, v: Any) -> Any:
        return _sanitize_keys(v)

    def ordered_labels(self) -> list[tuple[str, LabelConfig]]:
        """Labels as (name, config) pairs in the order they were declared."""
        return list(self.labels.items())


@dataclass(frozen=True)
class RepoRef:
    org: str
    name: str


@dataclass(frozen=True)
class RepoFeatures:
    """Features switched on by the shape of a repo's config."""

    custom_emails: bool = False
    issue_labels: bool = False
    issue_cleanup: bool = False
    repo_reports: bool = False


@dataclass(frozen=True)
class RelevantLabelResponse:
    """Outcome of label matching.

    ``error`` is set only when the repo has no config at all, which lets
    callers tell "nothing configured" apart from "configured but no match".
    """

    label: str | None = None
    new: bool = False
    matched_regex: str | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.label is not None


class BotConfig:
    """Read-only view over the org/repo configuration tree.

    Instances are passed explicitly into the handlers; nothing holds a
    module-level config.
    """

    def __init__(self, repos: dict[str, dict[str, RepoConfig]]):
        """Initialize from an already validated config tree.

        Args:
            repos: Mapping of org -> repo -> RepoConfig
        """
        self._repos: dict[str, dict[str, RepoConfig]] = {
            sanitize_key(org): {sanitize_key(name): cfg for name, cfg in org_repos.items()}
            for org, org_repos in repos.items()
        }
        # Keep the spelling used in the file for listing repos back to GitHub.
        self._display_names: list[RepoRef] = [
            RepoRef(org=org, name=name) for org, org_repos in repos.items() for name in org_repos
        ]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BotConfig:
        """Validate a raw ``org -> repo -> config`` mapping.

        Raises:
            ConfigurationError: If any repo config is invalid
        """
        repos: dict[str, dict[str, RepoConfig]] = {}
        for org, org_repos in (data or {}).items():
            if not isinstance(org_repos, dict):
                raise ConfigurationError(f"Config for org {org!r} must be a mapping of repos")
            repos[org] = {}
            for name, repo_data in org_repos.items():
                try:
                    repos[org][name] = RepoConfig.model_validate(repo_data or {})
                except ValidationError as e:
                    raise ConfigurationError(f"Invalid config for {org}/{name}: {e}") from e
        return cls(repos)

    @classmethod
    def from_file(cls, config_path: str | Path) -> BotConfig:
        """Load the repo config from a YAML or JSON file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Repo config file not found: {path}")

        try:
            content = path.read_text()
        except OSError as e:
            raise ConfigurationError(f"Cannot read repo config file: {path}") from e

        try:
            if path.suffix == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid syntax in {path}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Repo config must be a mapping of orgs, not a list or scalar")

        config = cls.from_dict(data)
        log.info("repo_config_loaded", path=str(path), repos=len(config.get_all_repos()))
        return config

    def get_all_repos(self) -> list[RepoRef]:
        """All configured repos, in file order."""
        return list(self._display_names)

    def get_repo_config(self, org: str, name: str) -> RepoConfig | None:
        """Get the config for a repo, or None if the repo is not configured."""
        return self._repos.get(sanitize_key(org), {}).get(sanitize_key(name))

    def get_repo_features(self, org: str, name: str) -> RepoFeatures:
        config = self.get_repo_config(org, name)
        if not config:
            return RepoFeatures()

        return RepoFeatures(
            custom_emails=any(label.email for label in config.labels.values()),
            issue_labels=any(label.regex for label in config.labels.values()),
            issue_cleanup=bool(config.cleanup and config.cleanup.issue),
            repo_reports=bool(config.reports and config.reports.email),
        )

    def get_repo_label_config(self, org: str, name: str, label: str) -> LabelConfig | None:
        config = self.get_repo_config(org, name)
        if not config:
            return None
        return config.labels.get(sanitize_key(label))

    def get_repo_template_config(self, org: str, name: str, template: str) -> str | None:
        """Get the configured template path for a template kind ("issue", "pr")."""
        config = self.get_repo_config(org, name)
        if not config:
            return None
        return config.templates.get(sanitize_key(template))

    def get_repo_reporting_config(self, org: str, name: str) -> ReportConfig | None:
        config = self.get_repo_config(org, name)
        return config.reports if config else None

    def get_repo_cleanup_config(self, org: str, name: str) -> CleanupConfig | None:
        config = self.get_repo_config(org, name)
        return config.cleanup if config else None

    def get_repo_template_validation_config(
        self, org: str, name: str, template_path: str
    ) -> TemplateValidationConfig | None:
        """Get validation settings for a template path.

        None means the default (strict) validation applies.
        """
        config = self.get_repo_config(org, name)
        if not config or not config.validation:
            return None
        return config.validation.templates.get(sanitize_key(template_path))

    def get_relevant_label(self, org: str, name: str, issue: IssueLike) -> RelevantLabelResponse:
        """Pick the label that best describes an issue.

        Existing issue labels that have a config entry win, in the order they
        appear on the issue. Otherwise label regexes are tried against the
        issue body in declared order and the first match wins.
        """
        repo_config = self.get_repo_config(org, name)
        if not repo_config:
            log.debug("repo_config_missing", org=org, repo=name)
            return RelevantLabelResponse(error="No config found")

        for existing in issue.labels:
            if self.get_repo_label_config(org, name, existing):
                return RelevantLabelResponse(label=existing, new=False)

        log.debug("trying_label_regexes", org=org, repo=name, issue=issue.number)
        for label, label_config in repo_config.ordered_labels():
            if not label_config.regex:
                continue

            if re.search(label_config.regex, issue.body or ""):
                log.debug("label_regex_matched", label=label, regex=label_config.regex)
                return RelevantLabelResponse(label=label, new=True, matched_regex=label_config.regex)

        log.debug("no_relevant_label", org=org, repo=name, issue=issue.number)
        return RelevantLabelResponse()

    @staticmethod
    def default_template_path(template: str) -> str:
        """Default template path for a template kind."""
        if template == "issue":
            return DEFAULT_ISSUE_TEMPLATE
        return DEFAULT_PULL_REQUEST_TEMPLATE
