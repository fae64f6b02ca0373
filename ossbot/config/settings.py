"""
Runtime settings using Pydantic for type-safe configuration.

Settings cover credentials and process-level knobs (GitHub token, Mailgun,
webhook secret, sweep concurrency). The per-repository rules live in a
separate file loaded by :class:`ossbot.config.repos.BotConfig`.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from ossbot.exceptions import ConfigurationError


class GitHubSettings(BaseModel):
    """GitHub API access."""

    token: SecretStr = Field(default=SecretStr(""), description="Token used for all GitHub API calls")
    base_url: str = Field(default="https://api.github.com", description="GitHub API base URL")
    bot_login: str = Field(default="google-oss-bot", description="Login the bot comments as")


class MailgunSettings(BaseModel):
    """Mailgun email delivery. Emails are disabled unless api_key and domain are set."""

    api_key: SecretStr | None = Field(default=None, description="Mailgun API key")
    domain: str | None = Field(default=None, description="Sending domain")
    sender: str = Field(default="OSS Bot <ossbot@example.com>", description="From header for notifications")
    base_url: str = Field(default="https://api.mailgun.net/v3", description="Mailgun API base URL")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.get_secret_value() and self.domain)


class SweepSettings(BaseModel):
    """Cron sweep behavior."""

    max_concurrency: int = Field(default=4, ge=1, le=32, description="Issues evaluated concurrently")
    request_delay_seconds: float = Field(
        default=0.5, ge=0.0, description="Pause after each issue to stay under API rate limits"
    )


class BotSettings(BaseSettings):
    """Main bot settings.

    Values come from a YAML file (see :meth:`from_yaml`) or from
    ``OSSBOT_``-prefixed environment variables, e.g.
    ``OSSBOT_GITHUB__TOKEN``.
    """

    model_config = SettingsConfigDict(
        env_prefix="OSSBOT_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    mailgun: MailgunSettings = Field(default_factory=MailgunSettings)
    repo_config_path: str = Field(default="config/repos.yaml", description="Path to the per-repo config file")
    webhook_secret: SecretStr | None = Field(default=None, description="Secret for X-Hub-Signature-256 checks")
    cleanup: SweepSettings = Field(default_factory=SweepSettings)
    log_level: str = Field(default="INFO", description="Root log level")

    @classmethod
    def from_yaml(cls, config_path: str) -> BotSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            BotSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        Raises:
            ValueError: If a required environment variable is not set

        Note:
            YAML comment lines (starting with #) are left unchanged.
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
