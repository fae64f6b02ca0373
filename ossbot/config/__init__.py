"""Configuration for the bot.

This package holds two independent layers:

Key Components:
    - BotSettings: process settings (credentials, webhook secret, sweep
      concurrency) loaded from YAML or ``OSSBOT_`` environment variables
    - BotConfig: per-repository rules (labels, templates, validation,
      cleanup) loaded from the repo config file

Example:
    >>> from ossbot.config import BotConfig, BotSettings
    >>> settings = BotSettings.from_yaml("ossbot.yaml")
    >>> config = BotConfig.from_file(settings.repo_config_path)
"""

from ossbot.config.repos import BotConfig, RepoConfig
from ossbot.config.settings import BotSettings

__all__ = [
    "BotConfig",
    "BotSettings",
    "RepoConfig",
]
