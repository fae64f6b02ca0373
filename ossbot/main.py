"""CLI entry point for the bot."""

import asyncio
import json
import sys
from pathlib import Path

import click
import structlog

from ossbot.config.repos import BotConfig
from ossbot.config.settings import BotSettings
from ossbot.engine.cleanup import CronHandler
from ossbot.engine.template import TemplateChecker
from ossbot.enums import ValidationLevel
from ossbot.exceptions import ConfigurationError, OssBotError
from ossbot.utils.logging_config import configure_logging
from ossbot.webhook_server import BotRuntime, route_event

log = structlog.get_logger(__name__)


@click.group()
@click.option("--config", default=None, help="Path to settings file (defaults to OSSBOT_ environment variables)")
@click.option("--repo-config", default=None, help="Override the repo config path from the settings")
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str | None, repo_config: str | None, log_level: str) -> None:
    """ossbot: GitHub issue triage and cleanup bot."""
    configure_logging(log_level)
    ctx.obj = {"config_path": config, "repo_config": repo_config}


def _load_settings(ctx: click.Context) -> BotSettings:
    config_path = ctx.obj["config_path"]
    try:
        settings = BotSettings.from_yaml(config_path) if config_path else BotSettings()
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    if ctx.obj["repo_config"]:
        settings.repo_config_path = ctx.obj["repo_config"]
    return settings


def _load_repo_config(path: str) -> BotConfig:
    try:
        return BotConfig.from_file(path)
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Bind address")  # nosec B104
@click.option("--port", default=8000, type=int, help="Bind port")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the webhook server."""
    import uvicorn

    from ossbot.webhook_server import create_app

    settings = _load_settings(ctx)
    uvicorn.run(create_app(settings=settings), host=host, port=port)


@cli.command()
@click.option("--dry-run", is_flag=True, help="Print actions instead of executing them")
@click.pass_context
def cleanup(ctx: click.Context, dry_run: bool) -> None:
    """Sweep all configured repos for stale issues and old pull requests."""
    settings = _load_settings(ctx)
    try:
        asyncio.run(_cleanup(settings, dry_run))
    except OssBotError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("cleanup_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


async def _cleanup(settings: BotSettings, dry_run: bool) -> None:
    runtime = await BotRuntime.from_settings(settings)
    handler = CronHandler(
        runtime.github,
        runtime.config,
        settings=settings.cleanup,
        bot_login=settings.github.bot_login,
    )

    result = await handler.sweep()
    click.echo(f"Checked {result.issues_checked} issues, {len(result.actions)} actions")
    for key, error in result.failures.items():
        click.echo(f"  failed {key}: {error}", err=True)

    if dry_run:
        for action in result.actions:
            click.echo(f"  {action}")
        return

    dispatched = await runtime.dispatcher.dispatch_each(result.actions)
    click.echo(f"Executed {len(dispatched.succeeded)} actions, {len(dispatched.failed)} failed")


@cli.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--event", "event_type", default="issues", help="GitHub event name of the payload")
@click.option("--execute", is_flag=True, help="Execute the actions instead of printing them")
@click.pass_context
def classify(ctx: click.Context, payload_file: str, event_type: str, execute: bool) -> None:
    """Run a saved webhook payload through the handlers."""
    settings = _load_settings(ctx)
    try:
        payload = json.loads(Path(payload_file).read_text())
    except json.JSONDecodeError as e:
        click.echo(f"Error: invalid payload: {e}", err=True)
        sys.exit(1)

    try:
        asyncio.run(_classify(settings, event_type, payload, execute))
    except (KeyError, TypeError) as e:
        click.echo(f"Error: payload is missing fields: {e}", err=True)
        sys.exit(1)
    except OssBotError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)


async def _classify(settings: BotSettings, event_type: str, payload: dict, execute: bool) -> None:
    runtime = await BotRuntime.from_settings(settings)
    actions = await route_event(runtime, event_type, payload)

    if not actions:
        click.echo("No actions")
        return

    for action in actions:
        click.echo(str(action))

    if execute:
        result = await runtime.dispatcher.dispatch_all(actions)
        click.echo(f"Executed {len(result.succeeded)} actions, {len(result.failed)} failed")


@cli.command("check-template")
@click.argument("template_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("issue_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--level",
    type=click.Choice([level.value for level in ValidationLevel]),
    default=ValidationLevel.STRICT.value,
    help="Required section validation level",
)
def check_template(template_file: str, issue_file: str, level: str) -> None:
    """Check an issue body against a template, offline."""
    checker = TemplateChecker(Path(template_file).read_text())
    body = Path(issue_file).read_text()

    sections = checker.matches_template_sections(body)
    required = checker.get_required_sections_empty(body)
    result = checker.check(body, ValidationLevel(level))

    click.echo(f"Sections: {', '.join(sections.all) or '(none)'}")
    if sections.invalid:
        click.echo(f"Missing sections: {', '.join(sections.invalid)}")
    if required.invalid:
        click.echo(f"Empty required sections: {', '.join(required.invalid)}")
    click.echo(f"Result: {result.kind.value}")

    if not result.matches:
        sys.exit(1)


@cli.command("show-config")
@click.option("--repo", "repo_name", default=None, help="Show one repo as org/name")
@click.pass_context
def show_config(ctx: click.Context, repo_name: str | None) -> None:
    """Show the repo config as the bot resolves it."""
    path = ctx.obj["repo_config"] or _load_settings(ctx).repo_config_path
    config = _load_repo_config(path)

    if repo_name is None:
        for ref in config.get_all_repos():
            features = config.get_repo_features(ref.org, ref.name)
            enabled = [name for name, on in vars(features).items() if on]
            click.echo(f"{ref.org}/{ref.name}: {', '.join(enabled) or 'no features'}")
        return

    org, _, name = repo_name.partition("/")
    repo_config = config.get_repo_config(org, name)
    if repo_config is None:
        click.echo(f"No config for {repo_name}", err=True)
        sys.exit(1)

    click.echo(repo_config.model_dump_json(indent=2, exclude_none=True))


if __name__ == "__main__":
    cli()
