"""CLI entry point for the promoter."""

import sys
from pathlib import Path

import click
import structlog

from repo_promoter.cli.process_label import process_label_command
from repo_promoter.cli.process_merge import process_merge_command
from repo_promoter.config.settings import PromoterSettings
from repo_promoter.exceptions import ConfigurationError
from repo_promoter.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)


@click.group()
@click.option(
    "--config",
    default="promoter.yaml",
    envvar="PROMOTER_CONFIG",
    help="Path to configuration file",
)
@click.option("--log-level", default="INFO", help="Logging level")
@click.pass_context
def cli(ctx: click.Context, config: str, log_level: str) -> None:
    """repo-promoter: cherry-pick merged changes onto release channels."""
    configure_logging(log_level)

    config_path = Path(config)
    if not config_path.exists():
        click.echo(f"Error: Configuration file not found: {config}", err=True)
        sys.exit(1)

    try:
        settings = PromoterSettings.from_yaml(str(config_path))
    except ConfigurationError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("config_error", exc_info=True)
        sys.exit(1)

    ctx.obj = {"settings": settings}


@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", default=8000, type=int, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Run the GitHub webhook server."""
    import uvicorn

    from repo_promoter import webhook_server

    webhook_server.settings = ctx.obj["settings"]
    log.info("webhook_server_starting", host=host, port=port)
    uvicorn.run(webhook_server.app, host=host, port=port)


cli.add_command(process_label_command)
cli.add_command(process_merge_command)


if __name__ == "__main__":
    cli()
