"""CLI command for tracking-issue bookkeeping on merged pull requests."""

import asyncio
import sys

import click
import structlog

from repo_promoter.cli.events import load_event_payload
from repo_promoter.config.settings import PromoterSettings
from repo_promoter.engine.event_classifier import EventClassifier
from repo_promoter.engine.tracking import TrackingBookkeeper, TrackingResult
from repo_promoter.exceptions import RepoPromoterError
from repo_promoter.models.domain import MergeEvent
from repo_promoter.providers.factory import create_git_provider

log = structlog.get_logger(__name__)


@click.command(name="process-merge")
@click.option("--event-data", required=False, help="JSON event payload (or pass via stdin)")
@click.option(
    "--event-path",
    envvar="GITHUB_EVENT_PATH",
    required=False,
    type=click.Path(dir_okay=False),
    help="Path to the event payload file (defaults to $GITHUB_EVENT_PATH)",
)
@click.pass_context
def process_merge_command(ctx: click.Context, event_data: str | None, event_path: str | None) -> None:
    """Open, update or close the tracking issue for a merged pull request.

    Designed to run from a GitHub Actions workflow on ``pull_request: [closed]``.
    """
    settings: PromoterSettings = ctx.obj["settings"]
    payload = load_event_payload(event_data, event_path)

    classified = EventClassifier().classify("pull_request.closed", payload)
    if not classified.should_process or classified.merge_event is None:
        click.echo(f"Event skipped: {classified.skip_reason}")
        return

    try:
        result = asyncio.run(_process_merge_event(settings, classified.merge_event))
    except RepoPromoterError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("process_merge_error", exc_info=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("process_merge_unexpected", exc_info=True)
        sys.exit(1)

    if result.issue is not None:
        click.echo(f"Tracking issue #{result.issue.number}: {result.action.value}")
    else:
        click.echo(f"Tracking: {result.action.value}" + (f" ({result.reason})" if result.reason else ""))


async def _process_merge_event(settings: PromoterSettings, event: MergeEvent) -> TrackingResult:
    git = create_git_provider(settings)
    await git.connect()
    try:
        return await TrackingBookkeeper(settings, git).handle_merge(event)
    finally:
        await git.disconnect()
