"""CLI command for processing promotion label events."""

import asyncio
import sys

import click
import structlog

from repo_promoter.cli.events import load_event_payload
from repo_promoter.config.settings import PromoterSettings
from repo_promoter.engine.event_classifier import EventClassifier
from repo_promoter.engine.preconditions import PreconditionValidator
from repo_promoter.engine.promotion import PromotionSaga
from repo_promoter.exceptions import RepoPromoterError
from repo_promoter.models.domain import LabelEvent, PromotionResult
from repo_promoter.providers.factory import create_git_provider

log = structlog.get_logger(__name__)


@click.command(name="process-label")
@click.option("--event-data", required=False, help="JSON event payload (or pass via stdin)")
@click.option(
    "--event-path",
    envvar="GITHUB_EVENT_PATH",
    required=False,
    type=click.Path(dir_okay=False),
    help="Path to the event payload file (defaults to $GITHUB_EVENT_PATH)",
)
@click.pass_context
def process_label_command(ctx: click.Context, event_data: str | None, event_path: str | None) -> None:
    """Promote the change a tracking issue references onto the labeled channel.

    Designed to run from a GitHub Actions workflow on ``issues: [labeled]``.

    Examples:

        # From GitHub Actions (payload read from $GITHUB_EVENT_PATH)
        promoter process-label

        # With an explicit payload
        promoter process-label --event-data \\
            '{"label": {"name": "stable"}, "issue": {"number": 7, "body": "Tracking org/repo#42", "labels": [{"name": "tracking"}]}}'
    """
    settings: PromoterSettings = ctx.obj["settings"]
    payload = load_event_payload(event_data, event_path)
    # Payloads from Actions carry "action"; hand-written ones may not.
    event_type = "issues" if payload.get("action") else "issues.labeled"

    classified = EventClassifier().classify(event_type, payload)
    if not classified.should_process or classified.label_event is None:
        click.echo(f"Event skipped: {classified.skip_reason}")
        return

    try:
        result = asyncio.run(_process_label_event(settings, classified.label_event))
    except RepoPromoterError as e:
        click.echo(f"Error: {e.message}", err=True)
        log.debug("process_label_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)
    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        log.error("process_label_unexpected", exc_info=True)
        sys.exit(1)

    if result.degraded:
        click.echo(f"Promotion degraded: {result.summary()}")
    else:
        click.echo(result.summary())


async def _process_label_event(settings: PromoterSettings, event: LabelEvent) -> PromotionResult:
    """Run one promotion with a freshly connected provider."""
    # Rejected events never open a connection.
    PreconditionValidator(settings.promotion).validate(event.label, event.issue.labels)

    git = create_git_provider(settings)
    await git.connect()
    try:
        return await PromotionSaga(settings, git).run(event)
    finally:
        await git.disconnect()
