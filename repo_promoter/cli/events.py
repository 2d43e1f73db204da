"""Shared payload loading for event-processing commands."""

import json
import sys
from pathlib import Path
from typing import Any

import click


def load_event_payload(event_data: str | None, event_path: str | None) -> dict[str, Any]:
    """Read a JSON event payload from an option, a file, or stdin.

    ``event_path`` is what GitHub Actions exposes as ``GITHUB_EVENT_PATH``.

    Raises:
        click.ClickException: If no payload is given or it is not a JSON object
    """
    try:
        if event_data:
            payload = json.loads(event_data)
        elif event_path:
            payload = json.loads(Path(event_path).read_text())
        elif not sys.stdin.isatty():
            payload = json.load(sys.stdin)
        else:
            raise click.ClickException("No event payload: use --event-data, --event-path or stdin")
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON event payload: {e}") from e
    except OSError as e:
        raise click.ClickException(f"Cannot read event file {event_path}: {e}") from e

    if not isinstance(payload, dict):
        raise click.ClickException("Event payload must be a JSON object")
    return payload
