"""
Event classification for GitHub triggers.

Normalizes webhook / GitHub Actions payloads into the events the promoter
handles and tells the caller why anything else is skipped.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from repo_promoter.models.domain import Issue, IssueState, LabelEvent, MergeEvent, PullRequest

log = structlog.get_logger(__name__)


class TriggerType(str, Enum):
    """Kind of trigger an event maps to."""

    LABEL_ADDED = "label_added"
    PR_CLOSED = "pr_closed"
    UNSUPPORTED = "unsupported"


@dataclass
class ClassifiedEvent:
    """Result of event classification."""

    trigger_type: TriggerType
    label_event: LabelEvent | None = None
    merge_event: MergeEvent | None = None
    should_process: bool = True
    skip_reason: str | None = None


def _label_names(raw_labels: Any) -> list[str]:
    names: list[str] = []
    for entry in raw_labels or []:
        if isinstance(entry, dict) and isinstance(entry.get("name"), str):
            names.append(entry["name"])
        elif isinstance(entry, str):
            names.append(entry)
    return names


def parse_issue(data: dict[str, Any]) -> Issue:
    """Build an Issue from a webhook ``issue`` object."""
    return Issue(
        number=int(data["number"]),
        title=data.get("title") or "",
        body=data.get("body") or "",
        labels=_label_names(data.get("labels")),
        state=IssueState.CLOSED if data.get("state") == "closed" else IssueState.OPEN,
        url=data.get("html_url") or "",
    )


def parse_pull_request(data: dict[str, Any]) -> PullRequest:
    """Build a PullRequest from a webhook ``pull_request`` object."""
    return PullRequest(
        number=int(data["number"]),
        title=data.get("title") or "",
        body=data.get("body") or "",
        head=(data.get("head") or {}).get("ref", ""),
        base=(data.get("base") or {}).get("ref", ""),
        url=data.get("html_url") or "",
        state=data.get("state") or "closed",
        merged=bool(data.get("merged")),
        assignees=[a["login"] for a in data.get("assignees") or [] if isinstance(a, dict) and "login" in a],
    )


class EventClassifier:
    """Classifies GitHub events.

    ``event_type`` is either the bare ``X-GitHub-Event`` name (``issues``)
    with the action read from the payload, or a dotted ``issues.labeled``
    form as passed on the command line.
    """

    def classify(self, event_type: str, payload: dict[str, Any]) -> ClassifiedEvent:
        name, _, action = event_type.lower().partition(".")
        action = action or str(payload.get("action") or "")

        log.info("classifying_event", trigger=name, action=action)

        try:
            if name == "issues" and action == "labeled":
                return self._classify_label(payload)
            if name == "pull_request" and action == "closed":
                return self._classify_merge(payload)
        except (KeyError, TypeError, ValueError) as e:
            return ClassifiedEvent(
                trigger_type=TriggerType.UNSUPPORTED,
                should_process=False,
                skip_reason=f"Malformed {name} payload: {e}",
            )

        return ClassifiedEvent(
            trigger_type=TriggerType.UNSUPPORTED,
            should_process=False,
            skip_reason=f"Unhandled event: {name}.{action}" if action else f"Unhandled event: {name}",
        )

    def _classify_label(self, payload: dict[str, Any]) -> ClassifiedEvent:
        label = payload.get("label") or {}
        if not label.get("name"):
            return ClassifiedEvent(
                trigger_type=TriggerType.LABEL_ADDED,
                should_process=False,
                skip_reason="Label event without a label name",
            )
        if "issue" not in payload:
            return ClassifiedEvent(
                trigger_type=TriggerType.LABEL_ADDED,
                should_process=False,
                skip_reason="Label event without an issue",
            )
        issue_data = payload["issue"]
        if "pull_request" in issue_data:
            return ClassifiedEvent(
                trigger_type=TriggerType.LABEL_ADDED,
                should_process=False,
                skip_reason="Labels on pull requests do not trigger promotions",
            )

        return ClassifiedEvent(
            trigger_type=TriggerType.LABEL_ADDED,
            label_event=LabelEvent(issue=parse_issue(issue_data), label=label["name"]),
        )

    def _classify_merge(self, payload: dict[str, Any]) -> ClassifiedEvent:
        pull_request = parse_pull_request(payload["pull_request"])
        if not pull_request.merged:
            return ClassifiedEvent(
                trigger_type=TriggerType.PR_CLOSED,
                should_process=False,
                skip_reason=f"Pull request #{pull_request.number} was closed without merging",
            )
        return ClassifiedEvent(trigger_type=TriggerType.PR_CLOSED, merge_event=MergeEvent(pull_request=pull_request))
