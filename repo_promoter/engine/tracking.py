"""
Tracking issue bookkeeping on merged pull requests.

- Merged into the development branch: open a tracking issue for the change.
- Merged into a promotion channel: comment on the tracking issue the pull
  request body references, and close it once the final channel is reached.
- Anything else (other bases, closed without merge): ignored.
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog

from repo_promoter.config.settings import PromoterSettings
from repo_promoter.engine.references import IssueReferenceResolver, format_reference
from repo_promoter.models.domain import Comment, Issue, MergeEvent, PullRequest
from repo_promoter.providers.base import GitProvider

log = structlog.get_logger(__name__)


class TrackingAction(str, Enum):
    """What the bookkeeper did for a merge event."""

    IGNORED = "ignored"
    ISSUE_CREATED = "issue_created"
    COMMENTED = "commented"
    CLOSED = "closed"


@dataclass
class TrackingResult:
    action: TrackingAction
    issue: Issue | None = None
    comments: list[Comment] = field(default_factory=list)
    reason: str | None = None


def merged_message(pull_request: PullRequest) -> str:
    return f"PR {pull_request.url} has been merged into {pull_request.base}"


class TrackingBookkeeper:
    """Keeps tracking issues in step with merges along the promotion path."""

    def __init__(self, settings: PromoterSettings, git: GitProvider):
        self.settings = settings
        self.git = git
        self.references = IssueReferenceResolver(settings.repository)

    async def handle_merge(self, event: MergeEvent) -> TrackingResult:
        """Apply the bookkeeping for a closed pull request.

        Raises:
            MalformedReferenceError: If a channel merge has no tracking reference
            ExternalServiceError: If an issue call fails
        """
        pull_request = event.pull_request
        base = pull_request.base
        promotion = self.settings.promotion

        if not pull_request.merged:
            return TrackingResult(TrackingAction.IGNORED, reason="Pull request was closed without merging")

        if base == self.settings.repository.development_branch:
            return await self._open_tracking_issue(pull_request)

        if base not in promotion.channels:
            log.debug("tracking_ignored_base", base=base, pr=pull_request.number)
            return TrackingResult(TrackingAction.IGNORED, reason=f"Base branch '{base}' is not tracked")

        issue_number = self.references.resolve(pull_request.body)
        log.info("tracking_issue_comment", issue=issue_number, pr=pull_request.number, base=base)
        comment = await self.git.add_comment(issue_number, merged_message(pull_request))

        if base != promotion.final_channel:
            return TrackingResult(TrackingAction.COMMENTED, comments=[comment])

        log.info("tracking_issue_closing", issue=issue_number, base=base)
        issue = await self.git.update_issue(issue_number, state="closed")
        return TrackingResult(TrackingAction.CLOSED, issue=issue, comments=[comment])

    async def _open_tracking_issue(self, pull_request: PullRequest) -> TrackingResult:
        promotion = self.settings.promotion
        title = f"{promotion.tracking_title_prefix} {pull_request.title}"
        body = (
            f"Tracking {format_reference(self.settings.repository, pull_request.number)}\n"
            f"{merged_message(pull_request)}"
        )

        log.info("tracking_issue_create", pr=pull_request.number, assignees=pull_request.assignees)
        issue = await self.git.create_issue(
            title=title,
            body=body,
            labels=[promotion.marker_label],
            assignees=pull_request.assignees,
        )
        return TrackingResult(TrackingAction.ISSUE_CREATED, issue=issue)
