"""
Precondition checks for label-triggered promotions.

Runs before any remote call: a rejected event leaves the repository untouched.
"""

from collections.abc import Iterable

import structlog

from repo_promoter.config.settings import PromotionConfig
from repo_promoter.exceptions import InvalidLabelError, MissingMarkerError

log = structlog.get_logger(__name__)


class PreconditionValidator:
    """Accepts a label event only for a promotion channel on a tracking issue."""

    def __init__(self, config: PromotionConfig):
        self.channels = frozenset(config.channels)
        self.marker_label = config.marker_label

    def validate(self, label: str, issue_labels: Iterable[str]) -> str:
        """Check the applied label and the issue's label set.

        Args:
            label: The label that was just applied
            issue_labels: All labels currently on the coordinating issue

        Returns:
            The target branch name (the channel label itself)

        Raises:
            InvalidLabelError: If ``label`` is not a promotion channel
            MissingMarkerError: If the issue lacks the marker label
        """
        if label not in self.channels:
            log.info("precondition_rejected", reason="invalid_label", label=label)
            raise InvalidLabelError(label)

        if self.marker_label not in set(issue_labels):
            log.info("precondition_rejected", reason="missing_marker", marker=self.marker_label)
            raise MissingMarkerError(self.marker_label)

        return label
