"""
Domain models for the promoter.

This module contains the data classes representing the entities a promotion
run works with: the coordinating (tracking) issue, the originating pull
request, branches, comments, the cherry-pick outcome and the run result.
These are the normalized internal representation, converted from
provider-specific formats (PyGithub objects, webhook payloads).

Example:
    Creating an issue from provider data::

        issue = Issue(
            number=7,
            title="[Tracking] Fix projection restart",
            body="Tracking org/repo#482",
            labels=["tracking"],
            url="https://github.com/org/repo/issues/7",
        )
"""

from dataclasses import dataclass, field
from enum import Enum


class IssueState(str, Enum):
    """Enumeration of possible issue states."""

    OPEN = "open"
    CLOSED = "closed"


class PromotionStatus(str, Enum):
    """How a promotion run ended.

    OPENED: commits replayed and the promotion pull request was opened.
    DEGRADED: replay failed and the failure was reported on the tracking issue.
    """

    OPENED = "opened"
    DEGRADED = "degraded"


@dataclass
class Issue:
    """Represents a coordinating (tracking) issue.

    The body embeds a reference to the originating pull request, and the
    labels must include the marker label before a promotion is accepted.
    """

    number: int
    """Human-readable issue number (e.g., #42)."""

    title: str
    """Issue title."""

    body: str
    """Issue description in markdown. Empty string when the issue has none."""

    labels: list[str] = field(default_factory=list)
    """Label names attached to the issue."""

    state: IssueState = IssueState.OPEN
    """Current state of the issue."""

    url: str = ""
    """Web URL to view the issue."""


@dataclass
class Comment:
    """Represents an issue comment."""

    id: int
    body: str
    author: str = ""
    url: str = ""


@dataclass
class Branch:
    """Represents a Git branch.

    ``name`` does not include the ``refs/heads/`` prefix; ``sha`` is the full
    commit SHA the branch pointed at when it was read or created.
    """

    name: str
    sha: str

    @property
    def ref(self) -> str:
        """Fully qualified ref name."""
        return f"refs/heads/{self.name}"


@dataclass
class PullRequest:
    """Represents a pull request.

    Used both for the originating request (whose ``head`` names the source
    branch of the promotion) and for the promotion request opened by a run.
    """

    number: int
    title: str
    body: str
    head: str
    """Source branch name."""

    base: str
    """Target branch name."""

    url: str = ""
    state: str = "open"
    merged: bool = False
    assignees: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class IssueReference:
    """A ``[owner/repo]#number`` reference found in free text.

    ``owner`` and ``repo`` are None for a bare ``#number`` reference.
    """

    number: int
    owner: str | None = None
    repo: str | None = None

    @property
    def qualified(self) -> bool:
        return self.owner is not None

    def __str__(self) -> str:
        if self.qualified:
            return f"{self.owner}/{self.repo}#{self.number}"
        return f"#{self.number}"


@dataclass(frozen=True)
class LabelEvent:
    """An ``issues`` / ``labeled`` trigger.

    Carries the coordinating issue exactly as the event delivered it and the
    name of the label that was just applied.
    """

    issue: Issue
    label: str


@dataclass(frozen=True)
class MergeEvent:
    """A ``pull_request`` / ``closed`` trigger."""

    pull_request: PullRequest


# =============================================================================
# Cherry-pick outcome
# =============================================================================


@dataclass(frozen=True)
class CherryPickApplied:
    """Every requested commit was replayed; ``head_sha`` is the new branch head."""

    head_sha: str


@dataclass(frozen=True)
class CherryPickConflict:
    """Replay stopped before completing.

    ``commits`` is always the full originally requested list; the run does
    not track which commits, if any, landed before the failure.
    """

    cause: str
    commits: tuple[str, ...]


CherryPickOutcome = CherryPickApplied | CherryPickConflict


@dataclass
class PromotionResult:
    """Outcome of one promotion run.

    Exactly one of ``pull_request`` (status OPENED) or ``failure_comment``
    (status DEGRADED) is set.
    """

    status: PromotionStatus
    issue_number: int
    target: str
    branch: str
    commits: list[str]
    pull_request: PullRequest | None = None
    failure_comment: Comment | None = None
    cause: str | None = None

    @property
    def degraded(self) -> bool:
        return self.status == PromotionStatus.DEGRADED

    def summary(self) -> str:
        """One-line human-readable description of the result."""
        if self.pull_request is not None:
            return f"Opened #{self.pull_request.number} from {self.branch} into {self.target}"
        return f"Promotion to {self.target} failed and was reported on #{self.issue_number}: {self.cause}"
