"""Custom exception hierarchy for the repo-promoter system.

Exception Hierarchy:
    RepoPromoterError (base)
    ├── ConfigurationError
    ├── ExternalServiceError
    ├── InvalidTransitionError
    └── PromotionError
        ├── InvalidLabelError
        ├── MissingMarkerError
        ├── MalformedReferenceError
        ├── BranchNotFoundError
        ├── PullRequestNotFoundError
        ├── BranchCreationError
        ├── CommitListError
        ├── CherryPickError
        │   └── CherryPickConflictError
        └── RequestCreationError

Promotion errors carry the saga ``stage`` they were raised in, so a failed run
can be logged and reported with the step that stopped it.

Example Usage:
    >>> from repo_promoter.exceptions import BranchNotFoundError
    >>> try:
    ...     sha = await git.get_branch_head("stable")
    ... except GithubException as e:
    ...     raise BranchNotFoundError("Branch not found: stable", branch="stable") from e
"""


class RepoPromoterError(Exception):
    """Base exception for all repo-promoter errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        """Initialize exception.

        Args:
            message: Error message
        """
        self.message = message
        super().__init__(message)


class ConfigurationError(RepoPromoterError):
    """Configuration-related errors.

    Examples:
        - Configuration file not found
        - Invalid YAML syntax
        - Missing required configuration fields
    """

    pass


class ExternalServiceError(RepoPromoterError):
    """External service communication errors (HTTP errors, API failures).

    Attributes:
        status_code: HTTP status code (if applicable)
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            status_code: HTTP status code (if applicable)
        """
        self.status_code = status_code

        full_message = message
        if status_code:
            full_message = f"{message} (HTTP {status_code})"

        super().__init__(full_message)
        self.message = message


class InvalidTransitionError(RepoPromoterError):
    """A run status transition that the transition table does not allow."""

    pass


# =============================================================================
# Promotion Errors
# =============================================================================


class PromotionError(RepoPromoterError):
    """Base exception for promotion run failures.

    Attributes:
        message: Human-readable error description
        stage: Saga stage that raised the error (e.g., "create_branch")
    """

    stage = "promotion"

    def __init__(self, message: str, stage: str | None = None) -> None:
        """Initialize exception.

        Args:
            message: Error message
            stage: Saga stage override; defaults to the class-level stage
        """
        if stage is not None:
            self.stage = stage
        super().__init__(message)


class InvalidLabelError(PromotionError):
    """The applied label is not one of the configured promotion channels."""

    stage = "validate"

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Invalid label applied: '{label}'")


class MissingMarkerError(PromotionError):
    """The coordinating issue does not carry the marker (tracking) label."""

    stage = "validate"

    def __init__(self, marker_label: str) -> None:
        self.marker_label = marker_label
        super().__init__(f"Issue does not have the '{marker_label}' label")


class MalformedReferenceError(PromotionError):
    """Free text does not contain a reference in the ``[owner/repo]#N`` grammar."""

    stage = "resolve_reference"


class BranchNotFoundError(PromotionError):
    """A branch head could not be read."""

    stage = "resolve_branch"

    def __init__(self, message: str, branch: str | None = None) -> None:
        self.branch = branch
        super().__init__(message)


class PullRequestNotFoundError(PromotionError):
    """The originating pull request could not be fetched."""

    stage = "resolve_reference"


class BranchCreationError(PromotionError):
    """Creating the promotion branch failed (e.g., the name already exists)."""

    stage = "create_branch"

    def __init__(self, message: str, branch: str | None = None) -> None:
        self.branch = branch
        super().__init__(message)


class CommitListError(PromotionError):
    """Listing the commits of the originating pull request failed."""

    stage = "collect_commits"


class CherryPickError(PromotionError):
    """Replaying commits onto the promotion branch failed.

    Attributes:
        commits: The full, originally requested commit list
        sha: The commit being replayed when the failure happened, if known
    """

    stage = "cherry_pick"

    def __init__(
        self,
        message: str,
        commits: list[str] | None = None,
        sha: str | None = None,
    ) -> None:
        self.commits = list(commits or [])
        self.sha = sha
        super().__init__(message)


class CherryPickConflictError(CherryPickError):
    """A commit does not apply cleanly onto the promotion branch."""

    pass


class RequestCreationError(PromotionError):
    """Opening the promotion pull request failed. Not compensated."""

    stage = "open_request"
