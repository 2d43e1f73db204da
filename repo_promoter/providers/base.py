"""
Abstract base class for Git providers.

This module defines the provider interface a promotion run consumes. It
normalizes provider-specific APIs into a common interface using the domain
models defined in models.domain, and translates provider failures into the
repo_promoter.exceptions hierarchy.
"""

from abc import ABC, abstractmethod

from repo_promoter.models.domain import Branch, Comment, Issue, PullRequest


class GitProvider(ABC):
    """Abstract base class for Git provider implementations.

    All methods are async so a run can await each remote call in sequence
    without blocking the event loop (webhook server).
    """

    async def connect(self) -> None:
        """Initialize the provider client. Default: nothing to do."""

    async def disconnect(self) -> None:
        """Release the provider client. Default: nothing to do."""

    @abstractmethod
    async def get_issue(self, issue_number: int) -> Issue:
        """Get single issue by number.

        Raises:
            ExternalServiceError: If the API request fails.
        """

    @abstractmethod
    async def create_issue(
        self,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> Issue:
        """Create a new issue.

        Raises:
            ExternalServiceError: If the API request fails.
        """

    @abstractmethod
    async def update_issue(self, issue_number: int, state: str | None = None) -> Issue:
        """Update issue state ("open" or "closed"). None leaves it unchanged.

        Raises:
            ExternalServiceError: If the API request fails.
        """

    @abstractmethod
    async def add_comment(self, issue_number: int, comment: str) -> Comment:
        """Add comment to issue.

        Raises:
            ExternalServiceError: If the API request fails.
        """

    @abstractmethod
    async def get_pull_request(self, pr_number: int) -> PullRequest:
        """Get pull request by number.

        Raises:
            PullRequestNotFoundError: If the pull request cannot be fetched.
        """

    @abstractmethod
    async def get_branch_head(self, branch_name: str) -> str:
        """Return the commit SHA the branch currently points to.

        Raises:
            BranchNotFoundError: On any non-success response.
        """

    @abstractmethod
    async def create_branch(self, branch_name: str, from_sha: str) -> Branch:
        """Create ``refs/heads/<branch_name>`` pointing at ``from_sha``.

        Unlike a get-or-create, an existing branch is an error: ref creation
        is atomic on the remote and a collision signals a duplicate run.

        Raises:
            BranchCreationError: If the ref cannot be created.
        """

    @abstractmethod
    async def list_pull_request_commits(self, pr_number: int) -> list[str]:
        """List commit SHAs of a pull request, oldest first.

        Raises:
            CommitListError: If the commits cannot be listed.
        """

    @abstractmethod
    async def cherry_pick(self, commits: list[str], branch_name: str) -> str:
        """Replay ``commits`` in order onto ``branch_name``.

        Returns:
            The new head SHA of the branch.

        Raises:
            CherryPickConflictError: If a commit does not apply cleanly.
            CherryPickError: If any other provider failure stops the replay.
                Either way the branch keeps whatever partial state the replay
                reached.
        """

    @abstractmethod
    async def create_pull_request(self, title: str, body: str, head: str, base: str) -> PullRequest:
        """Create a pull request.

        Raises:
            RequestCreationError: If the pull request cannot be created.
        """
