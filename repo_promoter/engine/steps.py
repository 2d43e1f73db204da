"""
Steps of a promotion run.

Each step wraps exactly one provider operation, so the saga in
``repo_promoter.engine.promotion`` reads as the ordered chain it is:

    BranchResolver -> BranchCreator -> CommitCollector -> CherryPickExecutor
    -> PromotionFinalizer | FailureReporter

Steps never retry and never undo: a step either returns or the provider's
error propagates (except replay failures, which the CherryPickExecutor turns
into a ``CherryPickConflict`` outcome).
"""

import structlog

from repo_promoter.config.settings import RepositoryConfig
from repo_promoter.engine.references import format_reference
from repo_promoter.exceptions import CherryPickError
from repo_promoter.models.domain import (
    Branch,
    CherryPickApplied,
    CherryPickConflict,
    CherryPickOutcome,
    Comment,
    Issue,
    PullRequest,
)
from repo_promoter.providers.base import GitProvider

log = structlog.get_logger(__name__)


def promotion_branch_name(source_branch: str, target: str) -> str:
    """Name of the branch a promotion replays onto: ``<source>-<target>``."""
    return f"{source_branch}-{target}"


def promotion_title(target: str, original_title: str) -> str:
    return f"[{target}] {original_title}"


class BranchResolver:
    """Reads the current head of a branch."""

    def __init__(self, git: GitProvider):
        self.git = git

    async def resolve(self, name: str) -> str:
        """Return the head SHA of ``name``.

        Raises:
            BranchNotFoundError: If the branch cannot be read
        """
        sha = await self.git.get_branch_head(name)
        log.info("branch_resolved", branch=name, sha=sha)
        return sha


class BranchCreator:
    """Creates the promotion branch."""

    def __init__(self, git: GitProvider):
        self.git = git

    async def create(self, name: str, from_sha: str) -> Branch:
        """Create ``name`` at ``from_sha``.

        Raises:
            BranchCreationError: If the branch cannot be created, including
                when it already exists (a duplicate run)
        """
        branch = await self.git.create_branch(name, from_sha)
        log.info("branch_created", branch=branch.name, sha=branch.sha)
        return branch


class CommitCollector:
    """Lists the commits of the originating pull request."""

    def __init__(self, git: GitProvider):
        self.git = git

    async def collect(self, pr_number: int) -> list[str]:
        """Commit SHAs of ``pr_number``, oldest first.

        Raises:
            CommitListError: If the commits cannot be listed
        """
        commits = await self.git.list_pull_request_commits(pr_number)
        log.info("commits_collected", pr=pr_number, count=len(commits))
        return commits


class CherryPickExecutor:
    """Replays commits onto the promotion branch.

    The replay is the only step whose failure does not end the run, so it
    returns a tagged outcome instead of raising.
    """

    def __init__(self, git: GitProvider):
        self.git = git

    async def apply(self, commits: list[str], onto_branch: str) -> CherryPickOutcome:
        """Replay ``commits`` in order onto ``onto_branch``.

        Returns:
            CherryPickApplied with the new head, or CherryPickConflict with the
            cause and the full requested commit list. A conflict leaves the
            branch at the last commit that replayed cleanly.
        """
        log.info("cherry_pick_started", branch=onto_branch, commits=commits)

        try:
            head_sha = await self.git.cherry_pick(list(commits), onto_branch)
        except CherryPickError as e:
            log.warning("cherry_pick_conflict", branch=onto_branch, commit=e.sha, error=e.message)
            return CherryPickConflict(cause=e.message, commits=tuple(commits))

        log.info("cherry_pick_applied", branch=onto_branch, head=head_sha)
        return CherryPickApplied(head_sha=head_sha)


class PromotionFinalizer:
    """Opens the promotion pull request after a successful replay."""

    def __init__(self, git: GitProvider, repository: RepositoryConfig):
        self.git = git
        self.repository = repository

    async def open_request(
        self,
        target: str,
        source: PullRequest,
        branch: str,
        issue: Issue,
    ) -> PullRequest:
        """Open ``branch`` -> ``target`` titled ``[<target>] <source title>``.

        The body cross-references the coordinating issue.

        Raises:
            RequestCreationError: If the pull request cannot be opened. This is
                terminal; the replayed branch stays for manual completion.
        """
        title = promotion_title(target, source.title)
        body = f"Tracked by {format_reference(self.repository, issue.number)}"

        pull_request = await self.git.create_pull_request(title=title, body=body, head=branch, base=target)
        log.info("promotion_request_opened", pr=pull_request.number, head=branch, base=target, title=title)
        return pull_request


class FailureReporter:
    """Posts the compensating comment when a replay fails."""

    def __init__(self, git: GitProvider):
        self.git = git

    @staticmethod
    def render(target: str, commits: list[str] | tuple[str, ...], cause: str) -> str:
        lines = [
            f"Promotion to {target} failed due to '{cause}'.",
            "Commits to be cherry-picked:",
        ]
        lines.extend(commits)
        return "\n".join(lines) + "\n"

    async def report(
        self,
        issue_number: int,
        target: str,
        commits: list[str] | tuple[str, ...],
        cause: str,
    ) -> Comment:
        """Comment on the coordinating issue with the cause and every requested commit.

        Never touches the partially replayed branch.
        """
        comment = await self.git.add_comment(issue_number, self.render(target, commits, cause))
        log.info("promotion_failure_reported", issue=issue_number, comment=comment.id, commits=len(commits))
        return comment
