"""GitHub provider implementation using PyGithub and the REST API."""

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

import structlog
from github import Auth, Github, GithubException, InputGitAuthor  # type: ignore[import-not-found]
from github.GitCommit import GitCommit as GHGitCommit  # type: ignore[import-not-found]
from github.GitRef import GitRef as GHGitRef  # type: ignore[import-not-found]
from github.Issue import Issue as GHIssue  # type: ignore[import-not-found]
from github.IssueComment import IssueComment as GHComment  # type: ignore[import-not-found]
from github.PullRequest import PullRequest as GHPullRequest  # type: ignore[import-not-found]
from github.Repository import Repository as GHRepository  # type: ignore[import-not-found]

from repo_promoter.exceptions import (
    BranchCreationError,
    BranchNotFoundError,
    CherryPickConflictError,
    CherryPickError,
    CommitListError,
    ExternalServiceError,
    PullRequestNotFoundError,
    RequestCreationError,
)
from repo_promoter.models.domain import Branch, Comment, Issue, IssueState, PullRequest
from repo_promoter.providers.base import GitProvider

log = structlog.get_logger(__name__)

T = TypeVar("T")

# Status GitHub's merge endpoint answers with when the merge conflicts.
MERGE_CONFLICT_STATUS = 409


async def _run_sync(func: Callable[[], T]) -> T:
    """Run a synchronous function in a thread pool.

    This prevents blocking the event loop when calling synchronous
    PyGithub methods.
    """
    return await asyncio.to_thread(func)


def _error_detail(e: GithubException) -> str:
    """Extract GitHub's error message from an exception payload."""
    data = e.data if isinstance(e.data, dict) else {}
    message = data.get("message")
    return str(message) if message else str(e)


def _input_author(author: object) -> InputGitAuthor:
    """Copy a GitAuthor into an InputGitAuthor, keeping the original date."""
    date = getattr(author, "date", None)
    if isinstance(date, datetime):
        return InputGitAuthor(author.name, author.email, date.strftime("%Y-%m-%dT%H:%M:%SZ"))
    return InputGitAuthor(author.name, author.email)


class GitHubRestProvider(GitProvider):
    """GitHub implementation using PyGithub library."""

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        base_url: str = "https://api.github.com",
    ):
        """Initialize GitHub provider.

        Args:
            token: GitHub personal access token or App token
            owner: Repository owner (user or organization)
            repo: Repository name
            base_url: GitHub API base URL (for GitHub Enterprise)
        """
        self.token = token.strip() if token else token
        self.owner = owner
        self.repo = repo
        # Pydantic HttpUrl adds a trailing slash
        self.base_url = base_url.rstrip("/")
        self._client: Github | None = None
        self._repo: GHRepository | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    async def connect(self) -> None:
        """Initialize GitHub client."""

        def _connect() -> tuple[Github, GHRepository]:
            client = Github(auth=Auth.Token(self.token), base_url=self.base_url)
            repo = client.get_repo(self.full_name)
            return client, repo

        try:
            self._client, self._repo = await _run_sync(_connect)
        except GithubException as e:
            log.error("github_connect_failed", repo=self.full_name, error=str(e))
            raise ExternalServiceError(
                f"Cannot open repository {self.full_name}: {_error_detail(e)}", status_code=e.status
            ) from e
        log.info("github_connected", base_url=self.base_url, owner=self.owner, repo=self.repo)

    async def disconnect(self) -> None:
        """Close GitHub client."""
        if self._client:
            await _run_sync(self._client.close)
            self._client = None
            self._repo = None

    @property
    def repository(self) -> GHRepository:
        if self._repo is None:
            raise ExternalServiceError("GitHub provider is not connected")
        return self._repo

    # -------------------------------------------------------------------------
    # Issues
    # -------------------------------------------------------------------------

    async def get_issue(self, issue_number: int) -> Issue:
        """Get single issue by number."""
        log.info("get_issue", number=issue_number)

        try:
            gh_issue = await _run_sync(lambda: self.repository.get_issue(issue_number))
            return self._convert_issue(gh_issue)

        except GithubException as e:
            log.error("github_get_issue_failed", number=issue_number, error=str(e))
            raise ExternalServiceError(
                f"Failed to get issue #{issue_number}: {_error_detail(e)}", status_code=e.status
            ) from e

    async def create_issue(
        self,
        title: str,
        body: str,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
    ) -> Issue:
        """Create a new issue."""
        log.info("create_issue", title=title, labels=labels, assignees=assignees)

        try:
            gh_issue = await _run_sync(
                lambda: self.repository.create_issue(
                    title=title,
                    body=body,
                    labels=labels or [],
                    assignees=assignees or [],
                )
            )
            return self._convert_issue(gh_issue)

        except GithubException as e:
            log.error("github_create_issue_failed", error=str(e))
            raise ExternalServiceError(f"Failed to create issue: {_error_detail(e)}", status_code=e.status) from e

    async def update_issue(self, issue_number: int, state: str | None = None) -> Issue:
        """Update issue state."""
        log.info("update_issue", number=issue_number, state=state)

        try:

            def _update() -> GHIssue:
                gh_issue = self.repository.get_issue(issue_number)
                if state is not None:
                    gh_issue.edit(state=state)
                return self.repository.get_issue(issue_number)

            gh_issue = await _run_sync(_update)
            return self._convert_issue(gh_issue)

        except GithubException as e:
            log.error("github_update_issue_failed", number=issue_number, error=str(e))
            raise ExternalServiceError(
                f"Failed to update issue #{issue_number}: {_error_detail(e)}", status_code=e.status
            ) from e

    async def add_comment(self, issue_number: int, comment: str) -> Comment:
        """Add comment to issue."""
        log.info("add_comment", number=issue_number)

        try:

            def _add_comment() -> GHComment:
                gh_issue = self.repository.get_issue(issue_number)
                return gh_issue.create_comment(comment)

            gh_comment = await _run_sync(_add_comment)
            return self._convert_comment(gh_comment)

        except GithubException as e:
            log.error("github_add_comment_failed", number=issue_number, error=str(e))
            raise ExternalServiceError(
                f"Failed to comment on issue #{issue_number}: {_error_detail(e)}", status_code=e.status
            ) from e

    # -------------------------------------------------------------------------
    # Pull requests
    # -------------------------------------------------------------------------

    async def get_pull_request(self, pr_number: int) -> PullRequest:
        """Get pull request by number."""
        log.info("get_pull_request", number=pr_number)

        try:
            gh_pr = await _run_sync(lambda: self.repository.get_pull(pr_number))
            return self._convert_pull_request(gh_pr)

        except GithubException as e:
            log.error("github_get_pr_failed", number=pr_number, error=str(e))
            raise PullRequestNotFoundError(f"Failed to get pull request #{pr_number}: {_error_detail(e)}") from e

    async def list_pull_request_commits(self, pr_number: int) -> list[str]:
        """List commit SHAs of a pull request in GitHub's order (oldest first)."""
        log.info("list_pull_request_commits", number=pr_number)

        try:

            def _list_commits() -> list[str]:
                gh_pr = self.repository.get_pull(pr_number)
                return [commit.sha for commit in gh_pr.get_commits()]

            return await _run_sync(_list_commits)

        except GithubException as e:
            log.error("github_list_commits_failed", number=pr_number, error=str(e))
            raise CommitListError(f"Failed to get commits on PR #{pr_number}: {_error_detail(e)}") from e

    async def create_pull_request(self, title: str, body: str, head: str, base: str) -> PullRequest:
        """Create a pull request."""
        log.info("create_pull_request", title=title, head=head, base=base)

        try:
            gh_pr = await _run_sync(
                lambda: self.repository.create_pull(
                    title=title,
                    body=body,
                    head=head,
                    base=base,
                )
            )
            return self._convert_pull_request(gh_pr)

        except GithubException as e:
            log.error("github_create_pr_failed", head=head, base=base, error=str(e))
            raise RequestCreationError(
                f"Failed to open pull request {head} -> {base}: {_error_detail(e)}"
            ) from e

    # -------------------------------------------------------------------------
    # Branches and commits
    # -------------------------------------------------------------------------

    async def get_branch_head(self, branch_name: str) -> str:
        """Return the SHA ``refs/heads/<branch_name>`` points to."""
        log.info("get_branch_head", branch=branch_name)

        try:
            gh_ref = await _run_sync(lambda: self.repository.get_git_ref(f"heads/{branch_name}"))
            return gh_ref.object.sha

        except GithubException as e:
            log.error("github_get_branch_failed", branch=branch_name, status=e.status, error=str(e))
            raise BranchNotFoundError(
                f"Failed to get branch details for '{branch_name}': {_error_detail(e)}",
                branch=branch_name,
            ) from e

    async def create_branch(self, branch_name: str, from_sha: str) -> Branch:
        """Create a new branch ref at ``from_sha``."""
        log.info("create_branch", branch=branch_name, sha=from_sha)
        branch = Branch(name=branch_name, sha=from_sha)

        try:
            await _run_sync(lambda: self.repository.create_git_ref(ref=branch.ref, sha=from_sha))

        except GithubException as e:
            log.error("github_create_branch_failed", branch=branch_name, status=e.status, error=str(e))
            raise BranchCreationError(
                f"Failed to create branch '{branch_name}': {_error_detail(e)}",
                branch=branch_name,
            ) from e

        return branch

    async def cherry_pick(self, commits: list[str], branch_name: str) -> str:
        """Replay commits onto a branch entirely through the Git Data API.

        For each commit, the branch is temporarily moved to a sibling commit
        (current head tree, original parent) so that merging the original
        commit yields exactly its changes applied on top of the head tree.
        The merge tree is then committed on top of the previous head with the
        original author and message. If a commit fails, the ref is forced back
        to the last replayed head before the error is raised, so the branch
        never keeps a sibling or merge commit.
        """
        log.info("cherry_pick", branch=branch_name, commits=commits)
        current: dict[str, str | None] = {"sha": None}

        def _replay() -> str:
            repo = self.repository
            gh_ref = repo.get_git_ref(f"heads/{branch_name}")
            head = repo.get_git_commit(gh_ref.object.sha)

            try:
                for sha in commits:
                    current["sha"] = sha
                    head = self._replay_commit(repo, gh_ref, head, sha, branch_name)
                    log.debug("cherry_pick_commit_applied", branch=branch_name, commit=sha, head=head.sha)
            except Exception:
                self._restore_ref(gh_ref, head.sha, branch_name)
                raise

            return head.sha

        try:
            new_head = await _run_sync(_replay)

        except CherryPickError as e:
            log.error("cherry_pick_failed", branch=branch_name, commit=e.sha, error=e.message)
            raise CherryPickError(e.message, commits=commits, sha=e.sha) from e

        except GithubException as e:
            failed_sha = current["sha"]
            log.error(
                "github_cherry_pick_failed",
                branch=branch_name,
                commit=failed_sha,
                status=e.status,
                error=str(e),
            )
            if e.status == MERGE_CONFLICT_STATUS:
                raise CherryPickConflictError(
                    f"Merge conflict while cherry-picking {failed_sha} onto {branch_name}",
                    commits=commits,
                    sha=failed_sha,
                ) from e
            raise CherryPickError(
                f"Failed to cherry-pick {failed_sha} onto {branch_name}: {_error_detail(e)}",
                commits=commits,
                sha=failed_sha,
            ) from e

        except Exception as e:
            # Transport errors (timeouts, resets) surface as plain exceptions.
            failed_sha = current["sha"]
            log.error("cherry_pick_transport_failed", branch=branch_name, commit=failed_sha, error=str(e))
            raise CherryPickError(
                f"Failed to cherry-pick {failed_sha} onto {branch_name}: {e}",
                commits=commits,
                sha=failed_sha,
            ) from e

        log.info("cherry_pick_completed", branch=branch_name, head=new_head)
        return new_head

    @staticmethod
    def _restore_ref(gh_ref: GHGitRef, sha: str, branch_name: str) -> None:
        """Force the branch back to ``sha`` after a failed replay."""
        try:
            gh_ref.edit(sha=sha, force=True)
        except Exception as e:
            # The replay error is the one worth raising.
            log.error("cherry_pick_ref_restore_failed", branch=branch_name, head=sha, error=str(e))
        else:
            log.info("cherry_pick_ref_restored", branch=branch_name, head=sha)

    def _replay_commit(
        self,
        repo: GHRepository,
        gh_ref: GHGitRef,
        head: GHGitCommit,
        sha: str,
        branch_name: str,
    ) -> GHGitCommit:
        """Apply a single commit on top of ``head``; returns the new head commit."""
        original = repo.get_git_commit(sha)
        if not original.parents:
            raise CherryPickError(f"Cannot cherry-pick root commit {sha}", sha=sha)
        parent = original.parents[0]

        sibling = repo.create_git_commit(
            message=f"sibling of {sha}",
            tree=head.tree,
            parents=[parent],
        )
        gh_ref.edit(sha=sibling.sha, force=True)

        merged = repo.merge(base=branch_name, head=sha, commit_message=f"Merge {sha} into {branch_name}")
        if merged is None:
            # Nothing to merge: the change is already on the branch.
            gh_ref.edit(sha=head.sha, force=True)
            return head

        replayed = repo.create_git_commit(
            message=original.message,
            tree=merged.commit.tree,
            parents=[head],
            author=_input_author(original.author),
        )
        gh_ref.edit(sha=replayed.sha, force=True)
        return replayed

    # -------------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------------

    def _convert_issue(self, gh_issue: GHIssue) -> Issue:
        """Convert GitHub Issue to our Issue model."""
        state = IssueState.CLOSED if gh_issue.state == "closed" else IssueState.OPEN

        return Issue(
            number=gh_issue.number,
            title=gh_issue.title,
            body=gh_issue.body or "",
            labels=[label.name for label in gh_issue.labels],
            state=state,
            url=gh_issue.html_url,
        )

    def _convert_comment(self, gh_comment: GHComment) -> Comment:
        """Convert GitHub Comment to our Comment model."""
        return Comment(
            id=gh_comment.id,
            body=gh_comment.body,
            author=gh_comment.user.login if gh_comment.user else "",
            url=gh_comment.html_url,
        )

    def _convert_pull_request(self, gh_pr: GHPullRequest) -> PullRequest:
        """Convert GitHub PullRequest to our PullRequest model."""
        return PullRequest(
            number=gh_pr.number,
            title=gh_pr.title,
            body=gh_pr.body or "",
            head=gh_pr.head.ref,
            base=gh_pr.base.ref,
            url=gh_pr.html_url,
            state=gh_pr.state,
            merged=bool(gh_pr.merged),
            assignees=[user.login for user in gh_pr.assignees or []],
        )
