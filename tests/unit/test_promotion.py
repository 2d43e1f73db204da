"""Tests for repo_promoter/engine/promotion.py - the promotion saga."""

import asyncio

import pytest

from repo_promoter.engine.promotion import PromotionSaga
from repo_promoter.engine.run_status import RunState, RunStatusTracker
from repo_promoter.exceptions import (
    BranchCreationError,
    BranchNotFoundError,
    CherryPickConflictError,
    CherryPickError,
    CommitListError,
    InvalidLabelError,
    MalformedReferenceError,
    MissingMarkerError,
    PullRequestNotFoundError,
    RequestCreationError,
)
from repo_promoter.models.domain import Branch, Issue, LabelEvent, PromotionStatus

MUTATIONS = ("create_branch", "cherry_pick", "create_pull_request", "add_comment")


def called_methods(mock_git) -> list[str]:
    return [name for name, _args, _kwargs in mock_git.mock_calls]


class TestSuccessfulPromotion:
    """A clean replay ends with an opened promotion pull request."""

    @pytest.mark.asyncio
    async def test_promotes_onto_stable(self, settings, mock_git, tracking_issue):
        """Should branch at the target head, replay in order and open the PR."""
        saga = PromotionSaga(settings, mock_git)

        result = await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert result.status == PromotionStatus.OPENED
        assert result.branch == "feature-x-stable"
        assert result.commits == ["c1", "c2", "c3"]
        mock_git.get_pull_request.assert_awaited_once_with(10)
        mock_git.get_branch_head.assert_awaited_once_with("stable")
        mock_git.create_branch.assert_awaited_once_with("feature-x-stable", "S")
        mock_git.list_pull_request_commits.assert_awaited_once_with(10)
        mock_git.cherry_pick.assert_awaited_once_with(["c1", "c2", "c3"], "feature-x-stable")
        mock_git.create_pull_request.assert_awaited_once_with(
            title="[stable] Add feature x",
            body="Tracked by org/repo#7",
            head="feature-x-stable",
            base="stable",
        )
        mock_git.add_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, settings, mock_git, tracking_issue):
        """Each remote call should follow the previous one."""
        saga = PromotionSaga(settings, mock_git)

        await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert called_methods(mock_git) == [
            "get_pull_request",
            "get_branch_head",
            "create_branch",
            "list_pull_request_commits",
            "cherry_pick",
            "create_pull_request",
        ]

    @pytest.mark.asyncio
    async def test_request_body_references_tracking_issue(self, settings, mock_git, tracking_issue):
        """The promotion PR body should contain the tracking reference verbatim."""
        saga = PromotionSaga(settings, mock_git)

        result = await saga.run(LabelEvent(issue=tracking_issue, label="beta"))

        assert "org/repo#7" in result.pull_request.body
        assert result.pull_request.title == "[beta] Add feature x"
        assert result.pull_request.base == "beta"
        assert result.pull_request.head == "feature-x-beta"

    @pytest.mark.asyncio
    async def test_unmerged_source_is_still_promoted(self, settings, mock_git, tracking_issue, source_pr):
        """An unmerged source PR is logged, not rejected."""
        source_pr.merged = False
        saga = PromotionSaga(settings, mock_git)

        result = await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert result.status == PromotionStatus.OPENED


class TestReplayFailure:
    """A failed replay is reported on the tracking issue instead of propagating."""

    @pytest.mark.asyncio
    async def test_conflict_reports_full_commit_list(self, settings, mock_git, tracking_issue):
        """Should comment with every requested commit and the cause, and open no PR."""
        mock_git.cherry_pick.side_effect = CherryPickConflictError(
            "Merge conflict while cherry-picking c2 onto feature-x-stable",
            commits=["c1", "c2", "c3"],
            sha="c2",
        )
        saga = PromotionSaga(settings, mock_git)

        result = await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert result.status == PromotionStatus.DEGRADED
        assert result.degraded
        assert result.branch == "feature-x-stable"
        assert result.commits == ["c1", "c2", "c3"]
        mock_git.create_branch.assert_awaited_once()
        mock_git.create_pull_request.assert_not_called()

        issue_number, body = mock_git.add_comment.await_args.args
        assert issue_number == 7
        assert body.startswith("Promotion to stable failed due to 'Merge conflict while cherry-picking c2")
        assert body.splitlines()[-3:] == ["c1", "c2", "c3"]
        assert result.failure_comment.id == 501

    @pytest.mark.asyncio
    async def test_non_conflict_replay_error_is_compensated(self, settings, mock_git, tracking_issue):
        """Any replay failure takes the compensation path."""
        mock_git.cherry_pick.side_effect = CherryPickError("Failed to cherry-pick c1", sha="c1")
        saga = PromotionSaga(settings, mock_git)

        result = await saga.run(LabelEvent(issue=tracking_issue, label="beta"))

        assert result.status == PromotionStatus.DEGRADED
        assert result.cause == "Failed to cherry-pick c1"
        mock_git.add_comment.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_branch_is_not_touched_after_conflict(self, settings, mock_git, tracking_issue):
        """Compensation posts one comment and nothing else."""
        mock_git.cherry_pick.side_effect = CherryPickConflictError("conflict", sha="c2")
        saga = PromotionSaga(settings, mock_git)

        await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert called_methods(mock_git)[-2:] == ["cherry_pick", "add_comment"]


class TestPreconditions:
    """Rejected events make no provider calls at all."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("label", ["bug", "master", "tracking", "Stable", ""])
    async def test_invalid_label_makes_no_calls(self, settings, mock_git, tracking_issue, label):
        """Labels outside the channel whitelist abort with InvalidLabelError."""
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(InvalidLabelError):
            await saga.run(LabelEvent(issue=tracking_issue, label=label))

        assert mock_git.mock_calls == []

    @pytest.mark.asyncio
    async def test_missing_marker_makes_no_calls(self, settings, mock_git, tracking_issue):
        """An issue without the tracking label aborts with MissingMarkerError."""
        tracking_issue.labels = ["stable"]
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(MissingMarkerError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert mock_git.mock_calls == []


class TestAbortsBeforeMutation:
    """Resolution failures stop the run before anything is created."""

    @pytest.mark.asyncio
    async def test_malformed_reference(self, settings, mock_git):
        """A body without a reference aborts before any call."""
        issue = Issue(number=7, title="t", body="no reference here", labels=["tracking"])
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(MalformedReferenceError):
            await saga.run(LabelEvent(issue=issue, label="stable"))

        assert mock_git.mock_calls == []

    @pytest.mark.asyncio
    async def test_missing_pull_request(self, settings, mock_git, tracking_issue):
        """An unknown originating PR aborts without mutations."""
        mock_git.get_pull_request.side_effect = PullRequestNotFoundError("Failed to get pull request #10")
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(PullRequestNotFoundError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert not set(called_methods(mock_git)) & set(MUTATIONS)

    @pytest.mark.asyncio
    async def test_missing_target_branch(self, settings, mock_git, tracking_issue):
        """An unreadable target branch aborts without mutations."""
        mock_git.get_branch_head.side_effect = BranchNotFoundError("no branch", branch="stable")
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(BranchNotFoundError) as exc_info:
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert exc_info.value.stage == "resolve_branch"
        assert not set(called_methods(mock_git)) & set(MUTATIONS)


class TestMutationFailures:
    """Failures after the branch exists propagate and leave side effects."""

    @pytest.mark.asyncio
    async def test_rerun_collides_on_branch_creation(self, settings, mock_git, tracking_issue):
        """Running the same event twice fails the second time at branch creation."""
        created: set[str] = set()

        async def create_branch(name, sha):
            if name in created:
                raise BranchCreationError(f"Failed to create branch '{name}': Reference already exists", branch=name)
            created.add(name)
            return Branch(name=name, sha=sha)

        mock_git.create_branch.side_effect = create_branch
        saga = PromotionSaga(settings, mock_git)
        event = LabelEvent(issue=tracking_issue, label="stable")

        await saga.run(event)
        with pytest.raises(BranchCreationError):
            await saga.run(event)

        assert mock_git.create_pull_request.await_count == 1
        assert mock_git.cherry_pick.await_count == 1

    @pytest.mark.asyncio
    async def test_commit_list_failure_propagates(self, settings, mock_git, tracking_issue):
        """A commit listing failure aborts after the branch was created."""
        mock_git.list_pull_request_commits.side_effect = CommitListError("Failed to get commits on PR #10")
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(CommitListError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        mock_git.create_branch.assert_awaited_once()
        mock_git.cherry_pick.assert_not_called()
        mock_git.add_comment.assert_not_called()

    @pytest.mark.asyncio
    async def test_request_creation_failure_is_not_compensated(self, settings, mock_git, tracking_issue):
        """Opening the PR failing is terminal: no comment is posted."""
        mock_git.create_pull_request.side_effect = RequestCreationError("Validation Failed")
        saga = PromotionSaga(settings, mock_git)

        with pytest.raises(RequestCreationError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        mock_git.cherry_pick.assert_awaited_once()
        mock_git.add_comment.assert_not_called()


class TestRunStatusIntegration:
    """The saga records each run's progress in a RunStatusTracker."""

    @pytest.mark.asyncio
    async def test_successful_run_completes_record(self, settings, mock_git, tracking_issue):
        tracker = RunStatusTracker()
        saga = PromotionSaga(settings, mock_git, tracker)

        await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        record = tracker.get(7, "stable")
        assert record["state"] == RunState.COMPLETED.value
        assert record["history"] == [
            "validate",
            "resolve_reference",
            "resolve_branch",
            "create_branch",
            "collect_commits",
            "cherry_pick",
            "open_request",
        ]
        assert record["detail"] == "Opened #11 from feature-x-stable into stable"

    @pytest.mark.asyncio
    async def test_degraded_run_still_completes(self, settings, mock_git, tracking_issue):
        tracker = RunStatusTracker()
        mock_git.cherry_pick.side_effect = CherryPickConflictError("conflict", sha="c1")
        saga = PromotionSaga(settings, mock_git, tracker)

        await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        record = tracker.get(7, "stable")
        assert record["state"] == "completed"
        assert record["history"][-1] == "report_failure"

    @pytest.mark.asyncio
    async def test_failed_run_records_stage(self, settings, mock_git, tracking_issue):
        tracker = RunStatusTracker()
        saga = PromotionSaga(settings, mock_git, tracker)

        with pytest.raises(InvalidLabelError):
            await saga.run(LabelEvent(issue=tracking_issue, label="bug"))

        record = tracker.get(7, "bug")
        assert record["state"] == "failed"
        assert record["detail"] == "validate: Invalid label applied: 'bug'"
        assert tracker.snapshot()["runs_failed"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_runs_both_promote(self, settings, mock_git, tracking_issue):
        """Two channel events in flight at once each open their own pull request."""
        tracker = RunStatusTracker()
        both_replaying = asyncio.Event()
        replaying = []

        async def slow_cherry_pick(commits, branch_name):
            replaying.append(branch_name)
            if len(replaying) == 2:
                both_replaying.set()
            await asyncio.wait_for(both_replaying.wait(), timeout=5)
            return f"head-{branch_name}"

        mock_git.cherry_pick.side_effect = slow_cherry_pick
        saga = PromotionSaga(settings, mock_git, tracker)

        beta, stable = await asyncio.gather(
            saga.run(LabelEvent(issue=tracking_issue, label="beta")),
            saga.run(LabelEvent(issue=tracking_issue, label="stable")),
        )

        assert beta.status == PromotionStatus.OPENED
        assert stable.status == PromotionStatus.OPENED
        assert sorted(replaying) == ["feature-x-beta", "feature-x-stable"]
        assert tracker.get(7, "beta")["state"] == "completed"
        assert tracker.get(7, "stable")["state"] == "completed"
        assert tracker.snapshot()["runs_completed"] == 2

    @pytest.mark.asyncio
    async def test_cancelled_run_is_recorded_as_failed(self, settings, mock_git, tracking_issue):
        tracker = RunStatusTracker()
        mock_git.cherry_pick.side_effect = asyncio.CancelledError()
        saga = PromotionSaga(settings, mock_git, tracker)

        with pytest.raises(asyncio.CancelledError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        record = tracker.get(7, "stable")
        assert record["state"] == "failed"
        assert record["detail"] == "cancelled"
        assert record["stage"] == "cherry_pick"
        assert tracker.snapshot()["active"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_recorded_as_failed(self, settings, mock_git, tracking_issue):
        tracker = RunStatusTracker()
        mock_git.get_branch_head.side_effect = RuntimeError("boom")
        saga = PromotionSaga(settings, mock_git, tracker)

        with pytest.raises(RuntimeError):
            await saga.run(LabelEvent(issue=tracking_issue, label="stable"))

        assert tracker.get(7, "stable")["detail"] == "unexpected: boom"
