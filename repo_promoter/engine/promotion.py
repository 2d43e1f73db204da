"""
Promotion saga: cherry-pick a merged pull request onto a promotion channel.

A run is triggered by a channel label (e.g. ``stable``) applied to a tracking
issue whose body references the originating pull request. The run walks:

    validate -> resolve_reference -> resolve_branch -> create_branch
    -> collect_commits -> cherry_pick -> open_request | report_failure

Every step depends on the previous one, so they are awaited strictly in
sequence. The remote objects a run creates (branch, pull request, comment)
persist; nothing is rolled back. A replay failure is the only error that does
not propagate: it is reported on the tracking issue and the run ends
``degraded``. Any other error ends the run and propagates to the caller.
"""

import asyncio

import structlog

from repo_promoter.config.settings import PromoterSettings
from repo_promoter.engine.preconditions import PreconditionValidator
from repo_promoter.engine.references import IssueReferenceResolver
from repo_promoter.engine.run_status import PromotionRun, RunStatusTracker
from repo_promoter.engine.steps import (
    BranchCreator,
    BranchResolver,
    CherryPickExecutor,
    CommitCollector,
    FailureReporter,
    PromotionFinalizer,
    promotion_branch_name,
)
from repo_promoter.exceptions import PromotionError, RepoPromoterError
from repo_promoter.models.domain import (
    CherryPickConflict,
    LabelEvent,
    PromotionResult,
    PromotionStatus,
)
from repo_promoter.providers.base import GitProvider

log = structlog.get_logger(__name__)


class PromotionSaga:
    """Runs one promotion per label event.

    The saga holds no state between runs, so one instance may serve several
    concurrent runs. ``tracker`` (optional) records the progress of each run
    for status reporting; it never blocks a run.

    Example:
        >>> saga = PromotionSaga(settings, git)
        >>> result = await saga.run(LabelEvent(issue=issue, label="stable"))
        >>> result.status
        <PromotionStatus.OPENED: 'opened'>
    """

    def __init__(
        self,
        settings: PromoterSettings,
        git: GitProvider,
        tracker: RunStatusTracker | None = None,
    ):
        self.settings = settings
        self.git = git
        self.tracker = tracker

        self.validator = PreconditionValidator(settings.promotion)
        self.references = IssueReferenceResolver(settings.repository)
        self.branch_resolver = BranchResolver(git)
        self.branch_creator = BranchCreator(git)
        self.commit_collector = CommitCollector(git)
        self.executor = CherryPickExecutor(git)
        self.finalizer = PromotionFinalizer(git, settings.repository)
        self.reporter = FailureReporter(git)

    def _enter(self, run: PromotionRun | None, stage: str) -> None:
        log.debug("promotion_stage", stage=stage)
        if run is not None:
            run.advance(stage)

    async def run(self, event: LabelEvent) -> PromotionResult:
        """Execute a promotion run.

        Args:
            event: The label event (coordinating issue and applied label)

        Returns:
            PromotionResult with status OPENED, or DEGRADED when the replay
            failed and was reported on the tracking issue

        Raises:
            PromotionError: Any failure other than a replay failure
        """
        issue = event.issue
        run = self.tracker.start(issue.number, event.label) if self.tracker is not None else None

        with structlog.contextvars.bound_contextvars(issue=issue.number, target=event.label):
            log.info("promotion_started", label=event.label)
            try:
                result = await self._run(event, run)
            except RepoPromoterError as e:
                stage = e.stage if isinstance(e, PromotionError) else "promotion"
                log.error("promotion_failed", stage=stage, error=e.message)
                if run is not None:
                    run.fail(f"{stage}: {e.message}")
                raise
            except asyncio.CancelledError:
                log.warning("promotion_cancelled")
                if run is not None:
                    run.fail("cancelled")
                raise
            except Exception as e:
                log.error("promotion_failed_unexpected", error=str(e), exc_info=True)
                if run is not None:
                    run.fail(f"unexpected: {e}")
                raise

            log.info("promotion_finished", status=result.status.value, branch=result.branch)
            if run is not None:
                run.succeed(result.summary())
            return result

    async def _run(self, event: LabelEvent, run: PromotionRun | None = None) -> PromotionResult:
        issue = event.issue

        self._enter(run, "validate")
        target = self.validator.validate(event.label, issue.labels)

        self._enter(run, "resolve_reference")
        pr_number = self.references.resolve(issue.body)
        source = await self.git.get_pull_request(pr_number)
        if not source.merged:
            log.warning("promotion_source_not_merged", pr=source.number)

        self._enter(run, "resolve_branch")
        target_sha = await self.branch_resolver.resolve(target)

        self._enter(run, "create_branch")
        branch_name = promotion_branch_name(source.head, target)
        branch = await self.branch_creator.create(branch_name, target_sha)

        self._enter(run, "collect_commits")
        commits = await self.commit_collector.collect(source.number)

        self._enter(run, "cherry_pick")
        outcome = await self.executor.apply(commits, branch.name)

        if isinstance(outcome, CherryPickConflict):
            self._enter(run, "report_failure")
            comment = await self.reporter.report(issue.number, target, outcome.commits, outcome.cause)
            return PromotionResult(
                status=PromotionStatus.DEGRADED,
                issue_number=issue.number,
                target=target,
                branch=branch.name,
                commits=list(outcome.commits),
                failure_comment=comment,
                cause=outcome.cause,
            )

        self._enter(run, "open_request")
        pull_request = await self.finalizer.open_request(target, source, branch.name, issue)
        return PromotionResult(
            status=PromotionStatus.OPENED,
            issue_number=issue.number,
            target=target,
            branch=branch.name,
            commits=commits,
            pull_request=pull_request,
        )
