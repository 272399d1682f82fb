"""Issue orchestrator driving one work item from analysis to pull request.

Each WorkItem runs through the stages tracked by RunStateMachine:

    analyzing → (rejected) or branch_preparing → fixing → change_check
    → (noop_cleanup) or committing → publishing → finalizing

The orchestrator asks the assistant for an Analysis first. A failed or
negative analysis ends the run with a single comment and no git activity.
Otherwise it prepares a branch (a new one for issues, the PR head for PR
comments), lets the assistant edit the working copy, commits and pushes
whatever changed, and reports back on the item.

Any failure after branch preparation starts is handled once: the base
branch is restored, a branch created by this run is deleted, and a failure
comment is posted. The base branch is checked out again when the run ends,
whatever happened.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from autoclaude.assistant.analysis import Analysis, parse_analysis
from autoclaude.assistant.invoker import (
    AssistantError,
    AssistantInvoker,
    AssistantTimeoutError,
)
from autoclaude.assistant.prompts import build_analysis_prompt, build_fix_prompt
from autoclaude.events.emitter import EventEmitter, NullEventEmitter
from autoclaude.events.models import EventType, RunEvent
from autoclaude.github.errors import HostingUnauthorizedError
from autoclaude.github.formatting import (
    format_analysis_failed_comment,
    format_changes_pushed_comment,
    format_commit_message,
    format_fix_created_comment,
    format_fix_failed_comment,
    format_no_changes_comment,
    format_pull_request_body,
    format_pull_request_title,
    format_rejection_comment,
)
from autoclaude.github.models import HostingGateway, PullRequestRef
from autoclaude.state.machine import RunStateMachine
from autoclaude.state.models import (
    BranchContext,
    RunOutcome,
    RunResult,
    RunStage,
    can_fail_over,
)
from autoclaude.vcs.git import GitGateway
from autoclaude.webhook.models import WorkItem

logger = logging.getLogger(__name__)

DEFAULT_BRANCH_PREFIX = "autoclaude/issue-"


@dataclass
class _Run:
    """Mutable state of one run."""

    item: WorkItem
    machine: RunStateMachine
    started_at: float = field(default_factory=time.monotonic)
    analysis: Optional[Analysis] = None
    branch: Optional[BranchContext] = None
    branch_deleted: bool = False
    start_commit: Optional[str] = None
    summary: str = ""
    pull_request: Optional[PullRequestRef] = None
    error: Optional[str] = None


class IssueOrchestrator:
    """Drives work items through analysis, fix, and publication.

    All collaborators are injected. One orchestrator serves both trigger
    sources (new issues and PR-comment mentions).

    Attributes:
        invoker: Runs the assistant CLI.
        git: Git operations on the working copy the assistant edits.
        hosting: Posts comments and manages pull requests.
        event_emitter: Receives run events for observability.
        branch_prefix: Prefix of branches created for issues.
        commits_directly: Tell the assistant to commit its own changes.
    """

    def __init__(
        self,
        invoker: AssistantInvoker,
        git: GitGateway,
        hosting: HostingGateway,
        event_emitter: Optional[EventEmitter] = None,
        branch_prefix: str = DEFAULT_BRANCH_PREFIX,
        commits_directly: bool = False,
    ):
        self.invoker = invoker
        self.git = git
        self.hosting = hosting
        self.event_emitter = event_emitter or NullEventEmitter()
        self.branch_prefix = branch_prefix
        self.commits_directly = commits_directly

    async def process(self, item: WorkItem) -> RunResult:
        """Run one work item to a terminal outcome.

        Args:
            item: The issue or PR comment to act on.

        Returns:
            RunResult describing the outcome.
        """
        run = _Run(item=item, machine=RunStateMachine(item.item_id))

        logger.info("=" * 60)
        logger.info("Processing %s #%s: %s", item.kind, item.item_number, item.title)
        logger.info("=" * 60)

        await self._transition(run, RunStage.ANALYZING)
        analysis = await self._analyze(run)

        if analysis is None:
            await self._transition(run, RunStage.REJECTED, {"reason": "analysis_failed"})
            await self._transition(run, RunStage.TERMINAL)
            return await self._complete(run, RunOutcome.ANALYSIS_FAILED)

        run.analysis = analysis

        if not analysis.can_resolve:
            await self._transition(run, RunStage.REJECTED, {"reason": "cannot_resolve"})
            await self._post_comment_safely(
                item, format_rejection_comment(item, analysis)
            )
            await self._transition(run, RunStage.TERMINAL)
            return await self._complete(run, RunOutcome.REJECTED)

        try:
            outcome = await self._fix(run)
        except Exception as exc:
            outcome = await self._handle_fix_failure(run, exc)
        finally:
            await self._restore_base(run)

        await self._transition(run, RunStage.TERMINAL)
        return await self._complete(run, outcome)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    async def _analyze(self, run: _Run) -> Optional[Analysis]:
        """Ask the assistant whether the item can be resolved.

        Returns:
            The parsed Analysis, or None after posting an "Analysis Failed"
            comment.
        """
        item = run.item

        try:
            output = await self.invoker.invoke(
                build_analysis_prompt(item), self.git.repo_path
            )
        except AssistantError as exc:
            error = str(exc)
            if isinstance(exc, AssistantTimeoutError):
                await self._emit_timeout_event(run, exc)
        else:
            result = parse_analysis(output)
            if result.ok:
                logger.info(
                    "Analysis result",
                    extra={"item_id": item.item_id, **result.analysis.to_dict()},
                )
                return result.analysis
            error = result.error or "Malformed analysis"

        logger.error("Failed to analyze %s: %s", item.kind, error)
        run.error = error
        await self._emit_error_event(run, RunStage.ANALYZING, error, "AnalysisFailed")
        await self._post_comment_safely(
            item, format_analysis_failed_comment(item, error)
        )
        return None

    # ------------------------------------------------------------------
    # Fix
    # ------------------------------------------------------------------

    async def _fix(self, run: _Run) -> RunOutcome:
        item = run.item

        await self._transition(run, RunStage.BRANCH_PREPARING)
        await self._prepare_branch(run)

        await self._transition(run, RunStage.FIXING)
        run.summary = await self.invoker.invoke(
            build_fix_prompt(item, run.analysis, self.commits_directly),
            self.git.repo_path,
        )
        logger.info("Fix result", extra={"item_id": item.item_id, "summary": run.summary})

        await self._transition(run, RunStage.CHANGE_CHECK)
        has_uncommitted, has_new_commits = await self._check_changes(run)

        if not has_uncommitted and not has_new_commits:
            await self._transition(run, RunStage.NOOP_CLEANUP)
            await self._cleanup_without_changes(run)
            await self._transition(run, RunStage.FINALIZING)
            return RunOutcome.NO_CHANGES_NEEDED

        await self._transition(run, RunStage.COMMITTING)
        if has_uncommitted:
            await self.git.commit_all(format_commit_message(item))
        else:
            logger.info("Assistant already committed the changes, skipping commit step")

        await self._transition(run, RunStage.PUBLISHING)
        outcome = await self._publish(run)

        await self._transition(run, RunStage.FINALIZING)
        return outcome

    async def _prepare_branch(self, run: _Run) -> None:
        """Check out the branch the fix is made on and record its HEAD."""
        item = run.item

        if item.is_pull_request:
            info = await self.hosting.get_pull_request_info(
                item.repo_owner, item.repo_name, item.item_number
            )
            run.branch = BranchContext(
                branch_name=info.head_branch,
                base_branch=info.base_branch,
            )
            await self.git.fetch(self.git.remote, info.head_branch)
            await self.git.checkout_existing(info.head_branch)
            logger.info("Checked out PR branch: %s", info.head_branch)
        else:
            branch_name = f"{self.branch_prefix}{item.item_number}"
            run.branch = BranchContext(
                branch_name=branch_name,
                base_branch=self.git.base_branch,
            )
            await self.git.checkout_new_branch(branch_name)
            run.branch.created_by_run = True

        run.start_commit = await self.git.rev_parse("HEAD")

    async def _check_changes(self, run: _Run) -> Tuple[bool, bool]:
        """Return (uncommitted changes, commits made since the fix started)."""
        status = await self.git.status()
        new_commits = await self.git.log_range(run.start_commit, "HEAD")
        return bool(status.strip()), bool(new_commits.strip())

    async def _cleanup_without_changes(self, run: _Run) -> None:
        await self.git.checkout_base()
        if run.branch is not None and run.branch.created_by_run:
            await self.git.delete_branch(run.branch.branch_name)
            run.branch_deleted = True

        await self._post_comment(
            run.item, format_no_changes_comment(run.item, run.analysis)
        )

    async def _publish(self, run: _Run) -> RunOutcome:
        item = run.item
        branch = run.branch

        if item.is_pull_request:
            await self.git.push(branch.branch_name, set_upstream=False)
            await self._post_comment(
                item, format_changes_pushed_comment(run.summary, run.analysis)
            )
            return RunOutcome.FIX_PUSHED_TO_EXISTING_PR

        await self.git.push(branch.branch_name, set_upstream=True)

        run.pull_request = await self.hosting.create_pull_request(
            item.repo_owner,
            item.repo_name,
            title=format_pull_request_title(item),
            body=format_pull_request_body(item, run.summary, run.analysis),
            head=branch.branch_name,
            base=branch.base_branch,
        )

        if run.pull_request is None:
            logger.warning(
                "Pushed %s but no pull request was created; skipping link comment",
                branch.branch_name,
            )
        else:
            await self._post_comment(
                item, format_fix_created_comment(run.pull_request)
            )
        return RunOutcome.FIX_PULL_REQUEST_CREATED

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _handle_fix_failure(self, run: _Run, exc: Exception) -> RunOutcome:
        """Roll back and report a failure raised while fixing."""
        item = run.item
        stage = run.machine.stage
        run.error = str(exc)

        logger.error(
            "Failed to create fix for %s #%s",
            item.kind,
            item.item_number,
            exc_info=exc,
            extra={"item_id": item.item_id, "stage": stage.value},
        )

        if isinstance(exc, AssistantTimeoutError):
            await self._emit_timeout_event(run, exc)
        else:
            await self._emit_error_event(run, stage, str(exc), type(exc).__name__)

        if can_fail_over(stage):
            await self._transition(run, RunStage.FINALIZING, {"error": str(exc)})

        await self._rollback(run)
        await self._post_comment_safely(
            item, format_fix_failed_comment(item, run.analysis, str(exc))
        )
        return RunOutcome.FIX_FAILED

    async def _rollback(self, run: _Run) -> None:
        """Return to the base branch and drop a branch this run created."""
        try:
            await self.git.checkout_base()
        except Exception:
            logger.exception("Cleanup failed: could not check out base branch")

        branch = run.branch
        if branch is None or not branch.created_by_run or run.branch_deleted:
            return

        try:
            await self.git.delete_branch(branch.branch_name)
            run.branch_deleted = True
        except Exception:
            logger.exception(
                "Cleanup failed: could not delete branch %s", branch.branch_name
            )

    async def _restore_base(self, run: _Run) -> None:
        try:
            await self.git.checkout_base()
        except Exception:
            logger.exception(
                "Failed to check out base branch %s",
                self.git.base_branch,
                extra={"item_id": run.item.item_id},
            )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def _post_comment(self, item: WorkItem, body: str) -> None:
        """Post a comment on the item; unauthorized hosting is skipped."""
        try:
            await self.hosting.post_comment(
                item.repo_owner,
                item.repo_name,
                item.item_number,
                body,
                is_pull_request=item.is_pull_request,
            )
        except HostingUnauthorizedError as exc:
            logger.warning(
                "Not authorized to comment on %s #%s, skipping comment: %s",
                item.kind,
                item.item_number,
                exc,
            )

    async def _post_comment_safely(self, item: WorkItem, body: str) -> None:
        try:
            await self._post_comment(item, body)
        except Exception:
            logger.exception(
                "Failed to post comment on %s #%s", item.kind, item.item_number
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _transition(
        self,
        run: _Run,
        to_stage: RunStage,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Transition the run and emit a state-transition event."""
        record = run.machine.transition(to_stage, details)
        await self._safe_emit(
            self._event(
                run,
                EventType.STATE_TRANSITION,
                {"from_stage": record.from_stage.value, "to_stage": to_stage.value},
            )
        )

    async def _complete(self, run: _Run, outcome: RunOutcome) -> RunResult:
        duration = time.monotonic() - run.started_at
        result = RunResult(
            item_id=run.item.item_id,
            outcome=outcome,
            branch_name=run.branch.branch_name if run.branch else None,
            pull_request=run.pull_request,
            analysis=run.analysis,
            error=run.error,
            stages=run.machine.stages,
            duration_seconds=duration,
        )

        details: Dict[str, Any] = {
            "outcome": outcome.value,
            "duration_seconds": round(duration, 3),
        }
        if run.pull_request is not None:
            details["pr_number"] = run.pull_request.number
            details["pr_url"] = run.pull_request.url

        await self._safe_emit(self._event(run, EventType.COMPLETION, details))

        logger.info(
            "Finished %s #%s: %s",
            run.item.kind,
            run.item.item_number,
            outcome.value,
            extra={"item_id": run.item.item_id, "duration_seconds": duration},
        )
        return result

    async def _emit_error_event(
        self,
        run: _Run,
        stage: RunStage,
        error_message: str,
        error_type: str,
    ) -> None:
        await self._safe_emit(
            self._event(
                run,
                EventType.ERROR,
                {
                    "stage": stage.value,
                    "error_message": error_message,
                    "error_type": error_type,
                },
            )
        )

    async def _emit_timeout_event(
        self, run: _Run, exc: AssistantTimeoutError
    ) -> None:
        await self._safe_emit(
            self._event(
                run,
                EventType.TIMEOUT,
                {
                    "stage": run.machine.stage.value,
                    "operation": "assistant",
                    "timeout_seconds": exc.timeout_seconds,
                },
            )
        )

    def _event(
        self, run: _Run, event_type: EventType, details: Dict[str, Any]
    ) -> RunEvent:
        return RunEvent(
            event_type=event_type,
            item_id=run.item.item_id,
            repository=run.item.full_repository,
            details=details,
        )

    async def _safe_emit(self, event: RunEvent) -> None:
        """Emit an event, swallowing exceptions to avoid disrupting the run."""
        try:
            await self.event_emitter.emit(event)
        except Exception:
            logger.exception(
                "Failed to emit run event",
                extra={
                    "event_type": event.event_type.value,
                    "item_id": event.item_id,
                },
            )
