"""WorkflowScheduler for DAG-based action execution.

The scheduler validates a workflow definition, then repeatedly:

1. evaluates the join gate of every pending action in definition order,
   marking it ready or skipped (skips cascade within the same pass),
2. resolves params of every ready action and dispatches it to the action
   runner as its own asyncio task,
3. waits for the first completions, records them in definition order and
   loops,

until every scheduled action is terminal, the run is cancelled, or a fatal
condition aborts it. A run can be replayed from its completion history: an
attempt found in the history is not re-invoked, its recorded completion is
applied instead.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING, Any

from actiongraph.core.config import Settings, get_settings
from actiongraph.core.logging import LogContext
from actiongraph.models.enums import ActionStatus, GateDecision
from actiongraph.schemas.execution import (
    ActionContext,
    ActionInvocation,
    ActionMetadata,
    CompletionEvent,
    RunResult,
)
from actiongraph.services.workflow.cache import get_validation_cache
from actiongraph.services.workflow.exceptions import (
    DeadlockError,
    InfrastructureFailure,
    ReplayDivergenceError,
    RunAlreadyActiveError,
)
from actiongraph.services.workflow.hooks import NullRunHooks, RunLifecycleHooks
from actiongraph.services.workflow.joins import (
    build_failure_context,
    build_join_contexts,
    evaluate_action_gate,
    latest_trigger,
)
from actiongraph.services.workflow.policy import AttemptOutcome, FailurePolicy
from actiongraph.services.workflow.resolver import ParameterResolver
from actiongraph.services.workflow.state import ExecutionState, ResultStore
from actiongraph.services.workflow.validator import DAGValidator

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from actiongraph.schemas.workflow import WorkflowDefinition
    from actiongraph.services.workflow.runner import ActionRunner
    from actiongraph.services.workflow.topology import WorkflowTopology

logger = logging.getLogger(__name__)


class WorkflowScheduler:
    """Runs a workflow definition against an action runner.

    One scheduler serves one definition; ``run`` may be called any number
    of times, each call being an independent run. Runs may overlap as long
    as their run ids differ.

    Attributes:
        definition: Definition being run.
        runner: Executes individual actions.
        hooks: Run lifecycle callbacks.
        validator: Structural validator (cached).
        policy: Failure classification and retry policy.

    Example:
        >>> scheduler = WorkflowScheduler(definition, RegistryActionRunner())
        >>> result = await scheduler.run("run-1", "wf-1", inputs={"host": "10.0.0.1"})
        >>> result.success
        True
    """

    def __init__(
        self,
        definition: WorkflowDefinition,
        runner: ActionRunner,
        *,
        hooks: RunLifecycleHooks | None = None,
        validator: DAGValidator | None = None,
        resolver: ParameterResolver | None = None,
        policy: FailurePolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.definition = definition
        self.runner = runner
        self.settings = settings or get_settings()
        self.hooks = hooks or NullRunHooks()
        self.validator = validator or DAGValidator(self.settings, cache=get_validation_cache())
        self.policy = policy or FailurePolicy()
        self._resolver = resolver
        self._active: dict[str, _RunExecution] = {}

    async def run(
        self,
        run_id: str,
        workflow_id: str,
        inputs: Mapping[str, Any] | None = None,
        history: Iterable[CompletionEvent] | None = None,
    ) -> RunResult:
        """Execute the workflow once.

        Args:
            run_id: Identifier of this run.
            workflow_id: Identifier of the workflow.
            inputs: Runtime inputs handed to the entrypoint action.
            history: Completion events of an earlier execution of this run;
                     replayed before the run continues live.

        Returns:
            RunResult with the full per-action table and history.

        Raises:
            DAGValidationError: Invalid definition (nothing dispatched).
            InfrastructureFailure: The runner failed; carries the partial result.
            DeadlockError: Pending actions can never run; carries the partial result.
            ReplayDivergenceError: History does not match this definition.
        """
        topology = await self.validator.validate_cached(self.definition)
        resolver = self._resolver or ParameterResolver(topology, self.settings)

        execution = _RunExecution(
            topology=topology,
            runner=self.runner,
            resolver=resolver,
            policy=self.policy,
            run_id=run_id,
            workflow_id=workflow_id,
            inputs=inputs,
            history=list(history or ()),
        )

        if run_id in self._active:
            raise RunAlreadyActiveError(run_id)

        # registered before the start hook so a cancel during the hook is kept
        self._active[run_id] = execution
        with LogContext(run_id=run_id, workflow_id=workflow_id):
            try:
                await self._call_hook("on_run_start", run_id, workflow_id)
                result = await execution.execute()
            finally:
                del self._active[run_id]
                await self._call_hook("on_run_finalize", run_id)

            logger.info(
                f"Run {run_id} {result.status}: success={result.success}",
                extra={"context": result.to_summary()},
            )
        return result

    def cancel(self, run_id: str | None = None) -> None:
        """Stop dispatching new actions.

        Running actions finish and are recorded; the run then ends with
        status ``cancelled``.

        Args:
            run_id: Run to cancel. ``None`` cancels every active run.
        """
        if run_id is None:
            targets = list(self._active.values())
        else:
            execution = self._active.get(run_id)
            targets = [execution] if execution is not None else []

        if not targets:
            logger.debug(f"Cancel requested with no matching active run: {run_id}")
            return
        for execution in targets:
            execution.cancel()

    async def _call_hook(self, name: str, *args: Any) -> None:
        try:
            await getattr(self.hooks, name)(*args)
        except Exception as e:
            logger.error(f"Run lifecycle hook {name} failed: {e}", exc_info=True)


class _RunExecution:
    """State and main loop of a single run.

    Only this object's coroutine mutates the execution state and the result
    store; action tasks just return values.
    """

    def __init__(
        self,
        *,
        topology: WorkflowTopology,
        runner: ActionRunner,
        resolver: ParameterResolver,
        policy: FailurePolicy,
        run_id: str,
        workflow_id: str,
        inputs: Mapping[str, Any] | None,
        history: list[CompletionEvent],
    ) -> None:
        self.topology = topology
        self.runner = runner
        self.resolver = resolver
        self.policy = policy
        self.run_id = run_id
        self.workflow_id = workflow_id
        self.inputs = inputs

        self.state = ExecutionState(topology.actions, topology.scheduled)
        self.results = ResultStore()
        self.history: list[CompletionEvent] = []

        self._replay: deque[CompletionEvent] = deque(history)
        self._recorded_attempts = {(event.ref, event.attempt) for event in history}
        self._replaying: dict[str, int] = {}
        self._tasks: dict[asyncio.Task[Any], str] = {}
        self._contexts: dict[str, ActionContext] = {}
        self._excused: dict[str, frozenset[str]] = {}
        self._batch = 0
        self._cancelled = False

    def cancel(self) -> None:
        if not self._cancelled:
            logger.info(f"Run {self.run_id} cancellation requested")
        self._cancelled = True

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def execute(self) -> RunResult:
        try:
            await self._loop()
        finally:
            await self._cancel_in_flight()

        if self._cancelled:
            return self._summarize(cancelled=True)

        stuck = self.state.refs_with_status(ActionStatus.PENDING, ActionStatus.READY)
        if stuck:
            raise DeadlockError(stuck, result=self._summarize(aborted=True))
        return self._summarize()

    async def _loop(self) -> None:
        while True:
            if not self._cancelled:
                self._advance()
                self._dispatch_ready()

            if self._replay:
                if self._apply_recorded_batch():
                    continue
                if self._cancelled:
                    logger.info(
                        f"Run cancelled with {len(self._replay)} recorded completion(s) "
                        "not replayed"
                    )
                    self._replay.clear()
                else:
                    head = self._replay[0]
                    raise ReplayDivergenceError(
                        head.ref, head.attempt, self.state.refs_with_status(ActionStatus.RUNNING)
                    )

            if not self._tasks:
                return

            done, _ = await asyncio.wait(list(self._tasks), return_when=asyncio.FIRST_COMPLETED)
            infrastructure_error = self._handle_done(done)
            if infrastructure_error is not None:
                ref, error = infrastructure_error
                await self._cancel_in_flight()
                logger.error(f"Action runner failed for {ref}, aborting run: {error!r}")
                raise InfrastructureFailure(ref, error, result=self._summarize(aborted=True))

    def _advance(self) -> None:
        """Gate every pending action until nothing changes."""
        changed = True
        while changed:
            changed = False
            for ref in self.state.refs_with_status(ActionStatus.PENDING):
                evaluation = evaluate_action_gate(self.topology, ref, self.state.statuses)
                match evaluation.decision:
                    case GateDecision.SKIP:
                        action_state = self.state[ref]
                        action_state.triggered_by = latest_trigger(self.topology, ref, self.state)
                        action_state.skip_reason = evaluation.reason
                        self.state.transition(ref, ActionStatus.SKIPPED)
                        logger.info(f"Skipping {ref}: {evaluation.reason}")
                        changed = True
                    case GateDecision.READY:
                        self._excused[ref] = evaluation.excused
                        self.state.transition(ref, ActionStatus.READY)
                        changed = True
                    case GateDecision.WAIT:
                        pass

    def _dispatch_ready(self) -> None:
        for ref in self.state.refs_with_status(ActionStatus.READY):
            self._start_attempt(ref)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _build_context(self, ref: str) -> ActionContext:
        action = self.topology.action(ref)
        node = self.topology.node(ref)
        is_entrypoint = ref == self.topology.entrypoint_ref
        resolved = self.resolver.resolve(
            action,
            self.results.view,
            runtime_inputs=self.inputs,
            is_entrypoint=is_entrypoint,
            excused=self._excused.get(ref, frozenset()),
            statuses=self.state.statuses,
        )
        triggered_by = None if is_entrypoint else latest_trigger(self.topology, ref, self.state)
        return ActionContext(
            run_id=self.run_id,
            workflow_id=self.workflow_id,
            params=resolved.params,
            warnings=resolved.warnings,
            metadata=ActionMetadata(
                stream_id=node.stream_id,
                group_id=node.group_id,
                join_strategy=node.join_strategy,
                triggered_by=triggered_by,
                failure=build_failure_context(self.topology, ref, self.state),
                joins=build_join_contexts(self.topology, ref, self.state, self.results.view),
            ),
        )

    def _start_attempt(self, ref: str) -> None:
        """Start the next attempt of a ready (or retried) action."""
        action = self.topology.action(ref)
        context = self._contexts.get(ref)
        if context is None:
            context = self._build_context(ref)
            self._contexts[ref] = context

        action_state = self.state.transition(ref, ActionStatus.RUNNING)
        action_state.triggered_by = context.metadata.triggered_by
        action_state.warnings = list(context.warnings)
        attempt = action_state.attempt
        attempt_context = context.model_copy(
            update={"metadata": context.metadata.model_copy(update={"attempt": attempt})}
        )

        if (ref, attempt) in self._recorded_attempts:
            self._replaying[ref] = attempt
            logger.debug(f"Replaying {ref} attempt {attempt} from history")
            return

        invocation = ActionInvocation(
            ref=ref,
            component_id=action.component_id,
            timeout_seconds=action.timeout_seconds,
        )
        task = asyncio.create_task(
            self.runner.execute(invocation, attempt_context),
            name=f"action:{ref}:{attempt}",
        )
        self._tasks[task] = ref
        logger.info(
            f"Dispatched {ref} ({action.component_id}) attempt {attempt}",
            extra={"context": {"action_ref": ref, "triggered_by": action_state.triggered_by}},
        )

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def _handle_done(self, done: set[asyncio.Task[Any]]) -> tuple[str, BaseException] | None:
        """Record finished tasks in definition order.

        Returns:
            The first infrastructure failure of the batch, if any.
        """
        finished = sorted(
            ((self._tasks.pop(task), task) for task in done),
            key=lambda item: self.state.handle(item[0]),
        )
        self._batch += 1
        infrastructure_error: tuple[str, BaseException] | None = None

        for ref, task in finished:
            if task.cancelled():
                # cancelled from outside the scheduler; the attempt has no result
                if infrastructure_error is None:
                    infrastructure_error = (ref, asyncio.CancelledError(f"{ref} was cancelled"))
                continue
            error = task.exception()
            if error is None:
                self._complete(ref, self.policy.classify_output(task.result()))
                continue

            outcome = self.policy.classify_exception(error)
            if outcome is None:
                if infrastructure_error is None:
                    infrastructure_error = (ref, error)
                continue
            self._complete(ref, outcome)

        return infrastructure_error

    def _apply_recorded_batch(self) -> bool:
        """Apply the next batch of recorded completions.

        Returns:
            False when the next recorded completion's action is not running.
        """
        head = self._replay[0]
        batch = [head]
        if head.batch is not None:
            for event in list(self._replay)[1:]:
                if event.batch != head.batch:
                    break
                batch.append(event)

        for event in batch:
            if self._replaying.get(event.ref) != event.attempt:
                return False

        self._batch += 1
        for event in batch:
            self._replay.popleft()
            del self._replaying[event.ref]
            self._complete(
                event.ref,
                AttemptOutcome(outcome=event.outcome, output=event.output, error=event.error),
            )
        return True

    def _complete(self, ref: str, outcome: AttemptOutcome) -> None:
        action_state = self.state[ref]
        self.history.append(
            CompletionEvent(
                sequence=len(self.history),
                batch=self._batch,
                ref=ref,
                attempt=action_state.attempt,
                outcome=outcome.outcome,
                output=outcome.output,
                error=outcome.error,
            )
        )
        action_state.output = outcome.output
        action_state.error = outcome.error

        if outcome.succeeded:
            self.state.transition(ref, ActionStatus.SUCCEEDED)
            self.results.record(ref, outcome.output)
            logger.info(f"Action {ref} succeeded (attempt {action_state.attempt})")
            return

        self.state.transition(ref, ActionStatus.FAILED)
        action = self.topology.action(ref)
        if not self._cancelled and self.policy.should_retry(action, action_state.attempt):
            logger.warning(
                f"Action {ref} failed (attempt {action_state.attempt}/{action.max_attempts}), "
                f"retrying: {outcome.error}"
            )
            self._start_attempt(ref)
            return
        logger.warning(f"Action {ref} failed: {outcome.error}")

    async def _cancel_in_flight(self) -> None:
        if not self._tasks:
            return
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    def _summarize(self, *, cancelled: bool = False, aborted: bool = False) -> RunResult:
        return self.policy.summarize(
            self.run_id,
            self.workflow_id,
            self.state,
            self.results,
            self.history,
            cancelled=cancelled,
            aborted=aborted,
        )


__all__ = ["WorkflowScheduler"]
