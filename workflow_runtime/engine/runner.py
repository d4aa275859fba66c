"""
Workflow runner - drives an execution through its graph one node at a time.

Steps are sequential within an execution. A human node suspends the run:
the state is checkpointed and the call returns; `resume` continues from
the same node once a response arrives. Each node may execute at most
`maxIterations` times per execution, which bounds every cycle.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, TYPE_CHECKING

from ..core.authorization import Caller, GroupAuthorizer
from ..core.config import settings
from ..core.exceptions import (
    CheckpointError,
    DefinitionError,
    ExecutionBusyError,
    ExecutionCancelledError,
    ExecutionNotFoundError,
    InputError,
    InvalidExecutionStateError,
    IterationLimitExceeded,
    WorkflowEngineError,
    WorkflowNotFoundError,
)
from .edge_resolver import EdgeResolver, edge_resolver
from .types import (
    ExecutionContext,
    ExecutionEvent,
    ExecutionEventCallback,
    ExecutionEventType,
    ExecutionState,
    ExecutionStatus,
    NodeDefinition,
    NodeResult,
    NodeType,
    StepRecord,
    Suspend,
    WorkflowDefinition,
)
from .validator import DefinitionValidator
from .variable_store import VariableStore

if TYPE_CHECKING:
    from ..storage.checkpoint_store import CheckpointGateway
    from ..storage.execution_store import ExecutionStore
    from ..storage.workflow_store import WorkflowStore
    from .agent_bridge import AgentBridge
    from .node_registry import NodeRegistryClass
    from .tools import ToolRegistry

logger = logging.getLogger(__name__)


class WorkflowRunner:
    """Executes workflow definitions with suspend/resume support."""

    def __init__(
        self,
        workflow_store: WorkflowStore | None = None,
        execution_store: ExecutionStore | None = None,
        checkpoint_gateway: CheckpointGateway | None = None,
        agent_bridge: AgentBridge | None = None,
        tools: ToolRegistry | None = None,
        authorizer: GroupAuthorizer | None = None,
        validator: DefinitionValidator | None = None,
        registry: NodeRegistryClass | None = None,
        resolver: EdgeResolver | None = None,
        default_max_iterations: int | None = None,
        default_language: str | None = None,
        max_steps: int | None = None,
    ) -> None:
        from ..storage.checkpoint_store import InMemoryCheckpointStore
        from ..storage.execution_store import execution_store as default_execution_store
        from ..storage.workflow_store import workflow_store as default_workflow_store
        from .agent_bridge import LLMAgentBridge
        from .node_registry import node_registry
        from .tools import tool_registry

        self._registry: NodeRegistryClass = registry if registry is not None else node_registry
        self._workflows = workflow_store if workflow_store is not None else default_workflow_store
        self._executions = execution_store if execution_store is not None else default_execution_store
        self._checkpoints = checkpoint_gateway if checkpoint_gateway is not None else InMemoryCheckpointStore()
        self._agent_bridge = agent_bridge if agent_bridge is not None else LLMAgentBridge()
        self._tools = tools if tools is not None else tool_registry
        self._authorizer = authorizer if authorizer is not None else GroupAuthorizer()
        self._validator = validator if validator is not None else DefinitionValidator(self._registry)
        self._resolver = resolver if resolver is not None else edge_resolver
        self._default_max_iterations = default_max_iterations or settings.default_max_iterations
        self._default_language = default_language or settings.default_language
        self._max_steps = max_steps or settings.max_steps

        # Definitions of executions that are running or waiting, including
        # ad-hoc runs; released when the execution ends
        self._definitions: dict[str, WorkflowDefinition] = {}
        # One lock per execution with an active step
        self._locks: dict[str, asyncio.Lock] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}

    # --- Public API ---

    async def start(
        self,
        workflow_id: str,
        input_variables: dict[str, Any] | None = None,
        caller: Caller | None = None,
        on_event: ExecutionEventCallback | None = None,
        language: str | None = None,
    ) -> ExecutionState:
        """
        Start a registered workflow.

        Returns the state after the run completes, fails, is cancelled, or
        suspends at a human checkpoint.

        Raises:
            WorkflowNotFoundError: If the workflow is not registered
            AuthorizationError: If the caller may not run the workflow
            DefinitionError: If the definition is invalid
        """
        stored = self._workflows.get(workflow_id)
        if not stored:
            raise WorkflowNotFoundError(workflow_id)
        if not stored.definition.enabled:
            raise DefinitionError(f"Workflow '{workflow_id}' is disabled")
        return await self.run(stored.definition, input_variables, caller, on_event, language)

    async def run(
        self,
        definition: WorkflowDefinition,
        input_variables: dict[str, Any] | None = None,
        caller: Caller | None = None,
        on_event: ExecutionEventCallback | None = None,
        language: str | None = None,
    ) -> ExecutionState:
        """Run a definition that need not be registered."""
        self._authorizer.authorize(definition, caller)
        self._validator.validate(definition)

        if input_variables is None:
            input_variables = {}
        if not isinstance(input_variables, dict):
            raise InputError("Input variables must be an object")

        start_node = definition.find_start_node()
        state = ExecutionState(
            execution_id=self._generate_id(),
            workflow_id=definition.id,
            current_node_id=start_node.id,
            data=copy.deepcopy(input_variables),
        )
        self._definitions[state.execution_id] = definition
        self._executions.save(state)

        logger.info(
            "Execution %s started for workflow %s", state.execution_id, definition.id
        )
        self._emit_event(
            on_event,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_START,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                data={"workflowId": definition.id},
            ),
        )

        async with self._step(state.execution_id):
            context = self._create_context(definition, state, language)
            await self._drive(context, on_event)
        return state

    async def resume(
        self,
        execution_id: str,
        branch: str,
        input_data: dict[str, Any] | None = None,
        caller: Caller | None = None,
        on_event: ExecutionEventCallback | None = None,
        language: str | None = None,
    ) -> ExecutionState:
        """
        Continue an execution waiting at a human checkpoint.

        Raises:
            ExecutionNotFoundError: If no execution or checkpoint exists
            CheckpointError: If the checkpoint cannot be loaded
            InvalidExecutionStateError: If the execution is not waiting_human
            AuthorizationError: If the caller may not run the workflow
            InputError: If the branch or input is rejected; the state is
                left unchanged
        """
        async with self._step(execution_id):
            state = await self._load_state(execution_id)
            if state.status != ExecutionStatus.WAITING_HUMAN:
                raise InvalidExecutionStateError(execution_id, state.status.value, "resume")

            definition = self._definition_for(state)
            self._authorizer.authorize(definition, caller)

            node = definition.node_map().get(state.current_node_id or "")
            if node is None:
                raise InvalidExecutionStateError(execution_id, state.status.value, "resume")

            context = self._create_context(definition, state, language)
            result = await self._registry.get(node.type).resume(context, node, branch, input_data)

            state.checkpoint = None
            state.status = ExecutionStatus.RUNNING
            state.touch()
            self._complete_step(state, node.id, result)
            self._executions.save(state)

            logger.info("Execution %s resumed at %s with %s", execution_id, node.id, branch)
            self._emit_event(
                on_event,
                ExecutionEvent(
                    type=ExecutionEventType.EXECUTION_RESUMED,
                    execution_id=execution_id,
                    timestamp=datetime.now(),
                    node_id=node.id,
                    node_type=node.type,
                    data={"branch": branch},
                ),
            )

            await self._drive(context, on_event, resumed=result)
        return state

    async def status(self, execution_id: str) -> ExecutionState:
        """
        Current state of an execution.

        Raises:
            ExecutionNotFoundError: If the execution is unknown
            CheckpointError: If the checkpoint backend fails
        """
        return await self._load_state(execution_id)

    async def cancel(
        self,
        execution_id: str,
        caller: Caller | None = None,
        on_event: ExecutionEventCallback | None = None,
    ) -> ExecutionState:
        """
        Cancel an execution.

        A waiting execution is cancelled at once. A running one gets a
        cooperative flag that takes effect at the next node or agent call
        boundary. Terminal executions cannot be cancelled.
        """
        state = await self._load_state(execution_id)
        definition = self._definition_for(state)
        self._authorizer.authorize(definition, caller)

        if state.status.is_terminal:
            raise InvalidExecutionStateError(execution_id, state.status.value, "cancel")

        if state.status == ExecutionStatus.RUNNING and execution_id in self._locks:
            self._cancel_events.setdefault(execution_id, asyncio.Event()).set()
            logger.info("Cancellation requested for running execution %s", execution_id)
            return state

        async with self._step(execution_id):
            self._mark_cancelled(state, on_event)
            await self._finish(definition, state, on_event)
        return state

    # --- Step loop ---

    async def _drive(
        self,
        context: ExecutionContext,
        on_event: ExecutionEventCallback | None,
        resumed: NodeResult | None = None,
    ) -> None:
        """Step from `state.current_node_id` until the run ends or suspends."""
        definition = context.workflow
        state = context.state
        node_map = definition.node_map()
        max_iterations = definition.config.max_iterations or self._default_max_iterations
        node: NodeDefinition | None = None

        try:
            while True:
                node = node_map[state.current_node_id]

                if resumed is not None:
                    result, resumed = resumed, None
                else:
                    context.raise_if_cancelled()
                    outcome = await self._execute_node(context, node, max_iterations, on_event)
                    if isinstance(outcome, Suspend):
                        context.raise_if_cancelled()
                        await self._suspend(context, node, outcome, on_event)
                        return
                    result = outcome

                context.store.merge(result.data)
                self._log_data(definition, state, node.id)

                if node.type == NodeType.END.value:
                    state.result = result.output
                    state.status = ExecutionStatus.COMPLETED
                    state.touch()
                    logger.info(
                        "Execution %s completed after %d step(s)", state.execution_id, state.steps
                    )
                    self._emit_event(
                        on_event,
                        ExecutionEvent(
                            type=ExecutionEventType.EXECUTION_COMPLETE,
                            execution_id=state.execution_id,
                            timestamp=datetime.now(),
                            node_id=node.id,
                            data={"result": state.result},
                        ),
                    )
                    await self._finish(definition, state, on_event)
                    return

                state.current_node_id = self._resolver.next_node(
                    node, result, definition.edges, context.store.data
                )
                state.touch()

        except ExecutionCancelledError:
            self._fail_step(state, node, "cancelled")
            self._mark_cancelled(state, on_event)
            await self._finish(definition, state, on_event)
        except WorkflowEngineError as e:
            self._fail_step(state, node, e.message)
            self._mark_failed(state, e, node.id if node else None, on_event)
            await self._finish(definition, state, on_event)
        except Exception as e:
            logger.exception("Unexpected error in execution %s", state.execution_id)
            error = WorkflowEngineError(f"Unexpected error: {e}", {"exception": type(e).__name__})
            self._fail_step(state, node, error.message)
            self._mark_failed(state, error, node.id if node else None, on_event)
            await self._finish(definition, state, on_event)

    async def _execute_node(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        max_iterations: int,
        on_event: ExecutionEventCallback | None,
    ) -> NodeResult | Suspend:
        state = context.state
        count = state.visits.get(node.id, 0) + 1
        if count > max_iterations:
            raise IterationLimitExceeded(node.id, count, max_iterations)
        if state.steps >= self._max_steps:
            raise IterationLimitExceeded(node.id, state.steps + 1, self._max_steps, scope="steps")

        state.visits[node.id] = count
        state.iteration = max(state.iteration, count)
        state.steps += 1
        state.history.append(
            StepRecord(
                node_id=node.id,
                node_type=node.type,
                status="running",
                started_at=datetime.now().isoformat(),
            )
        )

        self._log_node(context.workflow, "Executing node %s (%s), visit %d", node.id, node.type, count)
        self._emit_event(
            on_event,
            ExecutionEvent(
                type=ExecutionEventType.NODE_START,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                node_id=node.id,
                node_type=node.type,
            ),
        )

        executor = self._registry.get(node.type)
        outcome = await executor.execute(context, node)

        if isinstance(outcome, NodeResult):
            self._complete_step(state, node.id, outcome)
            self._emit_event(
                on_event,
                ExecutionEvent(
                    type=ExecutionEventType.NODE_COMPLETE,
                    execution_id=state.execution_id,
                    timestamp=datetime.now(),
                    node_id=node.id,
                    node_type=node.type,
                    data={"branch": outcome.branch, "output": outcome.output},
                ),
            )
        return outcome

    async def _suspend(
        self,
        context: ExecutionContext,
        node: NodeDefinition,
        suspend: Suspend,
        on_event: ExecutionEventCallback | None,
    ) -> None:
        state = context.state
        state.checkpoint = suspend.checkpoint
        state.status = ExecutionStatus.WAITING_HUMAN
        state.touch()
        if state.history and state.history[-1].node_id == node.id:
            state.history[-1].status = "waiting"
        self._cancel_events.pop(state.execution_id, None)

        # CheckpointError propagates to _drive and fails the run
        await self._checkpoints.save(state.execution_id, state)

        logger.info(
            "Execution %s waiting for human input at %s", state.execution_id, node.id
        )
        self._emit_event(
            on_event,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_SUSPENDED,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                node_id=node.id,
                node_type=node.type,
                data={"reason": suspend.reason, "checkpoint": suspend.checkpoint},
            ),
        )

    # --- Terminal transitions ---

    def _mark_failed(
        self,
        state: ExecutionState,
        error: WorkflowEngineError,
        node_id: str | None,
        on_event: ExecutionEventCallback | None,
    ) -> None:
        state.status = ExecutionStatus.FAILED
        state.checkpoint = None
        state.error = error.to_payload(node_id)
        state.touch()
        logger.warning(
            "Execution %s failed at %s: %s", state.execution_id, node_id, error.message
        )
        self._emit_event(
            on_event,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_ERROR,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                node_id=node_id,
                error=error.message,
                data=state.error,
            ),
        )

    def _mark_cancelled(
        self, state: ExecutionState, on_event: ExecutionEventCallback | None
    ) -> None:
        state.status = ExecutionStatus.CANCELLED
        state.checkpoint = None
        state.touch()
        logger.info("Execution %s cancelled", state.execution_id)
        self._emit_event(
            on_event,
            ExecutionEvent(
                type=ExecutionEventType.EXECUTION_CANCELLED,
                execution_id=state.execution_id,
                timestamp=datetime.now(),
                node_id=state.current_node_id,
            ),
        )

    async def _finish(
        self,
        definition: WorkflowDefinition,
        state: ExecutionState,
        on_event: ExecutionEventCallback | None,
    ) -> None:
        """Apply the persistence mode once an execution is terminal."""
        self._cancel_events.pop(state.execution_id, None)
        self._definitions.pop(state.execution_id, None)
        try:
            if definition.config.persistence == "long_term":
                await self._checkpoints.save(state.execution_id, state)
            else:
                await self._checkpoints.delete(state.execution_id)
        except CheckpointError as e:
            if state.status == ExecutionStatus.FAILED:
                logger.error(
                    "Could not persist failed execution %s: %s", state.execution_id, e.message
                )
            else:
                self._mark_failed(state, e, state.current_node_id, on_event)

    # --- Helpers ---

    @asynccontextmanager
    async def _step(self, execution_id: str) -> AsyncIterator[None]:
        """Hold the execution's lock; a second concurrent step is refused."""
        lock = self._locks.setdefault(execution_id, asyncio.Lock())
        if lock.locked():
            raise ExecutionBusyError(execution_id)
        async with lock:
            try:
                yield
            finally:
                self._locks.pop(execution_id, None)

    async def _load_state(self, execution_id: str) -> ExecutionState:
        state = self._executions.get(execution_id)
        if state is not None:
            return state

        state = await self._checkpoints.load(execution_id)
        if state is None:
            raise ExecutionNotFoundError(execution_id)
        self._executions.save(state)
        return state

    def _definition_for(self, state: ExecutionState) -> WorkflowDefinition:
        definition = self._definitions.get(state.execution_id)
        if definition is None:
            stored = self._workflows.get(state.workflow_id)
            if not stored:
                raise WorkflowNotFoundError(state.workflow_id)
            definition = stored.definition
            if not state.status.is_terminal:
                self._definitions[state.execution_id] = definition
        return definition

    def _create_context(
        self,
        definition: WorkflowDefinition,
        state: ExecutionState,
        language: str | None,
    ) -> ExecutionContext:
        return ExecutionContext(
            workflow=definition,
            state=state,
            store=VariableStore(state.data),
            language=language or self._default_language,
            agent_bridge=self._agent_bridge,
            tools=self._tools,
            cancel_event=self._cancel_events.setdefault(state.execution_id, asyncio.Event()),
        )

    @staticmethod
    def _complete_step(state: ExecutionState, node_id: str, result: NodeResult) -> None:
        for record in reversed(state.history):
            if record.node_id == node_id:
                record.status = "completed"
                record.completed_at = datetime.now().isoformat()
                record.branch = result.branch
                record.output = result.output
                return

    @staticmethod
    def _fail_step(state: ExecutionState, node: NodeDefinition | None, error: str) -> None:
        if node is None or not state.history:
            return
        record = state.history[-1]
        if record.node_id == node.id and record.status == "running":
            record.status = "failed"
            record.completed_at = datetime.now().isoformat()
            record.error = error

    def _log_node(self, definition: WorkflowDefinition, message: str, *args: Any) -> None:
        if definition.config.observability != "minimal":
            logger.info(message, *args)

    def _log_data(self, definition: WorkflowDefinition, state: ExecutionState, node_id: str) -> None:
        if definition.config.observability == "full" and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "Data after %s in %s: %s",
                node_id,
                state.execution_id,
                json.dumps(state.data, default=str)[:2000],
            )

    def _emit_event(
        self, on_event: ExecutionEventCallback | None, event: ExecutionEvent
    ) -> None:
        """Helper to emit events safely."""
        if on_event:
            try:
                on_event(event)
            except Exception:
                logger.exception("Error in execution event callback")

    def _generate_id(self) -> str:
        """Generate unique execution ID."""
        return f"exec_{int(datetime.now().timestamp() * 1000)}_{uuid.uuid4().hex[:7]}"
