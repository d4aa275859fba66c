"""End-to-end tests for the workflow runner."""

import asyncio
import copy

import pytest

from conftest import (
    HUMAN_CHECKPOINT,
    ITERATIVE_RESEARCH,
    SIMPLE_AGENT,
    SIMPLE_LINEAR,
    load,
    tool_call,
)

from workflow_runtime.core.authorization import Caller
from workflow_runtime.core.exceptions import (
    AuthorizationError,
    CheckpointError,
    DefinitionError,
    ExecutionBusyError,
    ExecutionNotFoundError,
    InputError,
    InvalidExecutionStateError,
    WorkflowNotFoundError,
)
from workflow_runtime.engine.agent_bridge import AgentResponse
from workflow_runtime.engine.runner import WorkflowRunner
from workflow_runtime.engine.types import ExecutionEventType, ExecutionStatus
from workflow_runtime.storage.checkpoint_store import InMemoryCheckpointStore
from workflow_runtime.storage.execution_store import ExecutionStore


class FailingCheckpointStore(InMemoryCheckpointStore):
    async def save(self, execution_id, state):
        raise CheckpointError("disk full", execution_id)


class TestLinearExecution:
    @pytest.mark.asyncio
    async def test_simple_linear(self, runner, simple_linear):
        state = await runner.run(simple_linear, {"input": "hello"})

        assert state.status == ExecutionStatus.COMPLETED
        assert state.result == {"result": "processed: hello"}
        assert state.steps == 3
        assert [h.node_id for h in state.history] == ["start", "transform1", "end"]
        assert all(h.status == "completed" for h in state.history)

    @pytest.mark.asyncio
    async def test_start_registered_workflow(self, runner, workflow_store, simple_linear):
        workflow_store.save(simple_linear)
        state = await runner.start("test-simple-linear", {"input": "x"})
        assert state.status == ExecutionStatus.COMPLETED
        assert (await runner.status(state.execution_id)) is state

    @pytest.mark.asyncio
    async def test_multi_transform(self, runner, multi_transform):
        state = await runner.run(multi_transform, {"items": ["a", "b", "c"]})
        assert state.status == ExecutionStatus.COMPLETED
        assert state.result == {"counter": 5, "itemCount": 3, "firstItem": "a", "processed": True}

    @pytest.mark.asyncio
    async def test_transforms_only_touch_named_variables(self, runner, multi_transform):
        extra = {"nested": {"keep": [1, 2]}}
        state = await runner.run(multi_transform, {"items": ["a"], "extra": extra})
        assert state.data["extra"] == {"nested": {"keep": [1, 2]}}
        assert state.data["items"] == ["a"]

    @pytest.mark.asyncio
    async def test_inputs_are_copied(self, runner, multi_transform):
        items = ["a", "b"]
        state = await runner.run(multi_transform, {"items": items})
        items.append("c")
        assert state.data["items"] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_events_are_emitted_in_order(self, runner, simple_linear):
        events = []
        await runner.run(simple_linear, {"input": "x"}, on_event=events.append)
        types = [e.type for e in events]
        assert types[0] == ExecutionEventType.EXECUTION_START
        assert types[-1] == ExecutionEventType.EXECUTION_COMPLETE
        assert types.count(ExecutionEventType.NODE_START) == 3

    @pytest.mark.asyncio
    async def test_failing_event_callback_does_not_break_the_run(self, runner, simple_linear):
        def explode(event):
            raise RuntimeError("observer bug")

        state = await runner.run(simple_linear, {"input": "x"}, on_event=explode)
        assert state.status == ExecutionStatus.COMPLETED


class TestDecisions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("value, expected", [(15, "high"), (5, "low"), (10, "low")])
    async def test_branches(self, runner, decision_workflow, value, expected):
        state = await runner.run(decision_workflow, {"value": value})
        assert state.status == ExecutionStatus.COMPLETED
        assert state.result == {"result": expected, "value": value}

    @pytest.mark.asyncio
    async def test_switch_decision(self, runner):
        definition = load(SIMPLE_LINEAR, nodes=[
            {"id": "start", "type": "start", "config": {"inputVariables": []}},
            {
                "id": "route",
                "type": "decision",
                "config": {
                    "type": "switch",
                    "variable": "tier",
                    "conditions": [
                        {"equals": "gold", "branch": "vip"},
                        {"in": ["silver", "bronze"], "branch": "member"},
                    ],
                    "defaultBranch": "guest",
                },
            },
            {"id": "vip", "type": "transform", "config": {"operations": [{"set": "lane", "value": "fast"}]}},
            {"id": "other", "type": "transform", "config": {"operations": [{"set": "lane", "value": "normal"}]}},
            {"id": "end", "type": "end", "config": {"outputVariables": ["lane"]}},
        ], edges=[
            {"source": "start", "target": "route"},
            {"source": "route", "target": "vip", "condition": {"field": "result.branch", "value": "vip"}},
            {"source": "route", "target": "other", "condition": {"field": "result.branch", "value": "member"}},
            {"source": "route", "target": "other", "condition": {"field": "result.branch", "value": "guest"}},
            {"source": "vip", "target": "end"},
            {"source": "other", "target": "end"},
        ])

        gold = await runner.run(definition, {"tier": "gold"})
        guest = await runner.run(definition, {"tier": "none"})

        assert gold.result == {"lane": "fast"}
        assert guest.result == {"lane": "normal"}
        assert guest.history[1].branch == "guest"

    @pytest.mark.asyncio
    async def test_fallback_edge_on_decision_is_rejected(self, runner, execution_store):
        raw = load(SIMPLE_LINEAR).to_dict()
        raw["nodes"] = [
            {"id": "start", "type": "start", "config": {"inputVariables": []}},
            {"id": "check", "type": "decision", "config": {"expression": "$.data.value > 10"}},
            {"id": "high", "type": "transform", "config": {"operations": [{"set": "lane", "value": "high"}]}},
            {"id": "other", "type": "transform", "config": {"operations": [{"set": "lane", "value": "other"}]}},
            {"id": "end", "type": "end", "config": {"outputVariables": ["lane"]}},
        ]
        raw["edges"] = [
            {"source": "start", "target": "check"},
            {"source": "check", "target": "high", "condition": {"field": "result.branch", "value": "true"}},
            {"source": "check", "target": "other"},
            {"source": "high", "target": "end"},
            {"source": "other", "target": "end"},
        ]

        with pytest.raises(DefinitionError) as exc_info:
            await runner.run(load(raw), {"value": 5})

        assert any("needs a condition" in e for e in exc_info.value.errors)
        assert execution_store.list() == []

    @pytest.mark.asyncio
    async def test_expression_on_missing_variable_fails_the_run(self, runner):
        raw = copy.deepcopy(load(SIMPLE_LINEAR).to_dict())
        raw["nodes"] = [
            {"id": "start", "type": "start", "config": {"inputVariables": []}},
            {"id": "check", "type": "decision", "config": {"expression": "$.data.score > 3"}},
            {"id": "end", "type": "end", "config": {"outputVariables": []}},
        ]
        raw["edges"] = [
            {"source": "start", "target": "check"},
            {"source": "check", "target": "end", "condition": {"field": "result.branch", "value": "true"}},
            {"source": "check", "target": "end", "condition": {"field": "result.branch", "value": "false"}},
        ]
        state = await runner.run(load(raw), {})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "EVALUATION_ERROR"
        assert state.error["nodeId"] == "check"
        assert state.history[-1].status == "failed"


class TestIterationLimit:
    @pytest.mark.asyncio
    async def test_research_loop_completes_within_bound(self, runner, agent_bridge, iterative_research):
        agent_bridge.script(
            AgentResponse(structured_output={"finding": "first"}),
            AgentResponse(content='```json\n{"finding": "second"}\n```'),
        )

        state = await runner.run(iterative_research, {"topic": "bees"})

        assert state.status == ExecutionStatus.COMPLETED
        assert state.iteration == 2
        assert state.visits["research"] == 2
        assert state.result["findings"] == [{"finding": "first"}, {"finding": "second"}]
        assert state.result["iteration"] == 2
        assert len(agent_bridge.requests) == 2
        assert '{"finding": "first"}' in agent_bridge.requests[1]["prompt"]

    @pytest.mark.asyncio
    async def test_loop_that_never_exits_fails_after_max_passes(self, runner, agent_bridge):
        raw = copy.deepcopy(ITERATIVE_RESEARCH)
        for node in raw["nodes"]:
            if node["id"] == "check-complete":
                node["config"]["expression"] = "$.data.iteration < 0"
        agent_bridge.default = AgentResponse(structured_output={"finding": "again"})

        state = await runner.run(load(raw), {"topic": "bees"})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "ITERATION_LIMIT_EXCEEDED"
        assert state.error["nodeId"] == "research"
        assert state.error["details"] == {"node_id": "research", "count": 3, "max_iterations": 2}
        assert "3/2" in state.error["message"]
        assert state.visits["research"] == 2
        assert len(agent_bridge.requests) == 2

    @pytest.mark.asyncio
    async def test_runner_default_applies_without_workflow_limit(self, agent_bridge, tools):
        runner = WorkflowRunner(
            workflow_store=None,
            execution_store=ExecutionStore(),
            checkpoint_gateway=InMemoryCheckpointStore(),
            agent_bridge=agent_bridge,
            tools=tools,
            default_max_iterations=1,
        )
        raw = copy.deepcopy(ITERATIVE_RESEARCH)
        raw["config"] = {"allowCycles": True}
        agent_bridge.default = AgentResponse(structured_output={"finding": "x"})

        state = await runner.run(load(raw), {"topic": "bees"})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["details"]["max_iterations"] == 1

    @pytest.mark.asyncio
    async def test_step_ceiling_bounds_the_whole_run(self, agent_bridge, tools, simple_linear):
        runner = WorkflowRunner(
            workflow_store=None,
            execution_store=ExecutionStore(),
            checkpoint_gateway=InMemoryCheckpointStore(),
            agent_bridge=agent_bridge,
            tools=tools,
            max_steps=2,
        )

        state = await runner.run(simple_linear, {"input": "x"})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "ITERATION_LIMIT_EXCEEDED"
        assert state.error["nodeId"] == "end"
        assert state.error["details"] == {
            "node_id": "end",
            "count": 3,
            "max_iterations": 2,
            "scope": "steps",
        }
        assert state.steps == 2


class TestHumanCheckpoint:
    @pytest.mark.asyncio
    async def test_suspend_and_resume(self, runner, checkpoints, human_workflow):
        state = await runner.run(human_workflow, {"content": "Draft"})

        assert state.status == ExecutionStatus.WAITING_HUMAN
        assert state.current_node_id == "approval"
        checkpoint = state.checkpoint
        assert checkpoint["message"] == "Please review and approve the content: Draft"
        assert [o["value"] for o in checkpoint["options"]] == ["approve", "reject", "revise"]
        assert checkpoint["options"][2]["style"] == "secondary"
        assert checkpoint["displayData"] == {"content": "Draft"}
        assert checkpoint["expiresAt"] is None
        assert state.execution_id in checkpoints

        state = await runner.resume(state.execution_id, "approve", {"feedback": "looks good"})

        assert state.status == ExecutionStatus.COMPLETED
        assert state.result == {"status": "approved", "content": "Draft"}
        assert state.checkpoint is None
        assert state.data["review"] == {"feedback": "looks good"}
        assert state.data["humanResponse_approval"]["response"] == "approve"
        assert state.execution_id not in checkpoints

    @pytest.mark.asyncio
    async def test_checkpoint_is_localized(self, runner, human_workflow):
        state = await runner.run(human_workflow, {"content": "Entwurf"}, language="de")
        assert state.checkpoint["message"] == "Bitte prüfen: Entwurf"
        assert state.checkpoint["nodeName"] == "Freigabe anfordern"
        # No German label, so English is used
        assert state.checkpoint["options"][0]["label"] == "Approve"

    @pytest.mark.asyncio
    async def test_revise_loops_back_and_suspends_again(self, runner, human_workflow):
        state = await runner.run(human_workflow, {"content": "Draft"})
        state = await runner.resume(state.execution_id, "revise")

        assert state.status == ExecutionStatus.WAITING_HUMAN
        assert state.visits["approval"] == 2
        assert state.visits["start"] == 2

    @pytest.mark.asyncio
    async def test_invalid_branch_leaves_state_unchanged(self, runner, human_workflow):
        state = await runner.run(human_workflow, {"content": "Draft"})
        before = state.to_dict()

        with pytest.raises(InputError, match="Valid options"):
            await runner.resume(state.execution_id, "maybe")

        after = await runner.status(state.execution_id)
        assert after.status == ExecutionStatus.WAITING_HUMAN
        assert after.to_dict() == before

    @pytest.mark.asyncio
    async def test_input_must_match_schema(self, runner, human_workflow):
        state = await runner.run(human_workflow, {"content": "Draft"})
        with pytest.raises(InputError, match="feedback"):
            await runner.resume(state.execution_id, "approve", {"feedback": 5})
        assert state.status == ExecutionStatus.WAITING_HUMAN

    @pytest.mark.asyncio
    async def test_resume_completed_execution(self, runner, simple_linear):
        state = await runner.run(simple_linear, {"input": "x"})
        before = (await runner.status(state.execution_id)).to_dict()

        with pytest.raises(InvalidExecutionStateError, match="completed"):
            await runner.resume(state.execution_id, "approve")

        assert (await runner.status(state.execution_id)).to_dict() == before

    @pytest.mark.asyncio
    async def test_resume_failed_execution(self, runner, decision_workflow):
        state = await runner.run(decision_workflow, {})
        assert state.status == ExecutionStatus.FAILED
        before = (await runner.status(state.execution_id)).to_dict()

        with pytest.raises(InvalidExecutionStateError, match="failed"):
            await runner.resume(state.execution_id, "true", {"value": 1})

        after = await runner.status(state.execution_id)
        assert after.status == ExecutionStatus.FAILED
        assert after.to_dict() == before

    @pytest.mark.asyncio
    async def test_resume_unknown_execution(self, runner):
        with pytest.raises(ExecutionNotFoundError):
            await runner.resume("exec_missing", "approve")

    @pytest.mark.asyncio
    async def test_resume_from_checkpoint_in_a_new_runner(
        self, runner, workflow_store, checkpoints, agent_bridge, tools, human_workflow
    ):
        workflow_store.save(human_workflow)
        state = await runner.start("test-human-checkpoint", {"content": "Draft"})

        fresh = WorkflowRunner(
            workflow_store=workflow_store,
            execution_store=ExecutionStore(),
            checkpoint_gateway=checkpoints,
            agent_bridge=agent_bridge,
            tools=tools,
        )
        resumed = await fresh.resume(state.execution_id, "reject")

        assert resumed is not state
        assert resumed.status == ExecutionStatus.COMPLETED
        assert resumed.result == {"status": "rejected", "content": "Draft"}

    @pytest.mark.asyncio
    async def test_checkpoint_save_failure_fails_the_run(
        self, workflow_store, agent_bridge, tools, human_workflow
    ):
        runner = WorkflowRunner(
            workflow_store=workflow_store,
            execution_store=ExecutionStore(),
            checkpoint_gateway=FailingCheckpointStore(),
            agent_bridge=agent_bridge,
            tools=tools,
        )
        state = await runner.run(human_workflow, {"content": "Draft"})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "CHECKPOINT_ERROR"
        assert state.checkpoint is None


class TestPersistence:
    @pytest.mark.asyncio
    async def test_long_term_keeps_terminal_state(self, runner, checkpoints):
        definition = load(SIMPLE_LINEAR, config={"persistence": "long_term"})
        state = await runner.run(definition, {"input": "x"})

        stored = await checkpoints.load(state.execution_id)
        assert stored.status == ExecutionStatus.COMPLETED
        assert stored.result == {"result": "processed: x"}

    @pytest.mark.asyncio
    async def test_session_mode_discards_checkpoint(self, runner, checkpoints, simple_linear):
        state = await runner.run(simple_linear, {"input": "x"})
        assert state.execution_id not in checkpoints

    @pytest.mark.asyncio
    async def test_empty_injected_gateway_is_used(self, agent_bridge, tools, human_workflow):
        gateway = InMemoryCheckpointStore()
        assert len(gateway) == 0
        runner = WorkflowRunner(
            workflow_store=None,
            execution_store=ExecutionStore(),
            checkpoint_gateway=gateway,
            agent_bridge=agent_bridge,
            tools=tools,
        )

        state = await runner.run(human_workflow, {"content": "Draft"})

        saved = await gateway.load(state.execution_id)
        assert saved.status == ExecutionStatus.WAITING_HUMAN
        assert saved.checkpoint["nodeId"] == "approval"

    @pytest.mark.asyncio
    async def test_finished_runs_release_their_bookkeeping(self, runner, simple_linear, human_workflow):
        for _ in range(5):
            await runner.run(simple_linear, {"input": "x"})
        assert runner._definitions == {}
        assert runner._cancel_events == {}

        waiting = await runner.run(human_workflow, {"content": "Draft"})
        assert list(runner._definitions) == [waiting.execution_id]
        assert runner._cancel_events == {}

        await runner.resume(waiting.execution_id, "approve")
        assert runner._definitions == {}
        assert runner._cancel_events == {}
        assert runner._locks == {}


class TestAgents:
    @pytest.mark.asyncio
    async def test_simple_agent(self, runner, agent_bridge, simple_agent):
        agent_bridge.script(AgentResponse(content="A short summary."))
        state = await runner.run(simple_agent, {"text": "Long text"})

        assert state.status == ExecutionStatus.COMPLETED
        assert state.result == {"summary": "A short summary."}
        request = agent_bridge.requests[0]
        assert request["prompt"] == "Summarize the following text in one sentence: Long text"
        assert request["system"] == "You are a helpful assistant. Be concise."

    @pytest.mark.asyncio
    async def test_tool_loop(self, runner, agent_bridge, tool_calling):
        agent_bridge.script(
            AgentResponse(tool_calls=[tool_call("googleSearch", query="python")]),
            AgentResponse(structured_output={"summary": "Python", "sources": ["https://example.com/python"]}),
        )

        state = await runner.run(tool_calling, {"query": "python"})

        assert state.status == ExecutionStatus.COMPLETED
        assert state.result["searchResults"]["summary"] == "Python"
        assert agent_bridge.requests[0]["tools"] == ["googleSearch"]
        second = agent_bridge.requests[1]["messages"]
        assert second[-2]["role"] == "assistant"
        assert second[-1]["role"] == "tool"
        assert "example.com/python" in second[-1]["content"]
        step = state.history[1]
        assert step.output["iterations"] == 2
        assert step.output["toolCalls"][0]["name"] == "googleSearch"

    @pytest.mark.asyncio
    async def test_tool_loop_exhaustion(self, runner, agent_bridge, tool_calling):
        agent_bridge.default = AgentResponse(tool_calls=[tool_call("googleSearch", query="again")])

        state = await runner.run(tool_calling, {"query": "python"})

        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "AGENT_ERROR"
        assert state.error["nodeId"] == "searcher"
        assert len(agent_bridge.requests) == 3

    @pytest.mark.asyncio
    async def test_undeclared_tool(self, runner, agent_bridge, tool_calling):
        agent_bridge.script(AgentResponse(tool_calls=[tool_call("calculator", expression="1+1")]))
        state = await runner.run(tool_calling, {"query": "python"})
        assert state.status == ExecutionStatus.FAILED
        assert "undeclared tool" in state.error["message"]

    @pytest.mark.asyncio
    async def test_output_schema_mismatch(self, runner, agent_bridge, tool_calling):
        agent_bridge.script(AgentResponse(structured_output={"summary": 42}))
        state = await runner.run(tool_calling, {"query": "python"})
        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "AGENT_ERROR"
        assert "outputSchema" in state.error["message"]

    @pytest.mark.asyncio
    async def test_unparseable_structured_output(self, runner, agent_bridge, tool_calling):
        agent_bridge.script(AgentResponse(content="not json at all"))
        state = await runner.run(tool_calling, {"query": "python"})
        assert state.status == ExecutionStatus.FAILED
        assert "not valid JSON" in state.error["message"]

    @pytest.mark.asyncio
    async def test_tool_errors_are_returned_to_the_model(self, runner, agent_bridge, tools, tool_calling):
        def broken(args):
            raise RuntimeError("search backend down")

        tools.register({"name": "googleSearch", "execute": broken})
        agent_bridge.script(
            AgentResponse(tool_calls=[tool_call("googleSearch", query="x")]),
            AgentResponse(structured_output={"summary": "nothing found"}),
        )
        state = await runner.run(tool_calling, {"query": "x"})

        assert state.status == ExecutionStatus.COMPLETED
        assert "search backend down" in agent_bridge.requests[1]["messages"][-1]["content"]


class TestAuthorization:
    @pytest.mark.asyncio
    async def test_caller_outside_allowed_groups(self, runner, execution_store):
        definition = load(SIMPLE_LINEAR, allowedGroups=["finance"])
        with pytest.raises(AuthorizationError):
            await runner.run(definition, {"input": "x"}, caller=Caller(id="u1", groups=["sales"]))
        with pytest.raises(AuthorizationError):
            await runner.run(definition, {"input": "x"})
        assert execution_store.list() == []

    @pytest.mark.asyncio
    async def test_caller_in_allowed_groups(self, runner):
        definition = load(SIMPLE_LINEAR, allowedGroups=["finance"])
        state = await runner.run(definition, {"input": "x"}, caller=Caller(id="u1", groups=["finance"]))
        assert state.status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_wildcard_group_is_public(self, runner):
        definition = load(SIMPLE_LINEAR, allowedGroups=["*"])
        state = await runner.run(definition, {"input": "x"})
        assert state.status == ExecutionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_resume_is_authorized(self, runner):
        definition = load(HUMAN_CHECKPOINT, allowedGroups=["editors"])
        editor = Caller(id="e1", groups=["editors"])
        state = await runner.run(definition, {"content": "x"}, caller=editor)
        with pytest.raises(AuthorizationError):
            await runner.resume(state.execution_id, "approve", caller=Caller(id="x"))
        state = await runner.resume(state.execution_id, "approve", caller=editor)
        assert state.status == ExecutionStatus.COMPLETED


class TestStartErrors:
    @pytest.mark.asyncio
    async def test_unknown_workflow(self, runner):
        with pytest.raises(WorkflowNotFoundError):
            await runner.start("nope", {})

    @pytest.mark.asyncio
    async def test_disabled_workflow(self, runner, workflow_store):
        workflow_store.save(load(SIMPLE_LINEAR, enabled=False))
        with pytest.raises(DefinitionError, match="disabled"):
            await runner.start("test-simple-linear", {"input": "x"})

    @pytest.mark.asyncio
    async def test_invalid_definition(self, runner, execution_store):
        definition = load(SIMPLE_LINEAR, edges=[])
        with pytest.raises(DefinitionError):
            await runner.run(definition, {"input": "x"})
        assert execution_store.list() == []

    @pytest.mark.asyncio
    async def test_missing_required_input_fails_the_run(self, runner, simple_linear):
        state = await runner.run(simple_linear, {})
        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "INPUT_ERROR"
        assert state.error["details"] == {"field": "input"}

    @pytest.mark.asyncio
    async def test_wrong_input_type_fails_the_run(self, runner, decision_workflow):
        state = await runner.run(decision_workflow, {"value": True})
        assert state.status == ExecutionStatus.FAILED
        assert state.error["code"] == "INPUT_ERROR"

    @pytest.mark.asyncio
    async def test_input_must_be_an_object(self, runner, simple_linear):
        with pytest.raises(InputError):
            await runner.run(simple_linear, ["not", "a", "dict"])

    @pytest.mark.asyncio
    async def test_unknown_status(self, runner):
        with pytest.raises(ExecutionNotFoundError):
            await runner.status("exec_unknown")


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_waiting_execution(self, runner, checkpoints, human_workflow):
        events = []
        state = await runner.run(human_workflow, {"content": "x"})
        state = await runner.cancel(state.execution_id, on_event=events.append)

        assert state.status == ExecutionStatus.CANCELLED
        assert state.checkpoint is None
        assert state.execution_id not in checkpoints
        assert events[-1].type == ExecutionEventType.EXECUTION_CANCELLED

        with pytest.raises(InvalidExecutionStateError):
            await runner.cancel(state.execution_id)
        with pytest.raises(InvalidExecutionStateError):
            await runner.resume(state.execution_id, "approve")

    @pytest.mark.asyncio
    async def test_cancel_during_agent_call(self, runner, agent_bridge, execution_store):
        agent_bridge.block = asyncio.Event()
        task = asyncio.create_task(runner.run(load(SIMPLE_AGENT), {"text": "x"}))
        await asyncio.wait_for(agent_bridge.block.wait(), timeout=5)

        execution_id = execution_store.list()[0].execution_id
        running = await runner.status(execution_id)
        assert running.status == ExecutionStatus.RUNNING

        with pytest.raises(ExecutionBusyError):
            await runner.resume(execution_id, "anything")

        await runner.cancel(execution_id)
        state = await asyncio.wait_for(task, timeout=5)

        assert state.status == ExecutionStatus.CANCELLED
        assert state.result is None
        assert state.history[-1].node_id == "summarize"
        assert state.history[-1].status == "failed"
