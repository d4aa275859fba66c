"""Shared fixtures: workflow definitions, a scripted agent bridge and a fresh runner."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

import pytest

from workflow_runtime.engine.agent_bridge import AgentBridge, AgentRequest, AgentResponse
from workflow_runtime.engine.llm_provider import ToolCall
from workflow_runtime.engine.node_registry import node_registry, register_all_nodes
from workflow_runtime.engine.runner import WorkflowRunner
from workflow_runtime.engine.tools import ToolRegistry, create_default_registry
from workflow_runtime.engine.types import WorkflowDefinition
from workflow_runtime.storage.checkpoint_store import InMemoryCheckpointStore
from workflow_runtime.storage.execution_store import ExecutionStore
from workflow_runtime.storage.workflow_store import WorkflowStore


@pytest.fixture(scope="session", autouse=True)
def registered_nodes():
    register_all_nodes()
    return node_registry


class FakeAgentBridge(AgentBridge):
    """Replays scripted responses and records every request it receives."""

    def __init__(self, responses: list[AgentResponse] | None = None) -> None:
        self.responses = list(responses or [])
        self.requests: list[dict[str, Any]] = []
        self.default = AgentResponse(content="ok")
        # Set to make invoke() wait until cancelled
        self.block: asyncio.Event | None = None

    def script(self, *responses: AgentResponse) -> None:
        self.responses.extend(responses)

    async def invoke(
        self,
        request: AgentRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentResponse:
        self.requests.append(
            {
                "node_id": request.node_id,
                "prompt": request.prompt,
                "system": request.system,
                "tools": [t["name"] for t in request.tools],
                "messages": copy.deepcopy(request.messages),
            }
        )
        if self.block is not None and cancel_event is not None:
            self.block.set()
            await cancel_event.wait()
            from workflow_runtime.core.exceptions import ExecutionCancelledError

            raise ExecutionCancelledError(request.execution_id or "")
        if self.responses:
            return self.responses.pop(0)
        return self.default


def tool_call(name: str, call_id: str = "call_1", **args: Any) -> ToolCall:
    return ToolCall(id=call_id, name=name, args=args)


@pytest.fixture
def agent_bridge() -> FakeAgentBridge:
    return FakeAgentBridge()


@pytest.fixture
def tools() -> ToolRegistry:
    registry = create_default_registry()
    registry.register(
        {
            "name": "googleSearch",
            "description": "Search the web",
            "input_schema": {
                "type": "object",
                "properties": {"query": {"type": "string"}},
                "required": ["query"],
            },
            "execute": lambda args: {
                "results": [f"https://example.com/{args.get('query', '').replace(' ', '-')}"]
            },
        }
    )
    return registry


@pytest.fixture
def workflow_store() -> WorkflowStore:
    return WorkflowStore()


@pytest.fixture
def execution_store() -> ExecutionStore:
    return ExecutionStore()


@pytest.fixture
def checkpoints() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def runner(workflow_store, execution_store, checkpoints, agent_bridge, tools) -> WorkflowRunner:
    return WorkflowRunner(
        workflow_store=workflow_store,
        execution_store=execution_store,
        checkpoint_gateway=checkpoints,
        agent_bridge=agent_bridge,
        tools=tools,
        default_max_iterations=10,
        default_language="en",
    )


# --- Workflow definitions ---


SIMPLE_LINEAR = {
    "id": "test-simple-linear",
    "name": {"en": "Simple Linear Test"},
    "config": {"maxIterations": 5, "allowCycles": False},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "input", "type": "string", "required": True}]},
        },
        {
            "id": "transform1",
            "type": "transform",
            "config": {"operations": [{"set": "result", "value": "processed: {{input}}"}]},
        },
        {"id": "end", "type": "end", "config": {"outputVariables": ["result"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "transform1"},
        {"id": "e2", "source": "transform1", "target": "end"},
    ],
}

DECISION = {
    "id": "test-decision",
    "name": {"en": "Decision Test"},
    "config": {"maxIterations": 5, "allowCycles": False},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "value", "type": "number", "required": True}]},
        },
        {
            "id": "check",
            "type": "decision",
            "config": {"type": "expression", "expression": "$.data.value > 10"},
        },
        {"id": "high", "type": "transform", "config": {"operations": [{"set": "result", "value": "high"}]}},
        {"id": "low", "type": "transform", "config": {"operations": [{"set": "result", "value": "low"}]}},
        {"id": "end", "type": "end", "config": {"outputVariables": ["result", "value"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "check"},
        {
            "id": "e2",
            "source": "check",
            "target": "high",
            "condition": {"type": "equals", "field": "result.branch", "value": "true"},
        },
        {
            "id": "e3",
            "source": "check",
            "target": "low",
            "condition": {"type": "equals", "field": "result.branch", "value": "false"},
        },
        {"id": "e4", "source": "high", "target": "end"},
        {"id": "e5", "source": "low", "target": "end"},
    ],
}

HUMAN_CHECKPOINT = {
    "id": "test-human-checkpoint",
    "name": {"en": "Human Checkpoint Test"},
    "config": {"maxIterations": 5, "allowCycles": True},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "content", "type": "string", "required": True}]},
        },
        {
            "id": "approval",
            "type": "human",
            "name": {"en": "Request Approval", "de": "Freigabe anfordern"},
            "config": {
                "message": {
                    "en": "Please review and approve the content: {{content}}",
                    "de": "Bitte prüfen: {{content}}",
                },
                "options": [
                    {"value": "approve", "label": {"en": "Approve"}, "style": "primary"},
                    {"value": "reject", "label": {"en": "Reject"}, "style": "danger"},
                    {"value": "revise", "label": {"en": "Revise"}},
                ],
                "inputSchema": {
                    "type": "object",
                    "properties": {"feedback": {"type": "string", "title": "Feedback"}},
                },
                "showData": ["$.data.content"],
                "outputVariable": "review",
            },
        },
        {"id": "approved", "type": "transform", "config": {"operations": [{"set": "status", "value": "approved"}]}},
        {"id": "rejected", "type": "transform", "config": {"operations": [{"set": "status", "value": "rejected"}]}},
        {"id": "end", "type": "end", "config": {"outputVariables": ["status", "content"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "approval"},
        {
            "id": "e2",
            "source": "approval",
            "target": "approved",
            "condition": {"type": "equals", "field": "result.branch", "value": "approve"},
        },
        {
            "id": "e3",
            "source": "approval",
            "target": "rejected",
            "condition": {"type": "equals", "field": "result.branch", "value": "reject"},
        },
        {
            "id": "e4",
            "source": "approval",
            "target": "start",
            "condition": {"type": "equals", "field": "result.branch", "value": "revise"},
        },
        {"id": "e5", "source": "approved", "target": "end"},
        {"id": "e6", "source": "rejected", "target": "end"},
    ],
}

SIMPLE_AGENT = {
    "id": "test-simple-agent",
    "name": {"en": "Simple Agent Test"},
    "config": {"maxIterations": 5, "allowCycles": False},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "text", "type": "string", "required": True}]},
        },
        {
            "id": "summarize",
            "type": "agent",
            "config": {
                "system": {"en": "You are a helpful assistant. Be concise."},
                "prompt": {"en": "Summarize the following text in one sentence: {{text}}"},
                "model": "auto",
                "outputVariable": "summary",
            },
        },
        {"id": "end", "type": "end", "config": {"outputVariables": ["summary"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "summarize"},
        {"id": "e2", "source": "summarize", "target": "end"},
    ],
}

TOOL_CALLING = {
    "id": "test-tool-calling",
    "name": {"en": "Tool Calling Test"},
    "config": {"maxIterations": 10, "allowCycles": False},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "query", "type": "string", "required": True}]},
        },
        {
            "id": "searcher",
            "type": "agent",
            "config": {
                "system": {"en": "You are a research assistant."},
                "prompt": {"en": "Search for information about: {{query}}"},
                "model": "auto",
                "tools": ["googleSearch"],
                "maxIterations": 3,
                "outputVariable": "searchResults",
                "outputSchema": {
                    "type": "object",
                    "properties": {
                        "summary": {"type": "string"},
                        "sources": {"type": "array", "items": {"type": "string"}},
                    },
                    "required": ["summary"],
                },
            },
        },
        {"id": "end", "type": "end", "config": {"outputVariables": ["searchResults"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "searcher"},
        {"id": "e2", "source": "searcher", "target": "end"},
    ],
}

ITERATIVE_RESEARCH = {
    "id": "test-iterative-research",
    "name": {"en": "Iterative Research Test"},
    "config": {"maxIterations": 2, "allowCycles": True},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "topic", "type": "string", "required": True}]},
        },
        {
            "id": "init",
            "type": "transform",
            "config": {
                "operations": [
                    {"set": "findings", "value": []},
                    {"set": "iteration", "value": 0},
                    {"set": "maxIterations", "value": 2},
                ]
            },
        },
        {
            "id": "research",
            "type": "agent",
            "config": {
                "prompt": {"en": "Research topic: {{topic}}\nPrevious findings: {{findings}}"},
                "outputVariable": "currentFinding",
                "outputSchema": {"type": "object", "properties": {"finding": {"type": "string"}}},
            },
        },
        {
            "id": "accumulate",
            "type": "transform",
            "config": {
                "operations": [
                    {"push": "currentFinding", "to": "findings"},
                    {"increment": "iteration", "by": 1},
                ]
            },
        },
        {
            "id": "check-complete",
            "type": "decision",
            "config": {"type": "expression", "expression": "$.data.iteration >= $.data.maxIterations"},
        },
        {"id": "end", "type": "end", "config": {"outputVariables": ["findings", "iteration", "topic"]}},
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "init"},
        {"id": "e2", "source": "init", "target": "research"},
        {"id": "e3", "source": "research", "target": "accumulate"},
        {"id": "e4", "source": "accumulate", "target": "check-complete"},
        {
            "id": "e5",
            "source": "check-complete",
            "target": "end",
            "condition": {"type": "equals", "field": "result.branch", "value": "true"},
        },
        {
            "id": "e6",
            "source": "check-complete",
            "target": "research",
            "condition": {"type": "equals", "field": "result.branch", "value": "false"},
        },
    ],
}

MULTI_TRANSFORM = {
    "id": "test-multi-transform",
    "name": {"en": "Multi-Transform Test"},
    "config": {"maxIterations": 5, "allowCycles": False},
    "nodes": [
        {
            "id": "start",
            "type": "start",
            "config": {"inputVariables": [{"name": "items", "type": "array", "required": True}]},
        },
        {"id": "transform1", "type": "transform", "config": {"operations": [{"set": "counter", "value": 0}]}},
        {
            "id": "transform2",
            "type": "transform",
            "config": {
                "operations": [
                    {"increment": "counter", "by": 5},
                    {"lengthOf": "items", "to": "itemCount"},
                ]
            },
        },
        {
            "id": "transform3",
            "type": "transform",
            "config": {
                "operations": [
                    {"arrayGet": "items", "index": 0, "to": "firstItem"},
                    {"set": "processed", "value": True},
                ]
            },
        },
        {
            "id": "end",
            "type": "end",
            "config": {"outputVariables": ["counter", "itemCount", "firstItem", "processed"]},
        },
    ],
    "edges": [
        {"id": "e1", "source": "start", "target": "transform1"},
        {"id": "e2", "source": "transform1", "target": "transform2"},
        {"id": "e3", "source": "transform2", "target": "transform3"},
        {"id": "e4", "source": "transform3", "target": "end"},
    ],
}


def load(raw: dict[str, Any], **overrides: Any) -> WorkflowDefinition:
    """Build a definition from a fixture dict, with top-level overrides."""
    data = copy.deepcopy(raw)
    data.update(overrides)
    return WorkflowDefinition.from_dict(data)


@pytest.fixture
def simple_linear() -> WorkflowDefinition:
    return load(SIMPLE_LINEAR)


@pytest.fixture
def decision_workflow() -> WorkflowDefinition:
    return load(DECISION)


@pytest.fixture
def human_workflow() -> WorkflowDefinition:
    return load(HUMAN_CHECKPOINT)


@pytest.fixture
def simple_agent() -> WorkflowDefinition:
    return load(SIMPLE_AGENT)


@pytest.fixture
def tool_calling() -> WorkflowDefinition:
    return load(TOOL_CALLING)


@pytest.fixture
def iterative_research() -> WorkflowDefinition:
    return load(ITERATIVE_RESEARCH)


@pytest.fixture
def multi_transform() -> WorkflowDefinition:
    return load(MULTI_TRANSFORM)
