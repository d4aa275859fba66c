"""Agent node - prompt an LLM through the agent bridge with a bounded tool loop."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TYPE_CHECKING

from ..core.config import settings
from ..core.exceptions import AgentError
from ..engine.agent_bridge import AgentRequest, AgentResponse
from ..engine.schema_check import schema_problems, validate_payload
from ..engine.template import localize, render
from .base import BaseNode, NodeProperty, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def extract_json(content: str | None) -> Any:
    """
    Parse JSON from model text, preferring a fenced ```json block.

    Raises:
        ValueError: If no JSON can be parsed
    """
    if not content:
        raise ValueError("empty response")
    match = _FENCED_JSON.search(content)
    candidate = match.group(1) if match else content
    return json.loads(candidate.strip())


class AgentNode(BaseNode):
    """Agent node - LLM call with declared tools and optional structured output."""

    node_description = NodeTypeDescription(
        name="agent",
        display_name="AI Agent",
        description="Prompt an LLM, letting it call declared tools",
        icon="fa:brain",
        group=["ai"],
        properties=[
            NodeProperty(
                display_name="Prompt",
                name="prompt",
                type="string",
                default="",
                required=True,
                description="Localized prompt; supports {{ path }} placeholders",
            ),
            NodeProperty(
                display_name="System Prompt",
                name="system",
                type="string",
                default="",
            ),
            NodeProperty(
                display_name="Model",
                name="model",
                type="string",
                default="auto",
                description="Model id, or 'auto' for the configured default",
            ),
            NodeProperty(
                display_name="Tools",
                name="tools",
                type="json",
                default=[],
                description="Names of registered tools the agent may call",
            ),
            NodeProperty(
                display_name="Output Schema",
                name="outputSchema",
                type="json",
                description="JSON Schema the structured output must satisfy",
            ),
            NodeProperty(
                display_name="Output Variable",
                name="outputVariable",
                type="string",
                description="Variable receiving the result (default: node id)",
            ),
            NodeProperty(
                display_name="Max Iterations",
                name="maxIterations",
                type="number",
                description="Maximum model turns in the tool loop",
            ),
            NodeProperty(
                display_name="Temperature",
                name="temperature",
                type="number",
                default=0.2,
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "agent"

    @property
    def description(self) -> str:
        return "Prompt an LLM, letting it call declared tools"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        errors = super().validate_config(node_definition)
        config = node_definition.config
        tools = config.get("tools", [])
        if not isinstance(tools, list) or not all(isinstance(t, str) for t in tools):
            errors.append("tools must be a list of tool names")
        max_iterations = config.get("maxIterations")
        if max_iterations is not None and (
            isinstance(max_iterations, bool) or not isinstance(max_iterations, int) or max_iterations < 1
        ):
            errors.append("maxIterations must be a positive integer")
        if config.get("outputSchema") is not None:
            errors.extend(f"outputSchema: {p}" for p in schema_problems(config["outputSchema"]))
        return errors

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import NodeResult

        node_id = node_definition.id
        config = node_definition.config
        data = context.store.data

        if context.agent_bridge is None:
            raise AgentError("No agent bridge is configured", node_id=node_id)

        prompt = render(localize(self.get_parameter(node_definition, "prompt"), context.language), data)
        system = render(localize(config.get("system"), context.language), data) or None
        schema = config.get("outputSchema")
        max_iterations = config.get("maxIterations") or settings.agent_max_iterations
        declared: list[str] = list(config.get("tools") or [])
        tool_specs = self._tool_specs(context, declared, node_id)

        request = AgentRequest(
            prompt=prompt,
            system=system,
            tools=tool_specs,
            schema=schema,
            model=config.get("model", "auto"),
            temperature=config.get("temperature", 0.2),
            execution_id=context.execution_id,
            node_id=node_id,
        )
        request.messages = request.conversation()

        tool_log: list[dict[str, Any]] = []
        response: AgentResponse | None = None
        iterations = 0

        while iterations < max_iterations:
            iterations += 1
            context.raise_if_cancelled()
            response = await context.agent_bridge.invoke(request, context.cancel_event)

            if not response.tool_calls:
                break

            request.messages.append(response.assistant_message())
            for call in response.tool_calls:
                if call.name not in declared:
                    raise AgentError(
                        f"Model requested undeclared tool '{call.name}'",
                        node_id=node_id,
                        tool=call.name,
                    )
                result = await self._run_tool(context, call.name, call.args)
                tool_log.append({"name": call.name, "args": call.args, "result": result})
                request.messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": json.dumps(result, default=str),
                })
        else:
            raise AgentError(
                f"Agent did not finish within {max_iterations} iterations",
                node_id=node_id,
                iterations=iterations,
            )

        value = self._final_value(response, schema, node_id)
        output_variable = config.get("outputVariable") or node_id

        logger.info(
            "Agent %s finished after %d iteration(s) with %d tool call(s)",
            node_id,
            iterations,
            len(tool_log),
        )
        return NodeResult(
            data={output_variable: value},
            output={
                "content": response.content,
                "toolCalls": tool_log,
                "iterations": iterations,
            },
        )

    @staticmethod
    def _tool_specs(
        context: ExecutionContext, declared: list[str], node_id: str
    ) -> list[dict[str, Any]]:
        specs = []
        for name in declared:
            if context.tools is None or not context.tools.has(name):
                raise AgentError(
                    f"Tool '{name}' is declared but not registered",
                    node_id=node_id,
                    tool=name,
                )
            specs.append(context.tools.spec(name))
        return specs

    @staticmethod
    async def _run_tool(context: ExecutionContext, name: str, args: dict[str, Any]) -> Any:
        try:
            return await context.tools.call(name, args)
        except Exception as e:
            # Tool failures go back to the model, which may recover
            logger.warning("Tool %s failed: %s", name, e)
            return {"error": str(e)}

    @staticmethod
    def _final_value(response: AgentResponse, schema: dict[str, Any] | None, node_id: str) -> Any:
        if not schema:
            return response.structured_output if response.structured_output is not None else response.content

        value = response.structured_output
        if value is None:
            try:
                value = extract_json(response.content)
            except ValueError as e:
                raise AgentError(
                    f"Agent response is not valid JSON: {e}",
                    node_id=node_id,
                ) from e

        problems = validate_payload(value, schema)
        if problems:
            raise AgentError(
                f"Agent output does not match outputSchema: {'; '.join(problems)}",
                node_id=node_id,
                problems=problems,
            )
        return value
