"""Human node - suspend the run until a person picks an option."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, TYPE_CHECKING

from ..core.exceptions import InputError
from ..engine.paths import MISSING, get_path, normalize_path
from ..engine.schema_check import schema_problems, validate_payload
from ..engine.template import localize, render
from .base import BaseNode, NodeProperty, NodeTypeDescription

if TYPE_CHECKING:
    from ..engine.types import ExecutionContext, NodeDefinition

logger = logging.getLogger(__name__)


class HumanNode(BaseNode):
    """
    Human checkpoint.

    Executing the node builds a checkpoint payload and suspends the run.
    The run continues through `resume` with the chosen option as the
    branch and optional form input checked against `inputSchema`.
    Timeouts are reported as `expiresAt` but not enforced.
    """

    node_description = NodeTypeDescription(
        name="human",
        display_name="Human Checkpoint",
        description="Pause the workflow until a person responds",
        icon="fa:user-check",
        group=["flow"],
        branching=True,
        suspends=True,
        properties=[
            NodeProperty(
                display_name="Message",
                name="message",
                type="string",
                default="",
                required=True,
                description="Localized message; supports {{ path }} placeholders",
            ),
            NodeProperty(
                display_name="Options",
                name="options",
                type="json",
                default=[],
                required=True,
                description="List of {value, label, style, description} choices",
            ),
            NodeProperty(
                display_name="Input Schema",
                name="inputSchema",
                type="json",
                description="JSON Schema the response input must satisfy",
            ),
            NodeProperty(
                display_name="Show Data",
                name="showData",
                type="json",
                default=[],
                description="Paths displayed alongside the message",
            ),
            NodeProperty(
                display_name="Timeout",
                name="timeout",
                type="number",
                description="Milliseconds until the checkpoint expires",
            ),
            NodeProperty(
                display_name="Output Variable",
                name="outputVariable",
                type="string",
                description="Variable that receives the response input",
            ),
        ],
    )

    @property
    def type(self) -> str:
        return "human"

    @property
    def description(self) -> str:
        return "Pause the workflow until a person responds"

    def validate_config(self, node_definition: NodeDefinition) -> list[str]:
        config = node_definition.config
        errors = []
        if not config.get("message"):
            errors.append('missing required config "message"')

        options = config.get("options")
        if not isinstance(options, list) or not options:
            errors.append("human node needs at least one option")
        else:
            for index, option in enumerate(options):
                if not isinstance(option, dict) or option.get("value") in (None, ""):
                    errors.append(f"options[{index}] needs a value")

        if config.get("inputSchema") is not None:
            errors.extend(f"inputSchema: {p}" for p in schema_problems(config["inputSchema"]))
        if not isinstance(config.get("showData", []), list):
            errors.append("showData must be a list of paths")
        return errors

    async def execute(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
    ):
        from ..engine.types import Suspend

        config = node_definition.config
        language = context.language
        data = context.store.data
        now = datetime.now()
        timeout = config.get("timeout")

        checkpoint = {
            "id": f"ckpt_{uuid.uuid4().hex}",
            "nodeId": node_definition.id,
            "nodeName": localize(node_definition.name, language) or node_definition.id,
            "type": "human_input",
            "message": render(localize(config.get("message"), language), data),
            "options": self._resolve_options(config.get("options"), language),
            "inputSchema": config.get("inputSchema"),
            "displayData": self._display_data(config.get("showData") or [], data),
            "timeout": timeout,
            "createdAt": now.isoformat(),
            "expiresAt": (
                (now + timedelta(milliseconds=timeout)).isoformat() if timeout else None
            ),
        }

        logger.info(
            "Human checkpoint %s created for node %s (execution %s)",
            checkpoint["id"],
            node_definition.id,
            context.execution_id,
        )
        return Suspend(checkpoint=checkpoint)

    async def resume(
        self,
        context: ExecutionContext,
        node_definition: NodeDefinition,
        branch: str,
        input_data: dict[str, Any] | None = None,
    ):
        """
        Validate a response and turn it into the node's result.

        Raises:
            InputError: If the branch is not an option value or the input
                does not satisfy `inputSchema`
        """
        from ..engine.types import NodeResult

        config = node_definition.config
        valid = [str(option["value"]) for option in config.get("options") or []]
        if branch not in valid:
            raise InputError(
                f"Invalid response '{branch}'. Valid options: {', '.join(valid)}",
                field="branch",
            )

        schema = config.get("inputSchema")
        if schema:
            problems = validate_payload(input_data if input_data is not None else {}, schema)
            if problems:
                raise InputError(f"Invalid input data: {'; '.join(problems)}", field="input")

        response = {
            "response": branch,
            "data": input_data,
            "respondedAt": datetime.now().isoformat(),
        }
        updates: dict[str, Any] = {f"humanResponse_{node_definition.id}": response}
        if config.get("outputVariable"):
            updates[config["outputVariable"]] = input_data

        logger.info("Human checkpoint on %s answered with %s", node_definition.id, branch)
        return NodeResult(data=updates, branch=branch, output={**response, "branch": branch})

    @staticmethod
    def _resolve_options(options: list[dict[str, Any]] | None, language: str) -> list[dict[str, Any]]:
        return [
            {
                "value": option["value"],
                "label": localize(option.get("label"), language) or str(option["value"]),
                "style": option.get("style", "secondary"),
                "description": (
                    localize(option["description"], language) if option.get("description") else None
                ),
            }
            for option in options or []
        ]

    @staticmethod
    def _display_data(paths: list[str], data: dict[str, Any]) -> dict[str, Any]:
        display: dict[str, Any] = {}
        for path in paths:
            value = get_path(data, path)
            if value is not MISSING:
                display[normalize_path(path).replace(".", "_")] = value
        return display
