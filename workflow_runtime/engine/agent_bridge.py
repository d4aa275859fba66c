"""Agent bridge: the single seam between agent nodes and an LLM backend."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..core.config import settings
from ..core.exceptions import AgentError, ExecutionCancelledError, WorkflowEngineError
from .llm_provider import LLMResponse, ToolCall, call_llm

logger = logging.getLogger(__name__)


@dataclass
class AgentRequest:
    """One model invocation requested by an agent node."""

    prompt: str
    system: str | None = None
    # Prior conversation in OpenAI message format; the prompt is appended
    # as the first user turn when this is empty
    messages: list[dict[str, Any]] = field(default_factory=list)
    tools: list[dict[str, Any]] = field(default_factory=list)
    schema: dict[str, Any] | None = None
    model: str | None = None
    temperature: float = 0.2
    execution_id: str | None = None
    node_id: str | None = None

    def conversation(self) -> list[dict[str, Any]]:
        if self.messages:
            return list(self.messages)
        messages: list[dict[str, Any]] = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.append({"role": "user", "content": self.prompt})
        return messages


@dataclass
class AgentResponse:
    """Model reply: text, proposed tool calls, and optional parsed output."""

    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    structured_output: Any = None

    def assistant_message(self) -> dict[str, Any]:
        return LLMResponse(text=self.content, tool_calls=self.tool_calls).assistant_message()


class AgentBridge(ABC):
    """Invokes an LLM on behalf of an agent node."""

    @abstractmethod
    async def invoke(
        self,
        request: AgentRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentResponse:
        """
        Run one model turn.

        Raises:
            AgentError: If the backend call fails
            ExecutionCancelledError: If `cancel_event` is set before the call returns
        """
        ...


class LLMAgentBridge(AgentBridge):
    """Bridge backed by call_llm and the configured provider SDKs."""

    def __init__(self, default_model: str | None = None) -> None:
        self.default_model = default_model or settings.default_model

    async def invoke(
        self,
        request: AgentRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentResponse:
        model = request.model if request.model and request.model != "auto" else self.default_model
        call = asyncio.ensure_future(
            call_llm(
                model,
                request.conversation(),
                request.temperature,
                tools=request.tools or None,
                json_output=request.schema is not None,
            )
        )

        try:
            if cancel_event is None:
                response = await call
            else:
                waiter = asyncio.ensure_future(cancel_event.wait())
                try:
                    await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
                finally:
                    waiter.cancel()
                if not call.done():
                    call.cancel()
                    logger.info("Abandoned in-flight LLM call for %s", request.execution_id)
                    raise ExecutionCancelledError(request.execution_id or "")
                response = call.result()
        except WorkflowEngineError:
            raise
        except Exception as e:
            logger.warning("LLM call to %s failed: %s", model, e)
            raise AgentError(
                f"Agent call to model '{model}' failed: {e}",
                node_id=request.node_id,
                model=model,
            ) from e

        return AgentResponse(content=response.text, tool_calls=list(response.tool_calls))
