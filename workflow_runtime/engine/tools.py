"""
Tool registry for agent nodes.

A tool is a dict with `name`, `description`, `input_schema` and an
`execute` callable taking the argument dict. `execute` may be sync or
async. Agent nodes may only call tools that are both declared in their
config and registered here.
"""

from __future__ import annotations

import inspect
import ipaddress
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from urllib.parse import urlparse

import httpx
from simpleeval import InvalidExpression, SimpleEval

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[dict[str, Any]], "dict[str, Any] | Awaitable[dict[str, Any]]"]


class ToolRegistry:
    """Named tools available to agent nodes."""

    def __init__(self) -> None:
        self._tools: dict[str, dict[str, Any]] = {}

    def register(self, tool: dict[str, Any]) -> None:
        if not tool.get("name") or not callable(tool.get("execute")):
            raise ValueError("Tool needs a name and an execute callable")
        self._tools[tool["name"]] = tool

    def has(self, name: str) -> bool:
        return name in self._tools

    def get(self, name: str) -> dict[str, Any]:
        if name not in self._tools:
            raise KeyError(f"Unknown tool: {name}")
        return self._tools[name]

    def list(self) -> list[str]:
        return list(self._tools)

    def spec(self, name: str) -> dict[str, Any]:
        """Tool description sent to the model, without the executor."""
        tool = self.get(name)
        return {
            "name": tool["name"],
            "description": tool.get("description", ""),
            "input_schema": tool.get("input_schema") or {"type": "object", "properties": {}},
        }

    async def call(self, name: str, args: dict[str, Any]) -> Any:
        """Run a tool, awaiting it if its executor is async."""
        result = self.get(name)["execute"](args)
        if inspect.isawaitable(result):
            result = await result
        return result


# --- Built-in tools ---

_calculator = SimpleEval(functions={"abs": abs, "round": round, "min": min, "max": max, "pow": pow})


def _calculate(args: dict[str, Any]) -> dict[str, Any]:
    expression = str(args.get("expression", "0"))
    try:
        return {"result": _calculator.eval(expression), "expression": expression}
    except (InvalidExpression, SyntaxError, TypeError, ValueError, ZeroDivisionError) as e:
        return {"error": str(e), "expression": expression}


def _current_time(args: dict[str, Any]) -> dict[str, Any]:
    tz = args.get("timezone", "UTC")
    now = datetime.now(timezone.utc) if tz == "UTC" else datetime.now()
    return {
        "datetime": now.isoformat(),
        "date": now.strftime("%Y-%m-%d"),
        "time": now.strftime("%H:%M:%S"),
        "day_of_week": now.strftime("%A"),
        "timezone": tz,
    }


_TEXT_OPERATIONS: dict[str, Callable[[str], Any]] = {
    "word_count": lambda text: len(text.split()),
    "char_count": len,
    "reverse": lambda text: text[::-1],
    "uppercase": str.upper,
    "lowercase": str.lower,
}


def _text_utils(args: dict[str, Any]) -> dict[str, Any]:
    text = str(args.get("text", ""))
    operation = args.get("operation", "word_count")
    if operation not in _TEXT_OPERATIONS:
        return {"error": f"Unknown operation: {operation}"}
    return {operation: _TEXT_OPERATIONS[operation](text), "text": text}


# IP ranges that should be blocked to prevent SSRF
_BLOCKED_NETWORKS = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),  # Link-local / cloud metadata
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def is_private_target(url: str) -> bool:
    """Check if a URL targets a private or internal address."""
    hostname = urlparse(url).hostname
    if not hostname:
        return True
    if hostname in ("localhost", "metadata.google.internal"):
        return True
    try:
        addr = ipaddress.ip_address(hostname)
    except ValueError:
        # A domain name, not an IP literal
        return False
    return any(addr in net for net in _BLOCKED_NETWORKS)


async def _http_request(args: dict[str, Any]) -> dict[str, Any]:
    url = args.get("url", "")
    method = str(args.get("method", "GET")).upper()
    body = args.get("body")

    if not url:
        return {"error": "url is required"}
    if is_private_target(url):
        return {"error": "Request to private/internal addresses is not allowed"}

    kwargs: dict[str, Any] = {"headers": args.get("headers") or {}}
    if body is not None and method in ("POST", "PUT", "PATCH"):
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        else:
            kwargs["content"] = str(body)

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException:
        return {"error": "Request timed out"}
    except httpx.HTTPError as e:
        return {"error": str(e)}

    if "json" in response.headers.get("content-type", ""):
        try:
            resp_body: Any = response.json()
        except ValueError:
            resp_body = response.text
    else:
        resp_body = response.text
    return {"status": response.status_code, "body": resp_body}


BUILTIN_TOOLS: list[dict[str, Any]] = [
    {
        "name": "calculator",
        "description": "Perform mathematical calculations, e.g. '2 + 2' or '15 * 7 + 23'.",
        "input_schema": {
            "type": "object",
            "properties": {
                "expression": {"type": "string", "description": "Math expression to evaluate"},
            },
            "required": ["expression"],
        },
        "execute": _calculate,
    },
    {
        "name": "current_time",
        "description": "Get the current date and time. No input required.",
        "input_schema": {
            "type": "object",
            "properties": {
                "timezone": {"type": "string", "enum": ["UTC", "local"]},
            },
        },
        "execute": _current_time,
    },
    {
        "name": "text_utils",
        "description": "Count words or characters, reverse, uppercase or lowercase text.",
        "input_schema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "The text to process"},
                "operation": {"type": "string", "enum": sorted(_TEXT_OPERATIONS)},
            },
            "required": ["text", "operation"],
        },
        "execute": _text_utils,
    },
    {
        "name": "http_request",
        "description": "Make an HTTP request to a public URL.",
        "input_schema": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to request"},
                "method": {"type": "string", "enum": ["GET", "POST", "PUT", "DELETE", "PATCH"]},
                "headers": {"type": "object", "description": "Optional HTTP headers"},
                "body": {"description": "Optional request body (string or JSON object)"},
            },
            "required": ["url"],
        },
        "execute": _http_request,
    },
]


def create_default_registry() -> ToolRegistry:
    registry = ToolRegistry()
    for tool in BUILTIN_TOOLS:
        registry.register(tool)
    return registry


# Singleton instance
tool_registry = create_default_registry()
