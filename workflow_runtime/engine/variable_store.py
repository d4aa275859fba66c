"""
Variable store and the transform instruction set.

Instructions are plain data records parsed from a transform node's
`operations` list. They are interpreted by the store's dispatcher, never
executed as code. A list of instructions is applied atomically on a
working copy: either every instruction succeeds or nothing changes, and
only the top-level variables named by the instructions are touched.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Union

from ..core.exceptions import DefinitionError, TransformError
from .expression_engine import expression_engine
from .paths import MISSING, get_path, root_key, set_path
from .template import render

logger = logging.getLogger(__name__)


# --- Instruction records ---


@dataclass(frozen=True)
class SetInstruction:
    """Set `path` to a literal value; string values are rendered as templates."""

    path: str
    value: Any = None


@dataclass(frozen=True)
class CopyInstruction:
    """Copy the value at `source` to `to`."""

    source: str
    to: str


@dataclass(frozen=True)
class IncrementInstruction:
    """Add `by` to the number at `path` (a missing value counts as 0)."""

    path: str
    by: int | float = 1


@dataclass(frozen=True)
class PushInstruction:
    """Append the value at `source` to the array at `into`."""

    source: str
    into: str


@dataclass(frozen=True)
class MergeInstruction:
    """Shallow-merge the object at `source` into the object at `into`."""

    source: str
    into: str


@dataclass(frozen=True)
class ArrayGetInstruction:
    """Copy `source[index]` to `to`; `index` may be a number or a path."""

    source: str
    index: int | str
    to: str


@dataclass(frozen=True)
class LengthOfInstruction:
    """Store the length of the value at `source` in `to`."""

    source: str
    to: str


@dataclass(frozen=True)
class ConditionalSetInstruction:
    """Set `to` to `then` or `otherwise` depending on a boolean expression."""

    condition: str
    to: str
    then: Any = None
    otherwise: Any = None


Instruction = Union[
    SetInstruction,
    CopyInstruction,
    IncrementInstruction,
    PushInstruction,
    MergeInstruction,
    ArrayGetInstruction,
    LengthOfInstruction,
    ConditionalSetInstruction,
]


def _require(operation: dict[str, Any], op_name: str, *keys: str) -> None:
    missing = [k for k in keys if k not in operation]
    if missing:
        raise DefinitionError(
            f"Operation '{op_name}' requires: {', '.join(missing)}",
        )


def parse_instruction(operation: dict[str, Any]) -> Instruction:
    """
    Parse one JSON operation into an instruction record.

    Raises:
        DefinitionError: If the operation shape is unknown or incomplete
    """
    instruction = _parse_operation(operation)
    target = instruction_target(instruction)
    if not isinstance(target, str) or not target.strip():
        raise DefinitionError(f"Transform operation has an invalid target path: {target!r}")
    return instruction


def _parse_operation(operation: dict[str, Any]) -> Instruction:
    if not isinstance(operation, dict):
        raise DefinitionError(f"Transform operation must be an object, got {type(operation).__name__}")

    if "set" in operation:
        return SetInstruction(path=operation["set"], value=operation.get("value"))
    if "copy" in operation:
        _require(operation, "copy", "to")
        return CopyInstruction(source=operation["copy"], to=operation["to"])
    if "increment" in operation:
        by = operation.get("by", 1)
        if isinstance(by, bool) or not isinstance(by, (int, float)):
            raise DefinitionError("Operation 'increment' requires a numeric 'by'")
        return IncrementInstruction(path=operation["increment"], by=by)
    if "push" in operation:
        into = operation.get("into", operation.get("to"))
        if into is None:
            raise DefinitionError("Operation 'push' requires: to")
        return PushInstruction(source=operation["push"], into=into)
    if "merge" in operation:
        _require(operation, "merge", "into")
        return MergeInstruction(source=operation["merge"], into=operation["into"])
    if "arrayGet" in operation:
        _require(operation, "arrayGet", "index", "to")
        return ArrayGetInstruction(
            source=operation["arrayGet"], index=operation["index"], to=operation["to"]
        )
    if "lengthOf" in operation:
        _require(operation, "lengthOf", "to")
        return LengthOfInstruction(source=operation["lengthOf"], to=operation["to"])
    if "condition" in operation:
        _require(operation, "condition", "to")
        return ConditionalSetInstruction(
            condition=operation["condition"],
            to=operation["to"],
            then=operation.get("then"),
            otherwise=operation.get("else"),
        )

    raise DefinitionError(f"Unknown transform operation: {sorted(operation)}")


def parse_instructions(operations: Iterable[dict[str, Any]]) -> list[Instruction]:
    return [parse_instruction(op) for op in operations]


def instruction_target(instruction: Instruction) -> str:
    """Path written by an instruction."""
    if isinstance(instruction, (SetInstruction, IncrementInstruction)):
        return instruction.path
    if isinstance(instruction, (PushInstruction, MergeInstruction)):
        return instruction.into
    return instruction.to


# --- Store ---


class VariableStore:
    """Mapping of execution variables addressed by dotted paths."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = data if data is not None else {}
        self._handlers: dict[type, Callable[[dict[str, Any], Any], None]] = {
            SetInstruction: self._apply_set,
            CopyInstruction: self._apply_copy,
            IncrementInstruction: self._apply_increment,
            PushInstruction: self._apply_push,
            MergeInstruction: self._apply_merge,
            ArrayGetInstruction: self._apply_array_get,
            LengthOfInstruction: self._apply_length_of,
            ConditionalSetInstruction: self._apply_conditional,
        }

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def get(self, path: str, default: Any = None) -> Any:
        value = get_path(self._data, path)
        return default if value is MISSING else value

    def set(self, path: str, value: Any) -> None:
        set_path(self._data, path, value)

    def merge(self, updates: dict[str, Any]) -> None:
        """Merge top-level updates produced by a node."""
        self._data.update(updates)

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def compute(self, instructions: Iterable[Instruction]) -> dict[str, Any]:
        """
        Run instructions on a working copy and return the top-level updates.

        The store itself is not modified.

        Raises:
            TransformError: If an instruction needs data that is missing or mistyped
            EvaluationError: If a conditional instruction's expression fails
        """
        working = self.snapshot()
        touched: list[str] = []

        for instruction in instructions:
            handler = self._handlers.get(type(instruction))
            if handler is None:
                raise TransformError(f"Unsupported instruction: {type(instruction).__name__}")
            handler(working, instruction)
            key = root_key(instruction_target(instruction))
            if key not in touched:
                touched.append(key)

        return {key: working[key] for key in touched if key in working}

    def apply(self, instructions: Iterable[Instruction]) -> dict[str, Any]:
        """Apply instructions atomically and return the updates that were merged."""
        updates = self.compute(instructions)
        self.merge(updates)
        return updates

    # --- Handlers ---

    def _write(self, data: dict[str, Any], path: str, value: Any, op: str) -> None:
        try:
            set_path(data, path, value)
        except ValueError as e:
            raise TransformError(str(e), operation=op, path=path) from e

    def _read_required(self, data: dict[str, Any], path: str, op: str) -> Any:
        value = get_path(data, path)
        if value is MISSING:
            raise TransformError(
                f"Operation '{op}' references missing variable '{path}'",
                operation=op,
                path=path,
            )
        return value

    def _apply_set(self, data: dict[str, Any], ins: SetInstruction) -> None:
        value = copy.deepcopy(ins.value)
        if isinstance(value, str):
            value = render(value, data)
        self._write(data, ins.path, value, "set")

    def _apply_copy(self, data: dict[str, Any], ins: CopyInstruction) -> None:
        value = self._read_required(data, ins.source, "copy")
        self._write(data, ins.to, copy.deepcopy(value), "copy")

    def _apply_increment(self, data: dict[str, Any], ins: IncrementInstruction) -> None:
        current = get_path(data, ins.path)
        if current is MISSING or current is None:
            current = 0
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            raise TransformError(
                f"Cannot increment non-numeric variable '{ins.path}'",
                operation="increment",
                path=ins.path,
            )
        self._write(data, ins.path, current + ins.by, "increment")

    def _apply_push(self, data: dict[str, Any], ins: PushInstruction) -> None:
        item = self._read_required(data, ins.source, "push")
        target = get_path(data, ins.into)
        if target is MISSING or target is None:
            target = []
        if not isinstance(target, list):
            raise TransformError(
                f"Cannot push into non-array variable '{ins.into}'",
                operation="push",
                path=ins.into,
            )
        self._write(data, ins.into, [*target, copy.deepcopy(item)], "push")

    def _apply_merge(self, data: dict[str, Any], ins: MergeInstruction) -> None:
        source = self._read_required(data, ins.source, "merge")
        if not isinstance(source, dict):
            raise TransformError(
                f"Cannot merge non-object variable '{ins.source}'",
                operation="merge",
                path=ins.source,
            )
        target = get_path(data, ins.into)
        if target is MISSING or target is None:
            target = {}
        if not isinstance(target, dict):
            raise TransformError(
                f"Cannot merge into non-object variable '{ins.into}'",
                operation="merge",
                path=ins.into,
            )
        self._write(data, ins.into, {**target, **copy.deepcopy(source)}, "merge")

    def _apply_array_get(self, data: dict[str, Any], ins: ArrayGetInstruction) -> None:
        array = self._read_required(data, ins.source, "arrayGet")
        if not isinstance(array, list):
            raise TransformError(
                f"Variable '{ins.source}' is not an array",
                operation="arrayGet",
                path=ins.source,
            )

        index: Any = ins.index
        if isinstance(index, str):
            index = self._read_required(data, index, "arrayGet")
        if isinstance(index, bool):
            index = None
        try:
            index = int(index)
        except (TypeError, ValueError):
            raise TransformError(
                f"Invalid array index {ins.index!r}",
                operation="arrayGet",
                path=ins.source,
            ) from None

        if not 0 <= index < len(array):
            raise TransformError(
                f"Index {index} out of range for '{ins.source}' (length {len(array)})",
                operation="arrayGet",
                path=ins.source,
            )
        self._write(data, ins.to, copy.deepcopy(array[index]), "arrayGet")

    def _apply_length_of(self, data: dict[str, Any], ins: LengthOfInstruction) -> None:
        value = self._read_required(data, ins.source, "lengthOf")
        if not isinstance(value, (list, str, dict)):
            raise TransformError(
                f"Variable '{ins.source}' has no length",
                operation="lengthOf",
                path=ins.source,
            )
        self._write(data, ins.to, len(value), "lengthOf")

    def _apply_conditional(self, data: dict[str, Any], ins: ConditionalSetInstruction) -> None:
        outcome = expression_engine.evaluate(ins.condition, data)
        value = ins.then if outcome else ins.otherwise
        self._write(data, ins.to, copy.deepcopy(value), "condition")
        logger.debug("Conditional set %s=%r (condition: %s)", ins.to, value, ins.condition)
