"""Custom exceptions for the workflow runtime."""

from typing import Any


class WorkflowEngineError(Exception):
    """Base exception for all workflow runtime errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self, node_id: str | None = None) -> dict[str, Any]:
        """Serializable error payload stored on a failed execution."""
        return {
            "type": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "nodeId": node_id,
        }


class WorkflowNotFoundError(WorkflowEngineError):
    """Raised when a workflow is not found."""

    code = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str) -> None:
        super().__init__(
            message=f"Workflow not found: {workflow_id}",
            details={"workflow_id": workflow_id},
        )
        self.workflow_id = workflow_id


class ExecutionNotFoundError(WorkflowEngineError):
    """Raised when an execution is not found."""

    code = "EXECUTION_NOT_FOUND"

    def __init__(self, execution_id: str) -> None:
        super().__init__(
            message=f"Execution not found: {execution_id}",
            details={"execution_id": execution_id},
        )
        self.execution_id = execution_id


class NodeNotFoundError(WorkflowEngineError):
    """Raised when a node type is not registered."""

    code = "NODE_TYPE_NOT_FOUND"

    def __init__(self, node_type: str) -> None:
        super().__init__(
            message=f"Node type not found: {node_type}",
            details={"node_type": node_type},
        )
        self.node_type = node_type


class DefinitionError(WorkflowEngineError):
    """Raised when a workflow definition is structurally invalid."""

    code = "DEFINITION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        errors = errors or [message]
        super().__init__(message=message, details={"errors": errors})
        self.errors = errors


class InputError(WorkflowEngineError):
    """Raised when start inputs or human responses are missing or mistyped."""

    code = "INPUT_ERROR"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"field": field} if field else {},
        )
        self.field = field


class EvaluationError(WorkflowEngineError):
    """Raised when an expression or edge condition cannot be evaluated."""

    code = "EVALUATION_ERROR"

    def __init__(self, message: str, expression: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"expression": expression} if expression else {},
        )
        self.expression = expression


class TransformError(WorkflowEngineError):
    """Raised when a transform instruction references missing or mistyped data."""

    code = "TRANSFORM_ERROR"

    def __init__(self, message: str, operation: str | None = None, path: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"operation": operation, "path": path},
        )
        self.operation = operation
        self.path = path


class IterationLimitExceeded(WorkflowEngineError):
    """
    Raised when a node would execute more often than the workflow allows,
    or when the run as a whole would exceed the runner's step ceiling.
    """

    code = "ITERATION_LIMIT_EXCEEDED"

    def __init__(
        self, node_id: str, count: int, max_iterations: int, scope: str = "node"
    ) -> None:
        details: dict[str, Any] = {
            "node_id": node_id,
            "count": count,
            "max_iterations": max_iterations,
        }
        if scope == "node":
            message = f"Node '{node_id}' reached the iteration limit ({count}/{max_iterations})"
        else:
            message = f"Execution reached the step limit ({count}/{max_iterations}) at node '{node_id}'"
            details["scope"] = scope
        super().__init__(message=message, details=details)
        self.node_id = node_id
        self.count = count
        self.max_iterations = max_iterations


class AgentError(WorkflowEngineError):
    """Raised when an agent invocation or its tool loop fails."""

    code = "AGENT_ERROR"

    def __init__(self, message: str, node_id: str | None = None, **details: Any) -> None:
        super().__init__(message=message, details={"node_id": node_id, **details})
        self.node_id = node_id


class CheckpointError(WorkflowEngineError):
    """Raised when checkpoint persistence fails."""

    code = "CHECKPOINT_ERROR"

    def __init__(self, message: str, execution_id: str | None = None) -> None:
        super().__init__(
            message=message,
            details={"execution_id": execution_id} if execution_id else {},
        )
        self.execution_id = execution_id


class AuthorizationError(WorkflowEngineError):
    """Raised when the caller is not in the workflow's allowed groups."""

    code = "FORBIDDEN"

    def __init__(self, workflow_id: str, user_id: str | None = None) -> None:
        super().__init__(
            message=f"Access to workflow denied: {workflow_id}",
            details={"workflow_id": workflow_id, "user_id": user_id},
        )
        self.workflow_id = workflow_id


class InvalidExecutionStateError(WorkflowEngineError):
    """Raised when an operation is not allowed in the execution's current status."""

    code = "INVALID_EXECUTION_STATE"

    def __init__(self, execution_id: str, status: str, operation: str) -> None:
        super().__init__(
            message=f"Cannot {operation} execution {execution_id} with status '{status}'",
            details={
                "execution_id": execution_id,
                "status": status,
                "operation": operation,
            },
        )
        self.execution_id = execution_id
        self.status = status


class ExecutionBusyError(WorkflowEngineError):
    """Raised when a second step is attempted while one is already active."""

    code = "EXECUTION_BUSY"

    def __init__(self, execution_id: str) -> None:
        super().__init__(
            message=f"Execution {execution_id} already has an active step",
            details={"execution_id": execution_id},
        )
        self.execution_id = execution_id


class ExecutionCancelledError(WorkflowEngineError):
    """Raised at an agent call boundary once cancellation was requested."""

    code = "CANCELLED"

    def __init__(self, execution_id: str) -> None:
        super().__init__(
            message=f"Execution cancelled: {execution_id}",
            details={"execution_id": execution_id},
        )
        self.execution_id = execution_id
