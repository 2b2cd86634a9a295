"""
Exception hierarchy shared by the graph, transport and execution layers.

Resolution failures are normally carried inside a ``Result``; the remaining
classes are raised and propagate to the caller unchanged. Nothing here retries.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .types import ErrorCode

if TYPE_CHECKING:
    from comfy_relay.features.execution.updates import ExecutionError, ExecutionInterrupted


class RelayError(Exception):
    """Base class; ``code`` mirrors the ``Result`` code for the same failure."""

    code: ErrorCode = ErrorCode.TRANSPORT

    def __init__(self, message: str, **meta: Any) -> None:
        super().__init__(message)
        self.message = message
        self.meta = meta


class ResolutionError(RelayError):
    """A node, shape or output node could not be found in the graph."""

    code = ErrorCode.NOT_FOUND


class LinkedInputError(ResolutionError):
    """The resolved slot holds a connection, so its value is computed server-side."""

    code = ErrorCode.LINKED_INPUT


class TypeMismatchError(ResolutionError):
    code = ErrorCode.TYPE_MISMATCH


class UnknownParameterError(ResolutionError):
    code = ErrorCode.UNKNOWN_PARAMETER


class TransportError(RelayError):
    code = ErrorCode.TRANSPORT


class HttpStatusError(TransportError):
    """Non-success HTTP status; status and body are kept verbatim."""

    code = ErrorCode.HTTP_STATUS

    def __init__(self, status: int, body: str, url: str = "") -> None:
        super().__init__(f"got error code: {status}, message text: {body}", status=status, url=url)
        self.status = status
        self.body = body
        self.url = url


class ConnectionClosedError(TransportError):
    code = ErrorCode.CONNECTION_CLOSED


class ProtocolError(RelayError):
    code = ErrorCode.PROTOCOL


class SubmitError(RelayError):
    """The server refused the prompt; ``node_errors`` is the server's map."""

    code = ErrorCode.SUBMIT_REJECTED

    def __init__(self, message: str, node_errors: dict[str, Any] | None = None) -> None:
        super().__init__(message, node_errors=node_errors or {})
        self.node_errors = node_errors or {}


class ExecutionInterruptedError(RelayError):
    code = ErrorCode.INTERRUPTED

    def __init__(self, update: ExecutionInterrupted) -> None:
        super().__init__(
            f"Execution interrupted at node {update.node_id} ({update.node_type})",
            prompt_id=update.prompt_id,
        )
        self.update = update

    @property
    def node_id(self) -> str:
        return self.update.node_id

    @property
    def node_type(self) -> str:
        return self.update.node_type


class ExecutionFailedError(ExecutionInterruptedError):
    """
    The server reported ``execution_error``.

    All diagnostic fields of the update stay reachable: ``node_id``,
    ``node_type``, ``exception_type``, ``exception_message`` and ``traceback``.
    """

    code = ErrorCode.EXECUTION_ERROR

    def __init__(self, update: ExecutionError) -> None:
        RelayError.__init__(
            self,
            f"Execution error at node {update.node_id} ({update.node_type}): "
            f"{update.exception_type}: {update.exception_message}",
            prompt_id=update.prompt_id,
        )
        self.update = update

    @property
    def exception_type(self) -> str:
        return self.update.exception_type

    @property
    def exception_message(self) -> str:
        return self.update.exception_message

    @property
    def traceback(self) -> list[str]:
        return self.update.traceback


_ERRORS_BY_CODE: dict[str, type[RelayError]] = {
    ErrorCode.NOT_FOUND.value: ResolutionError,
    ErrorCode.LINKED_INPUT.value: LinkedInputError,
    ErrorCode.TYPE_MISMATCH.value: TypeMismatchError,
    ErrorCode.UNKNOWN_PARAMETER.value: UnknownParameterError,
    ErrorCode.TRANSPORT.value: TransportError,
    ErrorCode.CONNECTION_CLOSED.value: ConnectionClosedError,
    ErrorCode.PROTOCOL.value: ProtocolError,
}


def error_for_code(code: str, message: str, **meta: Any) -> RelayError:
    """Build the exception matching a ``Result`` error code."""
    cls = _ERRORS_BY_CODE.get(str(code), RelayError)
    return cls(message, **meta)
