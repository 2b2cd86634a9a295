"""
Result pattern for graph resolution failures.

Accessor operations return Result[T] instead of raising, so callers can fall
through to another strategy when a parameter is absent from a workflow.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .errors import error_for_code
from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")

@dataclass
class Result(Generic[T]):
    """
    Result pattern for graph lookups.

    Usage:
        def find_seed_node(graph: Graph) -> Result[str]:
            node_id = find_node(graph, KSampler)
            if node_id is None:
                return Result.Err("NOT_FOUND", "No KSampler node in graph")
            return Result.Ok(node_id)
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"  # OK, NOT_FOUND, LINKED_INPUT, TYPE_MISMATCH, ...
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        """Create a successful result with data and optional metadata."""
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        """Create an error result with code, message, and optional metadata."""
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Map the data if ok, otherwise return self."""
        if self.ok:
            return Result.Ok(fn(cast(T, self.data)), **self.meta)
        return cast(Result[U], self)

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """Chain another fallible step if ok, otherwise return self."""
        if self.ok:
            return fn(cast(T, self.data))
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Get data or raise the error matching ``code``."""
        self.raise_for_error()
        return cast(T, self.data)

    def unwrap_or(self, default: T) -> T:
        """Get data or return default if error."""
        return cast(T, self.data) if self.ok else default

    def raise_for_error(self) -> None:
        """Raise the typed exception for this error; no-op when ok."""
        if self.ok:
            return
        raise error_for_code(self.code, f"[{self.code}] {self.error}", **self.meta)
