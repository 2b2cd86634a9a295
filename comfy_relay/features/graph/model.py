"""
Node-level model for API-format workflow graphs.

A ComfyUI API prompt maps node ids to ``{"class_type": ..., "inputs": {...}}``.
Each input holds either a literal widget value or a link ``[node_id, index]``
to another node's output. Known node shapes parse links into ``Connection``
objects so accessors can tell "literal I may edit" from "value computed by the
server". Unknown shapes keep their payload verbatim.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, ClassVar

from ...shared import LinkedInputError, ResolutionError, TypeMismatchError
from ...utils import is_link


@dataclass(frozen=True)
class Connection:
    """Reference to output ``output_index`` of node ``node_id``."""

    node_id: str
    output_index: int = 0

    @classmethod
    def from_link(cls, value: Any) -> Connection:
        return cls(str(value[0]).strip(), int(value[1]))

    def to_json(self) -> list[Any]:
        return [self.node_id, self.output_index]


def _literal_fits(value: Any, types: tuple[type, ...]) -> bool:
    if isinstance(value, bool):
        return bool in types
    if isinstance(value, int) and float in types:
        return True
    return isinstance(value, types)


def _type_names(types: tuple[type, ...]) -> str:
    return "/".join(t.__name__ for t in types)


def _iter_raw_links(value: Any) -> Iterator[str]:
    if is_link(value):
        yield str(value[0]).strip()
        return
    if isinstance(value, dict):
        for item in value.values():
            yield from _iter_raw_links(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _iter_raw_links(item)


def _dedupe(ids: Iterator[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for nid in ids:
        if nid not in seen:
            seen.add(nid)
            out.append(nid)
    return out


class Node:
    """Base for every node shape. Traversal only ever needs ``connections()``."""

    class_type: str

    def __init__(self, class_type: str, inputs: dict[str, Any] | None = None, meta: dict[str, Any] | None = None) -> None:
        self.class_type = class_type
        self.inputs: dict[str, Any] = dict(inputs or {})
        # Top-level keys besides class_type/inputs (``_meta``, ``is_changed``...)
        self.meta: dict[str, Any] = dict(meta or {})

    def connections(self) -> list[str]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def copy(self) -> Node:
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(class_type={self.class_type!r}, inputs={self.inputs!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return type(self) is type(other) and self.to_dict() == other.to_dict()


class UnknownNode(Node):
    """Any node shape this package does not model; payload is kept as-is."""

    def connections(self) -> list[str]:
        return _dedupe(_iter_raw_links(self.inputs))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"class_type": self.class_type, "inputs": copy.deepcopy(self.inputs)}
        out.update(copy.deepcopy(self.meta))
        return out


class KnownNode(Node):
    """
    A node shape with declared slots.

    ``VALUE_SLOTS`` maps widget inputs to the literal types they accept (a
    connection is also accepted there); ``LINK_SLOTS`` must always hold a
    connection. Inputs not declared by the shape are preserved unchanged.
    """

    CLASS_TYPE: ClassVar[str] = ""
    VALUE_SLOTS: ClassVar[dict[str, tuple[type, ...]]] = {}
    LINK_SLOTS: ClassVar[tuple[str, ...]] = ()
    OPTIONAL_SLOTS: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, inputs: dict[str, Any] | None = None, meta: dict[str, Any] | None = None) -> None:
        super().__init__(self.CLASS_TYPE, inputs, meta)

    @classmethod
    def accepts(cls, inputs: dict[str, Any]) -> bool:
        """True when ``inputs`` fit every declared slot of this shape."""
        for slot in cls.LINK_SLOTS:
            if slot not in inputs:
                if slot in cls.OPTIONAL_SLOTS:
                    continue
                return False
            if not is_link(inputs[slot]):
                return False
        for slot, types in cls.VALUE_SLOTS.items():
            if slot not in inputs:
                if slot in cls.OPTIONAL_SLOTS:
                    continue
                return False
            value = inputs[slot]
            if not is_link(value) and not _literal_fits(value, types):
                return False
        return True

    @classmethod
    def from_inputs(cls, inputs: dict[str, Any], meta: dict[str, Any] | None = None) -> KnownNode:
        parsed = {key: Connection.from_link(value) if is_link(value) else copy.deepcopy(value) for key, value in inputs.items()}
        return cls(parsed, meta)

    @property
    def extra_inputs(self) -> dict[str, Any]:
        declared = set(self.VALUE_SLOTS) | set(self.LINK_SLOTS)
        return {k: v for k, v in self.inputs.items() if k not in declared}

    def connections(self) -> list[str]:
        return _dedupe(v.node_id for v in self.inputs.values() if isinstance(v, Connection))

    def connection(self, slot: str) -> Connection | None:
        value = self.inputs.get(slot)
        return value if isinstance(value, Connection) else None

    def get_value(self, slot: str) -> Any:
        """Literal held by ``slot``; raises when absent or linked."""
        if slot not in self.inputs:
            raise ResolutionError(f"{self.CLASS_TYPE} has no input {slot!r}", slot=slot)
        value = self.inputs[slot]
        if isinstance(value, Connection):
            raise LinkedInputError(
                f"{self.CLASS_TYPE}.{slot} is connected to node {value.node_id}",
                slot=slot,
                node_id=value.node_id,
            )
        return value

    def set_value(self, slot: str, value: Any) -> None:
        """Overwrite the literal in ``slot``; never replaces a connection."""
        current = self.inputs.get(slot)
        if isinstance(current, Connection):
            raise LinkedInputError(
                f"{self.CLASS_TYPE}.{slot} is connected to node {current.node_id}",
                slot=slot,
                node_id=current.node_id,
            )
        types = self.VALUE_SLOTS.get(slot)
        if types is None:
            raise ResolutionError(f"{self.CLASS_TYPE} has no value input {slot!r}", slot=slot)
        if not _literal_fits(value, types):
            raise TypeMismatchError(
                f"{self.CLASS_TYPE}.{slot} expects {_type_names(types)}, got {type(value).__name__}",
                slot=slot,
            )
        self.inputs[slot] = value

    def to_dict(self) -> dict[str, Any]:
        inputs = {k: v.to_json() if isinstance(v, Connection) else copy.deepcopy(v) for k, v in self.inputs.items()}
        out: dict[str, Any] = {"class_type": self.class_type, "inputs": inputs}
        out.update(copy.deepcopy(self.meta))
        return out
