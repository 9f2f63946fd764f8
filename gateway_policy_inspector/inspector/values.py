"""Tagged-variant value tree for schema-free policy payloads."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any

FieldPath = tuple[str, ...]


class ValueKind(str, Enum):
    """Variant tag of one policy value node."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    OBJECT = "object"


@dataclass(frozen=True)
class PolicyValue:
    """Immutable policy field tree node.

    Lists hold a tuple of child values. Objects hold an ordered tuple of
    ``(field, value)`` pairs so the node stays hashable and keeps field order.
    """

    kind: ValueKind
    data: Any = None

    @classmethod
    def null(cls) -> PolicyValue:
        return cls(ValueKind.NULL)

    @classmethod
    def object(cls, fields: Mapping[str, PolicyValue] | None = None) -> PolicyValue:
        """Build an object node from an already-converted mapping."""
        return cls(ValueKind.OBJECT, tuple((fields or {}).items()))

    @classmethod
    def from_native(cls, raw: Any, field_name: str = "value") -> PolicyValue:
        """Convert decoded YAML/JSON data into a value tree."""
        if raw is None:
            return cls(ValueKind.NULL)
        if isinstance(raw, bool):
            return cls(ValueKind.BOOL, raw)
        if isinstance(raw, int | float):
            return cls(ValueKind.NUMBER, raw)
        if isinstance(raw, str):
            return cls(ValueKind.STRING, raw)
        if isinstance(raw, date):
            return cls(ValueKind.STRING, raw.isoformat())
        if isinstance(raw, list | tuple):
            return cls(
                ValueKind.LIST,
                tuple(
                    cls.from_native(item, f"{field_name}[{index}]")
                    for index, item in enumerate(raw)
                ),
            )
        if isinstance(raw, Mapping):
            fields: list[tuple[str, PolicyValue]] = []
            for key, item in raw.items():
                if not isinstance(key, str):
                    raise ValueError(f"Expected '{field_name}' keys to be strings, got {key!r}.")
                fields.append((key, cls.from_native(item, f"{field_name}.{key}")))
            return cls(ValueKind.OBJECT, tuple(fields))
        raise ValueError(f"Unsupported value type for '{field_name}': {type(raw).__name__}.")

    def to_native(self) -> Any:
        """Convert back into plain Python data for serialization."""
        if self.kind is ValueKind.LIST:
            return [item.to_native() for item in self.data]
        if self.kind is ValueKind.OBJECT:
            return {key: item.to_native() for key, item in self.data}
        return self.data

    @property
    def is_object(self) -> bool:
        return self.kind is ValueKind.OBJECT

    def items(self) -> Iterator[tuple[str, PolicyValue]]:
        """Iterate object fields in order."""
        if self.kind is not ValueKind.OBJECT:
            raise TypeError(f"{self.kind.value} value has no fields.")
        return iter(self.data)

    def fields(self) -> dict[str, PolicyValue]:
        """Return object fields as an ordered dict."""
        return dict(self.items())

    def get(self, key: str) -> PolicyValue | None:
        """Return one object field or None when it is absent."""
        if self.kind is not ValueKind.OBJECT:
            return None
        for name, value in self.data:
            if name == key:
                return value
        return None

    def at(self, path: FieldPath) -> PolicyValue | None:
        """Return the node at an object field path."""
        node: PolicyValue | None = self
        for key in path:
            if node is None:
                return None
            node = node.get(key)
        return node

    def is_empty(self) -> bool:
        return self.kind in (ValueKind.OBJECT, ValueKind.LIST) and not self.data


EMPTY_OBJECT = PolicyValue.object()


def format_path(path: FieldPath) -> str:
    """Render a field path in dotted form."""
    return ".".join(path) if path else "<root>"


def format_pointer(path: FieldPath) -> str:
    """Render a field path as an RFC 6901 JSON pointer.

    Unlike the dotted form this stays unambiguous for keys such as
    ``example.com/team``; the root path is the empty string.
    """
    return "".join("/" + key.replace("~", "~0").replace("/", "~1") for key in path)


def parse_pointer(pointer: str) -> FieldPath:
    """Invert ``format_pointer``."""
    if not pointer:
        return ()
    if not pointer.startswith("/"):
        raise ValueError(f"Expected JSON pointer to start with '/', got {pointer!r}.")
    return tuple(
        part.replace("~1", "/").replace("~0", "~") for part in pointer[1:].split("/")
    )


def is_under(path: FieldPath, prefix: FieldPath) -> bool:
    """Return True when ``path`` equals ``prefix`` or lies below it."""
    return path[: len(prefix)] == prefix


def leaf_paths(value: PolicyValue, prefix: FieldPath = ()) -> list[FieldPath]:
    """List the paths of every leaf in a value tree.

    Non-object values and empty nested objects are leaves; lists are never
    descended. An empty root object has no leaves.
    """
    if value.kind is ValueKind.OBJECT and not value.data and not prefix:
        return []
    if value.kind is not ValueKind.OBJECT or not value.data:
        return [prefix]
    paths: list[FieldPath] = []
    for key, item in value.data:
        paths.extend(leaf_paths(item, (*prefix, key)))
    return paths
