"""Schema-free structural merge of policy value trees."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TypeVar

from gateway_policy_inspector.inspector.values import (
    FieldPath,
    PolicyValue,
    ValueKind,
    format_path,
    is_under,
)

S = TypeVar("S")


@dataclass(frozen=True)
class MergeConflict:
    """Type mismatch between base and override at one field path."""

    path: FieldPath
    base_kind: ValueKind
    override_kind: ValueKind

    def describe(self) -> str:
        return (
            f"{format_path(self.path)}: {self.override_kind.value} overrides "
            f"{self.base_kind.value}"
        )


@dataclass(frozen=True)
class MergeOutcome:
    """Merged tree plus where the override's values ended up.

    ``override_paths`` are roots of subtrees copied from the override;
    ``shadowed_paths`` are paths where a different base value was discarded.
    """

    value: PolicyValue
    override_paths: tuple[FieldPath, ...] = ()
    shadowed_paths: tuple[FieldPath, ...] = ()
    conflicts: tuple[MergeConflict, ...] = ()


def merge(base: PolicyValue, override: PolicyValue) -> MergeOutcome:
    """Merge ``override`` on top of ``base`` without mutating either.

    Objects merge field by field, lists are replaced whole, and any other
    pair resolves to the override's value.
    """
    taken: list[FieldPath] = []
    shadowed: list[FieldPath] = []
    conflicts: list[MergeConflict] = []
    value = _merge_node(base, override, (), taken, shadowed, conflicts)
    return MergeOutcome(
        value=value,
        override_paths=tuple(taken),
        shadowed_paths=tuple(shadowed),
        conflicts=tuple(conflicts),
    )


def _merge_node(
    base: PolicyValue,
    override: PolicyValue,
    path: FieldPath,
    taken: list[FieldPath],
    shadowed: list[FieldPath],
    conflicts: list[MergeConflict],
) -> PolicyValue:
    if base.is_object and override.is_object:
        if not base.data:
            if override.data:
                taken.append(path)
            return override if override.data else base
        fields = base.fields()
        for key, override_value in override.items():
            child_path = (*path, key)
            if key not in fields:
                fields[key] = override_value
                taken.append(child_path)
                continue
            fields[key] = _merge_node(
                fields[key],
                override_value,
                child_path,
                taken,
                shadowed,
                conflicts,
            )
        return PolicyValue.object(fields)

    if _is_conflict(base, override):
        conflicts.append(MergeConflict(path, base.kind, override.kind))
    if base != override:
        shadowed.append(path)
    taken.append(path)
    return override


def _is_conflict(base: PolicyValue, override: PolicyValue) -> bool:
    if ValueKind.NULL in (base.kind, override.kind):
        return False
    return base.kind is not override.kind


def combine_provenance(
    outcome: MergeOutcome,
    base_provenance: Mapping[FieldPath, S],
    override_provenance: Mapping[FieldPath, S],
) -> dict[FieldPath, S]:
    """Carry per-leaf provenance of both inputs through one merge step."""
    roots = outcome.override_paths
    combined = {
        path: source
        for path, source in base_provenance.items()
        if not any(is_under(path, root) for root in roots)
    }
    combined.update(
        {
            path: source
            for path, source in override_provenance.items()
            if any(is_under(path, root) for root in roots)
        }
    )
    return dict(sorted(combined.items()))
