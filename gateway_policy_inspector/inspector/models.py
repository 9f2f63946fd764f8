"""Resource and policy models for the Gateway API hierarchy."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from gateway_policy_inspector.inspector.values import EMPTY_OBJECT, PolicyValue

GATEWAY_API_GROUP = "gateway.networking.k8s.io"
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class ResourceKind(str, Enum):
    """Resource kinds participating in the policy hierarchy."""

    GATEWAY_CLASS = "GatewayClass"
    GATEWAY = "Gateway"
    HTTP_ROUTE = "HTTPRoute"
    BACKEND = "Service"

    @property
    def cluster_scoped(self) -> bool:
        return self is ResourceKind.GATEWAY_CLASS

    @property
    def group(self) -> str:
        return "" if self is ResourceKind.BACKEND else GATEWAY_API_GROUP

    @classmethod
    def from_kind(cls, value: str) -> ResourceKind | None:
        """Return the variant for a Kubernetes kind name, or None if unknown."""
        for member in cls:
            if member.value == value:
                return member
        return None


class InheritanceScope(str, Enum):
    """Whether a policy kind reaches descendants of its target."""

    DIRECT_ONLY = "DirectOnly"
    INHERITABLE = "Inheritable"

    @classmethod
    def from_label(cls, value: str) -> InheritanceScope:
        """Parse the gateway.networking.k8s.io/policy label value."""
        cleaned = value.strip().lower()
        if cleaned in {"direct", "directonly"}:
            return cls.DIRECT_ONLY
        if cleaned in {"inherited", "inheritable"}:
            return cls.INHERITABLE
        raise ValueError(f"Unknown policy inheritance label: '{value}'.")


@dataclass(frozen=True, order=True)
class ResourceRef:
    """(kind, namespace, name) identity of one hierarchy resource."""

    kind: ResourceKind
    namespace: str
    name: str

    @classmethod
    def of(cls, kind: ResourceKind, namespace: str, name: str) -> ResourceRef:
        """Build a reference, dropping the namespace of cluster-scoped kinds."""
        return cls(kind, "" if kind.cluster_scoped else namespace, name)

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind.value}/{self.namespace}/{self.name}"
        return f"{self.kind.value}/{self.name}"


@dataclass(frozen=True, order=True)
class GroupKind:
    """API group plus kind naming one policy type."""

    group: str
    kind: str

    @classmethod
    def parse(cls, value: str) -> GroupKind:
        """Parse ``Kind`` or ``Kind.group`` notation."""
        kind, _, group = value.strip().partition(".")
        if not kind:
            raise ValueError("Policy kind must be non-empty.")
        return cls(group=group, kind=kind)

    def __str__(self) -> str:
        return f"{self.kind}.{self.group}" if self.group else self.kind


@dataclass(frozen=True)
class Resource:
    """A hierarchy resource plus the spec fields relationships are read from."""

    ref: ResourceRef
    spec: Mapping[str, Any] = field(default_factory=dict)
    created_at: datetime = EPOCH
    labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyCRD:
    """Definition of one policy kind."""

    group_kind: GroupKind
    target_kinds: frozenset[ResourceKind]
    inheritance_scope: InheritanceScope
    name: str = ""

    @property
    def inheritable(self) -> bool:
        return self.inheritance_scope is InheritanceScope.INHERITABLE

    def supports(self, kind: ResourceKind) -> bool:
        return kind in self.target_kinds


@dataclass(frozen=True, order=True)
class PolicyRef:
    """Identity of one policy instance used in provenance."""

    group_kind: GroupKind
    namespace: str
    name: str

    @property
    def key(self) -> str:
        """Return the ``namespace/name`` lookup key."""
        return f"{self.namespace}/{self.name}"

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.group_kind.kind}/{self.namespace}/{self.name}"
        return f"{self.group_kind.kind}/{self.name}"


@dataclass(frozen=True)
class PolicyInstance:
    """One policy object attached to a target resource."""

    group_kind: GroupKind
    namespace: str
    name: str
    target: ResourceRef
    created_at: datetime = EPOCH
    spec: PolicyValue = EMPTY_OBJECT

    @property
    def ref(self) -> PolicyRef:
        return PolicyRef(self.group_kind, self.namespace, self.name)

    @property
    def sort_key(self) -> tuple[datetime, str, str]:
        """Deterministic tie-break order: oldest first, then by name."""
        return (self.created_at, self.name, self.namespace)


def parse_timestamp(value: Any, field_name: str) -> datetime:
    """Parse a Kubernetes RFC 3339 timestamp, defaulting to the epoch when absent."""
    if value is None or value == "":
        return EPOCH
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError(f"Expected '{field_name}' to be ISO timestamp.") from exc
    else:
        raise ValueError(f"Expected '{field_name}' to be ISO timestamp.")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
