"""Ancestor chain resolution over a materialized Gateway API resource graph."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from gateway_policy_inspector.inspector.errors import (
    AmbiguousAncestryError,
    PolicyWarning,
    WarningCode,
)
from gateway_policy_inspector.inspector.models import Resource, ResourceKind, ResourceRef
from gateway_policy_inspector.logging_utils import get_logger

LOGGER = get_logger()

# Backend -> HTTPRoute -> Gateway -> GatewayClass
MAX_HIERARCHY_DEPTH = 4
MAX_ANCESTORS = MAX_HIERARCHY_DEPTH - 1

T = TypeVar("T")


@dataclass(frozen=True)
class ResourceGraph:
    """Immutable resource snapshot with child-to-parent edges."""

    resources: Mapping[ResourceRef, Resource]
    parents: Mapping[ResourceRef, tuple[ResourceRef, ...]] = field(default_factory=dict)

    @classmethod
    def from_resources(cls, resources: Iterable[Resource]) -> ResourceGraph:
        """Materialize edges from resource specs using the static relationship rules."""
        by_ref = {resource.ref: resource for resource in resources}
        parents: dict[ResourceRef, set[ResourceRef]] = defaultdict(set)
        for resource in by_ref.values():
            ref = resource.ref
            if ref.kind is ResourceKind.GATEWAY:
                class_name = resource.spec.get("gatewayClassName")
                if isinstance(class_name, str) and class_name:
                    parents[ref].add(ResourceRef.of(ResourceKind.GATEWAY_CLASS, "", class_name))
            elif ref.kind is ResourceKind.HTTP_ROUTE:
                parents[ref].update(_route_parent_gateways(resource))
                for backend in _route_backends(resource):
                    parents[backend].add(ref)
        return cls(
            resources=by_ref,
            parents={child: tuple(sorted(refs)) for child, refs in parents.items()},
        )

    def parents_of(self, ref: ResourceRef) -> tuple[ResourceRef, ...]:
        return tuple(sorted(self.parents.get(ref, ())))

    def children_of(self, ref: ResourceRef) -> list[ResourceRef]:
        return sorted(child for child, refs in self.parents.items() if ref in refs)

    def list_kind(self, kind: ResourceKind, namespace: str = "") -> list[Resource]:
        """List resources of one kind, all namespaces when ``namespace`` is empty."""
        return [
            self.resources[ref]
            for ref in sorted(self.resources)
            if ref.kind is kind
            and (not namespace or kind.cluster_scoped or ref.namespace == namespace)
        ]


def _route_parent_gateways(route: Resource) -> list[ResourceRef]:
    found: list[ResourceRef] = []
    for item in _list_of_mappings(route.spec.get("parentRefs")):
        if item.get("kind", "Gateway") != "Gateway":
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        namespace = item.get("namespace") or route.ref.namespace
        found.append(ResourceRef.of(ResourceKind.GATEWAY, str(namespace), name))
    return found


def _route_backends(route: Resource) -> list[ResourceRef]:
    found: list[ResourceRef] = []
    for rule in _list_of_mappings(route.spec.get("rules")):
        for backend in _list_of_mappings(rule.get("backendRefs")):
            if backend.get("kind", "Service") != "Service" or backend.get("group", "") != "":
                continue
            name = backend.get("name")
            if not isinstance(name, str) or not name:
                continue
            namespace = backend.get("namespace") or route.ref.namespace
            found.append(ResourceRef.of(ResourceKind.BACKEND, str(namespace), name))
    return found


def _list_of_mappings(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


@dataclass(frozen=True)
class AncestorChain:
    """Ancestors of one target, nearest first.

    ``dangling`` names the first referenced ancestor missing from the snapshot
    and ``truncated`` is set when a cycle or the depth bound stopped the walk.
    """

    target: ResourceRef
    ancestors: tuple[ResourceRef, ...] = ()
    dangling: ResourceRef | None = None
    truncated: bool = False

    @property
    def tiers(self) -> tuple[ResourceRef, ...]:
        """Precedence tiers: the target itself, then each ancestor."""
        return (self.target, *self.ancestors)

    @property
    def parent(self) -> ResourceRef | None:
        return self.ancestors[0] if self.ancestors else None

    def describe(self) -> str:
        return " -> ".join(str(ref) for ref in self.tiers)


@dataclass(frozen=True)
class ChainResolution:
    """All independent ancestor chains of a target plus walk diagnostics."""

    chains: tuple[AncestorChain, ...]
    warnings: tuple[PolicyWarning, ...] = ()


class HierarchyResolver:
    """Walk child-to-parent edges of a resource graph."""

    def __init__(self, graph: ResourceGraph) -> None:
        self.graph = graph

    def ancestor_chains(self, target: ResourceRef) -> ChainResolution:
        """Return one chain per distinct path from ``target`` toward the root."""
        chains: list[AncestorChain] = []
        warnings: list[PolicyWarning] = []
        self._walk(target, target, (), chains, warnings)
        return ChainResolution(chains=tuple(_unique(chains)), warnings=tuple(_unique(warnings)))

    def _walk(
        self,
        target: ResourceRef,
        current: ResourceRef,
        path: tuple[ResourceRef, ...],
        chains: list[AncestorChain],
        warnings: list[PolicyWarning],
    ) -> None:
        parents = self.graph.parents_of(current)
        if not parents:
            chains.append(AncestorChain(target=target, ancestors=path))
            return
        for parent in parents:
            if parent == target or parent in path:
                warnings.append(
                    PolicyWarning(
                        code=WarningCode.CYCLE_DETECTED,
                        message=f"cycle at {parent} while resolving ancestors of {target}",
                        subject=str(target),
                    )
                )
                LOGGER.warning("Cycle detected at %s for %s", parent, target)
                chains.append(AncestorChain(target=target, ancestors=path, truncated=True))
                continue
            if parent not in self.graph.resources:
                warnings.append(
                    PolicyWarning(
                        code=WarningCode.DANGLING_REFERENCE,
                        message=f"{current} references missing {parent}",
                        subject=str(target),
                    )
                )
                LOGGER.info("Ancestor %s of %s is absent; chain ends", parent, current)
                chains.append(AncestorChain(target=target, ancestors=path, dangling=parent))
                continue
            if len(path) >= MAX_ANCESTORS:
                warnings.append(
                    PolicyWarning(
                        code=WarningCode.DEPTH_EXCEEDED,
                        message=(
                            f"ancestors of {target} exceed hierarchy depth "
                            f"{MAX_HIERARCHY_DEPTH}; stopping before {parent}"
                        ),
                        subject=str(target),
                    )
                )
                LOGGER.warning("Ancestor chain of %s exceeds max depth", target)
                chains.append(AncestorChain(target=target, ancestors=path, truncated=True))
                continue
            self._walk(target, parent, (*path, parent), chains, warnings)


def ancestor_chain(
    target: ResourceRef,
    graph: ResourceGraph,
    *,
    via: ResourceRef | None = None,
) -> tuple[AncestorChain, list[PolicyWarning]]:
    """Return the single ancestor chain of ``target``.

    ``via`` selects the chain passing through one ancestor when the target has
    several parents; without it a multi-parent target is an error.
    """
    resolution = HierarchyResolver(graph).ancestor_chains(target)
    chains = select_chains(resolution.chains, via)
    if not chains:
        raise AmbiguousAncestryError(f"{via} is not an ancestor of {target}")
    if len(chains) > 1:
        options = ", ".join(str(chain.parent) for chain in chains)
        raise AmbiguousAncestryError(
            f"{target} has {len(chains)} ancestor chains ({options}); "
            "request per-parent results or name the parent"
        )
    return chains[0], list(resolution.warnings)


def select_chains(
    chains: Iterable[AncestorChain],
    via: ResourceRef | None,
) -> list[AncestorChain]:
    """Keep the chains that pass through ``via`` (all chains when None)."""
    if via is None:
        return list(chains)
    return [chain for chain in chains if via in chain.ancestors or via == chain.dangling]


def _unique(items: list[T]) -> list[T]:
    seen: set[T] = set()
    output: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            output.append(item)
    return output
