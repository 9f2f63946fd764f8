"""Immutable per-invocation snapshot of the resource graph and policy catalog."""

from __future__ import annotations

from dataclasses import dataclass

from gateway_policy_inspector.inspector.catalog import PolicyCatalog
from gateway_policy_inspector.inspector.cluster.base import ClusterSource
from gateway_policy_inspector.inspector.errors import PolicyWarning
from gateway_policy_inspector.inspector.hierarchy import ResourceGraph
from gateway_policy_inspector.inspector.models import (
    PolicyCRD,
    PolicyInstance,
    Resource,
    ResourceKind,
)
from gateway_policy_inspector.logging_utils import get_logger

LOGGER = get_logger()


@dataclass(frozen=True)
class ClusterSnapshot:
    """Resource graph plus policy catalog read once for one command."""

    graph: ResourceGraph
    catalog: PolicyCatalog

    @property
    def warnings(self) -> list[PolicyWarning]:
        return list(self.catalog.warnings)

    @classmethod
    def from_objects(
        cls,
        *,
        resources: list[Resource],
        crds: list[PolicyCRD],
        instances: list[PolicyInstance],
        warnings: list[PolicyWarning] | None = None,
    ) -> ClusterSnapshot:
        """Build a snapshot from already-loaded objects."""
        catalog = PolicyCatalog()
        for warning in warnings or []:
            catalog.record_warning(warning)
        for crd in crds:
            catalog.register_crd(crd)
        for instance in instances:
            catalog.register_instance(instance)
        return cls(graph=ResourceGraph.from_resources(resources), catalog=catalog)


def build_snapshot(source: ClusterSource) -> ClusterSnapshot:
    """Read every hierarchy resource and policy object from ``source``.

    All namespaces are read because ancestors may live outside the namespace
    being described.
    """
    resources: list[Resource] = []
    for kind in ResourceKind:
        resources.extend(source.list_resources(kind, ""))
    crds = source.list_policy_crds()
    instances = source.list_policy_instances()
    LOGGER.info(
        "Loaded snapshot: %d resources, %d policy CRDs, %d policies",
        len(resources),
        len(crds),
        len(instances),
    )
    return ClusterSnapshot.from_objects(
        resources=resources,
        crds=crds,
        instances=instances,
        warnings=source.list_warnings(),
    )
