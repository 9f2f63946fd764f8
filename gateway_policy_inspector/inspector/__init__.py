"""Effective policy calculation for Gateway API resource hierarchies."""

from gateway_policy_inspector.inspector.catalog import PolicyCatalog
from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot, build_snapshot
from gateway_policy_inspector.inspector.effective import (
    EffectivePolicy,
    EffectivePolicyCalculator,
    compute_effective_policy,
)
from gateway_policy_inspector.inspector.errors import PolicyWarning, WarningCode
from gateway_policy_inspector.inspector.hierarchy import (
    AncestorChain,
    HierarchyResolver,
    ResourceGraph,
    ancestor_chain,
)
from gateway_policy_inspector.inspector.merge import merge
from gateway_policy_inspector.inspector.models import (
    GroupKind,
    InheritanceScope,
    PolicyCRD,
    PolicyInstance,
    Resource,
    ResourceKind,
    ResourceRef,
)
from gateway_policy_inspector.inspector.values import PolicyValue

__all__ = [
    "AncestorChain",
    "ClusterSnapshot",
    "EffectivePolicy",
    "EffectivePolicyCalculator",
    "GroupKind",
    "HierarchyResolver",
    "InheritanceScope",
    "PolicyCRD",
    "PolicyCatalog",
    "PolicyInstance",
    "PolicyValue",
    "PolicyWarning",
    "Resource",
    "ResourceGraph",
    "ResourceKind",
    "ResourceRef",
    "WarningCode",
    "ancestor_chain",
    "build_snapshot",
    "compute_effective_policy",
    "merge",
]
