"""Effective policy calculation across the Gateway API hierarchy."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot
from gateway_policy_inspector.inspector.errors import PolicyWarning, WarningCode
from gateway_policy_inspector.inspector.hierarchy import (
    AncestorChain,
    HierarchyResolver,
    ancestor_chain,
)
from gateway_policy_inspector.inspector.merge import MergeOutcome, combine_provenance, merge
from gateway_policy_inspector.inspector.models import (
    GroupKind,
    PolicyCRD,
    PolicyInstance,
    PolicyRef,
    ResourceRef,
)
from gateway_policy_inspector.inspector.values import (
    EMPTY_OBJECT,
    FieldPath,
    PolicyValue,
    format_path,
    format_pointer,
    leaf_paths,
)
from gateway_policy_inspector.logging_utils import get_logger

LOGGER = get_logger()

Provenance = dict[FieldPath, PolicyRef]
Result = tuple["EffectivePolicy", list[PolicyWarning]]


@dataclass(frozen=True)
class EffectivePolicy:
    """Merged value of one policy kind for one resource, with per-field provenance."""

    target: ResourceRef
    policy_kind: GroupKind
    value: PolicyValue = EMPTY_OBJECT
    provenance: Mapping[FieldPath, PolicyRef] = field(default_factory=dict)
    chains: tuple[AncestorChain, ...] = ()

    @property
    def empty(self) -> bool:
        return self.value.is_empty()

    def source_of(self, path: FieldPath) -> PolicyRef | None:
        return self.provenance.get(path)

    def to_dict(self) -> dict[str, Any]:
        """Return serialized effective policy."""
        return {
            "target": str(self.target),
            "policyKind": str(self.policy_kind),
            "value": self.value.to_native(),
            "provenance": {
                format_pointer(path): str(source) for path, source in self.provenance.items()
            },
            "ancestry": [chain.describe() for chain in self.chains],
        }


@dataclass(frozen=True)
class TierLayer:
    """Pre-merged policies of one kind attached to one tier resource."""

    ref: ResourceRef
    value: PolicyValue
    provenance: Provenance
    instances: tuple[PolicyInstance, ...]


@dataclass(frozen=True)
class BatchResult:
    """Per-target output of a batch calculation."""

    target: ResourceRef
    by_kind: Mapping[str, tuple[Result, ...]] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def results(self) -> tuple[Result, ...]:
        """Every result of the batch entry, in policy kind order."""
        return tuple(result for results in self.by_kind.values() for result in results)


class EffectivePolicyCalculator:
    """Resolve policies attached to a target and its ancestors into one view.

    Tiers run from the target (Direct policies) to the root-most ancestor.
    The farthest tier is merged first so nearer tiers always override it.
    """

    def __init__(self, snapshot: ClusterSnapshot) -> None:
        self.snapshot = snapshot
        self.catalog = snapshot.catalog
        self.resolver = HierarchyResolver(snapshot.graph)

    def compute_effective_policy(
        self,
        target: ResourceRef,
        policy_kind: GroupKind | str,
        *,
        via: ResourceRef | None = None,
    ) -> Result:
        """Compute the effective policy along the single ancestor chain of ``target``."""
        chain, chain_warnings = ancestor_chain(target, self.snapshot.graph, via=via)
        policy, warnings = self.compute_for_chain(chain, policy_kind)
        return policy, [*chain_warnings, *warnings]

    def compute_per_parent(
        self,
        target: ResourceRef,
        policy_kind: GroupKind | str,
    ) -> list[Result]:
        """Compute one independent result per ancestor chain of ``target``."""
        resolution = self.resolver.ancestor_chains(target)
        results: list[Result] = []
        for chain in resolution.chains:
            policy, warnings = self.compute_for_chain(chain, policy_kind)
            results.append((policy, [*resolution.warnings, *warnings]))
        return results

    def compute_union_across_parents(
        self,
        target: ResourceRef,
        policy_kind: GroupKind | str,
    ) -> Result:
        """Merge per-parent results; the first chain in ancestry order defines a field."""
        per_parent = self.compute_per_parent(target, policy_kind)
        union, warnings = per_parent[0]
        warnings = list(warnings)
        for policy, chain_warnings in per_parent[1:]:
            warnings.extend(item for item in chain_warnings if item not in warnings)
            outcome = merge(policy.value, union.value)
            for path in outcome.shadowed_paths:
                warnings.append(
                    _ambiguous(
                        target,
                        path,
                        f"parents disagree on {format_path(path)}; keeping value from "
                        f"{union.provenance.get(path, '-')} over "
                        f"{policy.provenance.get(path, '-')}",
                    )
                )
            union = EffectivePolicy(
                target=target,
                policy_kind=union.policy_kind,
                value=outcome.value,
                provenance=combine_provenance(outcome, policy.provenance, union.provenance),
                chains=(*union.chains, *policy.chains),
            )
        return union, warnings

    def compute_all_kinds(
        self,
        target: ResourceRef,
        *,
        union_parents: bool = False,
    ) -> dict[GroupKind, list[Result]]:
        """Compute results for every registered policy kind that can reach ``target``."""
        output: dict[GroupKind, list[Result]] = {}
        for crd in self.catalog.crds():
            results = self._compute_mode(target, crd.group_kind, union_parents)
            if all(_not_applicable(warnings) for _, warnings in results):
                continue
            output[crd.group_kind] = results
        return output

    def compute_batch(
        self,
        targets: Sequence[ResourceRef],
        policy_kind: GroupKind | str | None = None,
        *,
        max_workers: int = 4,
        union_parents: bool = False,
    ) -> list[BatchResult]:
        """Compute results for many targets concurrently, preserving input order.

        Without ``policy_kind`` every applicable registered kind is computed,
        as ``compute_all_kinds`` does. A target whose calculation fails
        carries the exception in ``error`` instead of aborting the whole batch.
        """
        if max_workers <= 0:
            raise ValueError("max_workers must be greater than zero.")

        def run(target: ResourceRef) -> BatchResult:
            try:
                by_kind = self._by_kind(target, policy_kind, union_parents)
            except (LookupError, ValueError) as exc:
                LOGGER.warning("Effective policy for %s failed: %s", target, exc)
                return BatchResult(target=target, error=exc)
            return BatchResult(target=target, by_kind=by_kind)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(run, targets))

    def compute_for_chain(
        self,
        chain: AncestorChain,
        policy_kind: GroupKind | str,
    ) -> Result:
        """Merge the tiers of one resolved chain."""
        group_kind = self._group_kind(policy_kind)
        target = chain.target
        empty = EffectivePolicy(target=target, policy_kind=group_kind, chains=(chain,))
        crd = self.catalog.crd_for(group_kind)
        tiers: tuple[ResourceRef, ...] = (
            chain.tiers if crd is None or crd.inheritable else (target,)
        )
        warnings = [
            warning
            for tier in tiers
            for warning in self.catalog.dropped_warnings(tier, group_kind)
        ]
        if crd is None:
            return empty, [
                *warnings,
                _no_policy(target, f"policy kind {group_kind} is not registered"),
            ]
        if not _reaches(crd, chain):
            return empty, [
                *warnings,
                _no_policy(target, f"{group_kind} does not apply to {target.kind.value}"),
            ]

        layers: list[TierLayer] = []
        for tier in tiers:
            layer = self._tier_layer(tier, group_kind, warnings)
            if layer is not None:
                layers.append(layer)

        value = EMPTY_OBJECT
        provenance: Provenance = {}
        for layer in reversed(layers):
            outcome = merge(value, layer.value)
            warnings.extend(_conflict_warnings(target, layer, outcome))
            provenance = combine_provenance(outcome, provenance, layer.provenance)
            value = outcome.value

        LOGGER.debug(
            "Effective %s for %s from %d tier(s)",
            group_kind,
            target,
            len(layers),
        )
        policy = EffectivePolicy(
            target=target,
            policy_kind=group_kind,
            value=value,
            provenance=provenance,
            chains=(chain,),
        )
        return policy, warnings

    def _tier_layer(
        self,
        tier: ResourceRef,
        group_kind: GroupKind,
        warnings: list[PolicyWarning],
    ) -> TierLayer | None:
        instances = self.catalog.policies_targeting(tier, group_kind)
        if not instances:
            return None
        first = instances[0]
        value = first.spec
        provenance: Provenance = {path: first.ref for path in leaf_paths(value)}
        for later in instances[1:]:
            later_provenance = {path: later.ref for path in leaf_paths(later.spec)}
            outcome = merge(later.spec, value)
            for path in outcome.shadowed_paths:
                kept = provenance.get(path, first.ref)
                warnings.append(
                    _ambiguous(
                        tier,
                        path,
                        f"{later.ref} also sets {format_path(path)} on {tier}; "
                        f"keeping value from older policy {kept}",
                    )
                )
            provenance = combine_provenance(outcome, later_provenance, provenance)
            value = outcome.value
        return TierLayer(ref=tier, value=value, provenance=provenance, instances=tuple(instances))

    def _by_kind(
        self,
        target: ResourceRef,
        policy_kind: GroupKind | str | None,
        union_parents: bool,
    ) -> dict[str, tuple[Result, ...]]:
        if policy_kind is None:
            return {
                str(kind): tuple(results)
                for kind, results in self.compute_all_kinds(
                    target,
                    union_parents=union_parents,
                ).items()
            }
        return {str(policy_kind): tuple(self._compute_mode(target, policy_kind, union_parents))}

    def _compute_mode(
        self,
        target: ResourceRef,
        policy_kind: GroupKind | str,
        union_parents: bool,
    ) -> list[Result]:
        if union_parents:
            return [self.compute_union_across_parents(target, policy_kind)]
        return self.compute_per_parent(target, policy_kind)

    def _group_kind(self, policy_kind: GroupKind | str) -> GroupKind:
        if isinstance(policy_kind, GroupKind):
            return policy_kind
        return self.catalog.resolve_group_kind(policy_kind) or GroupKind.parse(policy_kind)


def compute_effective_policy(
    target: ResourceRef,
    policy_kind: GroupKind | str,
    snapshot: ClusterSnapshot,
    *,
    via: ResourceRef | None = None,
) -> Result:
    """Compute the effective policy of one kind for one target resource."""
    return EffectivePolicyCalculator(snapshot).compute_effective_policy(
        target,
        policy_kind,
        via=via,
    )


def _reaches(crd: PolicyCRD, chain: AncestorChain) -> bool:
    if crd.supports(chain.target.kind):
        return True
    return crd.inheritable and any(crd.supports(ref.kind) for ref in chain.ancestors)


def _no_policy(target: ResourceRef, message: str) -> PolicyWarning:
    LOGGER.info("No applicable policy for %s: %s", target, message)
    return PolicyWarning(
        code=WarningCode.NO_APPLICABLE_POLICY,
        message=message,
        subject=str(target),
    )


def _not_applicable(warnings: list[PolicyWarning]) -> bool:
    return any(item.code is WarningCode.NO_APPLICABLE_POLICY for item in warnings)


def _ambiguous(subject: ResourceRef, path: FieldPath, message: str) -> PolicyWarning:
    LOGGER.warning("Ambiguous policy: %s", message)
    return PolicyWarning(
        code=WarningCode.AMBIGUOUS_POLICY,
        message=message,
        subject=str(subject),
        path=path,
    )


def _conflict_warnings(
    target: ResourceRef,
    layer: TierLayer,
    outcome: MergeOutcome,
) -> list[PolicyWarning]:
    warnings: list[PolicyWarning] = []
    for conflict in outcome.conflicts:
        message = f"{conflict.describe()} from policies on {layer.ref}"
        LOGGER.warning("Merge conflict for %s: %s", target, message)
        warnings.append(
            PolicyWarning(
                code=WarningCode.MERGE_CONFLICT,
                message=message,
                subject=str(target),
                path=conflict.path,
            )
        )
    return warnings
