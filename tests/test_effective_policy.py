"""Tests for effective policy calculation across the resource hierarchy."""

from __future__ import annotations

import random
from datetime import datetime

import pytest

from gateway_policy_inspector.inspector.catalog import PolicyCatalog
from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot
from gateway_policy_inspector.inspector.effective import (
    EffectivePolicyCalculator,
    compute_effective_policy,
)
from gateway_policy_inspector.inspector.errors import AmbiguousAncestryError, WarningCode
from gateway_policy_inspector.inspector.hierarchy import ResourceGraph
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

TIMEOUT = GroupKind("example.io", "TimeoutPolicy")
ACCESS = GroupKind("example.io", "AccessPolicy")

GC1 = ResourceRef.of(ResourceKind.GATEWAY_CLASS, "", "gc1")
GW1 = ResourceRef.of(ResourceKind.GATEWAY, "default", "gw1")
GW2 = ResourceRef.of(ResourceKind.GATEWAY, "default", "gw2")
R1 = ResourceRef.of(ResourceKind.HTTP_ROUTE, "default", "r1")
R2 = ResourceRef.of(ResourceKind.HTTP_ROUTE, "default", "r2")
SVC1 = ResourceRef.of(ResourceKind.BACKEND, "default", "svc1")


def _resources() -> list[Resource]:
    return [
        Resource(ref=GC1, spec={"controllerName": "example.io/gateway"}),
        Resource(ref=GW1, spec={"gatewayClassName": "gc1"}),
        Resource(ref=GW2, spec={"gatewayClassName": "gc1"}),
        Resource(
            ref=R1,
            spec={
                "parentRefs": [{"name": "gw1"}],
                "rules": [{"backendRefs": [{"name": "svc1", "port": 80}]}],
            },
        ),
        Resource(ref=R2, spec={"parentRefs": [{"name": "gw1"}, {"name": "gw2"}]}),
        Resource(ref=SVC1),
    ]


def _crds() -> list[PolicyCRD]:
    return [
        PolicyCRD(
            group_kind=TIMEOUT,
            target_kinds=frozenset(ResourceKind),
            inheritance_scope=InheritanceScope.INHERITABLE,
        ),
        PolicyCRD(
            group_kind=ACCESS,
            target_kinds=frozenset({ResourceKind.GATEWAY, ResourceKind.HTTP_ROUTE}),
            inheritance_scope=InheritanceScope.DIRECT_ONLY,
        ),
    ]


def _policy(
    name: str,
    target: ResourceRef,
    spec: dict[str, object],
    *,
    kind: GroupKind = TIMEOUT,
    created: str = "2024-01-01T00:00:00+00:00",
) -> PolicyInstance:
    return PolicyInstance(
        group_kind=kind,
        namespace="default",
        name=name,
        target=target,
        created_at=datetime.fromisoformat(created),
        spec=PolicyValue.from_native(spec),
    )


def _snapshot(*instances: PolicyInstance) -> ClusterSnapshot:
    return ClusterSnapshot.from_objects(
        resources=_resources(),
        crds=_crds(),
        instances=list(instances),
    )


def _scenario_a() -> list[PolicyInstance]:
    return [
        _policy("policy-a", GC1, {"timeout": 30}),
        _policy("policy-b", GW1, {"timeout": 10, "retries": 3}),
    ]


def test_nearer_ancestor_overrides_farther_ancestor() -> None:
    snapshot = _snapshot(*_scenario_a())
    policy, warnings = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 10, "retries": 3}
    assert {path: source.name for path, source in policy.provenance.items()} == {
        ("retries",): "policy-b",
        ("timeout",): "policy-b",
    }
    assert warnings == []


def test_farther_ancestor_fills_fields_nearer_tiers_leave_unset() -> None:
    snapshot = _snapshot(
        _policy("policy-a", GC1, {"timeout": 30, "buffer": {"size": 4}}),
        _policy("policy-b", GW1, {"retries": 3}),
    )
    policy, _ = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 30, "buffer": {"size": 4}, "retries": 3}
    assert policy.source_of(("buffer", "size")).name == "policy-a"
    assert policy.source_of(("retries",)).name == "policy-b"


def test_direct_policy_always_wins() -> None:
    snapshot = _snapshot(*_scenario_a(), _policy("policy-c", R1, {"timeout": 5}))
    policy, warnings = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 5, "retries": 3}
    assert policy.source_of(("timeout",)).name == "policy-c"
    assert policy.source_of(("retries",)).name == "policy-b"
    assert warnings == []


def test_direct_only_policy_does_not_propagate() -> None:
    snapshot = _snapshot(_policy("access-gw", GW1, {"allow": ["a"]}, kind=ACCESS))
    route_policy, route_warnings = compute_effective_policy(R1, ACCESS, snapshot)
    gateway_policy, _ = compute_effective_policy(GW1, ACCESS, snapshot)
    assert route_policy.value.to_native() == {}
    assert route_policy.empty
    assert route_warnings == []
    assert gateway_policy.value.to_native() == {"allow": ["a"]}


def test_direct_only_kind_not_targeting_resource_is_not_applicable() -> None:
    snapshot = _snapshot(_policy("access-gw", GW1, {"allow": ["a"]}, kind=ACCESS))
    policy, warnings = compute_effective_policy(GC1, ACCESS, snapshot)
    assert policy.value.to_native() == {}
    assert [warning.code for warning in warnings] == [WarningCode.NO_APPLICABLE_POLICY]


def test_unregistered_policy_kind_yields_empty_result() -> None:
    snapshot = _snapshot(*_scenario_a())
    policy, warnings = compute_effective_policy(R1, "RateLimitPolicy", snapshot)
    assert policy.empty
    assert warnings[0].code is WarningCode.NO_APPLICABLE_POLICY
    assert warnings[0].informational


def test_policy_kind_can_be_named_by_kind_only() -> None:
    snapshot = _snapshot(*_scenario_a())
    policy, _ = compute_effective_policy(R1, "TimeoutPolicy", snapshot)
    assert policy.policy_kind == TIMEOUT
    assert policy.value.to_native() == {"timeout": 10, "retries": 3}


def test_no_policies_anywhere_is_not_an_error() -> None:
    policy, warnings = compute_effective_policy(R1, TIMEOUT, _snapshot())
    assert policy.empty
    assert policy.provenance == {}
    assert warnings == []


def test_backend_inherits_through_route_chain() -> None:
    snapshot = _snapshot(*_scenario_a(), _policy("route-policy", R1, {"timeout": 7}))
    policy, _ = compute_effective_policy(SVC1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 7, "retries": 3}
    assert policy.chains[0].tiers == (SVC1, R1, GW1, GC1)


def test_same_tier_policies_keep_the_oldest_value() -> None:
    snapshot = _snapshot(
        _policy("zeta", GW1, {"timeout": 10}, created="2024-01-01T00:00:00+00:00"),
        _policy("alpha", GW1, {"timeout": 20, "retries": 2}, created="2024-02-01T00:00:00+00:00"),
    )
    policy, warnings = compute_effective_policy(GW1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 10, "retries": 2}
    assert policy.source_of(("timeout",)).name == "zeta"
    assert policy.source_of(("retries",)).name == "alpha"
    assert [(warning.code, warning.path) for warning in warnings] == [
        (WarningCode.AMBIGUOUS_POLICY, ("timeout",))
    ]


def test_same_tier_ties_break_alphabetically() -> None:
    snapshot = _snapshot(
        _policy("b-policy", GW1, {"timeout": 2}),
        _policy("a-policy", GW1, {"timeout": 1}),
    )
    policy, warnings = compute_effective_policy(GW1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 1}
    assert policy.source_of(("timeout",)).name == "a-policy"
    assert warnings[0].code is WarningCode.AMBIGUOUS_POLICY


def test_type_mismatch_across_tiers_reports_merge_conflict() -> None:
    snapshot = _snapshot(
        _policy("gateway", GW1, {"timeout": 10}),
        _policy("route", R1, {"timeout": {"request": 5}}),
    )
    policy, warnings = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": {"request": 5}}
    assert policy.source_of(("timeout", "request")).name == "route"
    assert [(warning.code, warning.path) for warning in warnings] == [
        (WarningCode.MERGE_CONFLICT, ("timeout",))
    ]


def test_calculation_is_idempotent() -> None:
    snapshot = _snapshot(*_scenario_a(), _policy("policy-c", R1, {"timeout": 5}))
    first = compute_effective_policy(R1, TIMEOUT, snapshot)
    second = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert first == second
    assert first[0].to_dict() == second[0].to_dict()


def test_result_is_independent_of_input_order() -> None:
    instances = [
        *_scenario_a(),
        _policy("policy-c", R1, {"timeout": 5, "mode": "x"}),
        _policy("policy-d", R1, {"mode": "y"}, created="2024-03-01T00:00:00+00:00"),
        _policy("policy-e", GW1, {"retries": 4, "limits": {"rps": 1}}),
    ]
    expected = compute_effective_policy(R1, TIMEOUT, _snapshot(*instances))
    rng = random.Random(7)  # nosec B311
    for _ in range(5):
        shuffled = list(instances)
        rng.shuffle(shuffled)
        resources = _resources()
        rng.shuffle(resources)
        snapshot = ClusterSnapshot.from_objects(
            resources=resources,
            crds=list(reversed(_crds())),
            instances=shuffled,
        )
        assert compute_effective_policy(R1, TIMEOUT, snapshot) == expected


def test_multi_parent_route_requires_explicit_mode() -> None:
    snapshot = _snapshot(
        _policy("gw1-policy", GW1, {"timeout": 10}),
        _policy("gw2-policy", GW2, {"timeout": 20, "retries": 1}),
    )
    calculator = EffectivePolicyCalculator(snapshot)
    with pytest.raises(AmbiguousAncestryError):
        calculator.compute_effective_policy(R2, TIMEOUT)

    via_gw2, _ = calculator.compute_effective_policy(R2, TIMEOUT, via=GW2)
    assert via_gw2.value.to_native() == {"timeout": 20, "retries": 1}

    per_parent = calculator.compute_per_parent(R2, TIMEOUT)
    assert [policy.chains[0].parent for policy, _ in per_parent] == [GW1, GW2]
    assert [policy.value.to_native() for policy, _ in per_parent] == [
        {"timeout": 10},
        {"timeout": 20, "retries": 1},
    ]


def test_union_across_parents_prefers_first_parent_and_reports_disagreement() -> None:
    snapshot = _snapshot(
        _policy("gw1-policy", GW1, {"timeout": 10}),
        _policy("gw2-policy", GW2, {"timeout": 20, "retries": 1}),
    )
    union, warnings = EffectivePolicyCalculator(snapshot).compute_union_across_parents(
        R2,
        TIMEOUT,
    )
    assert union.value.to_native() == {"timeout": 10, "retries": 1}
    assert union.source_of(("timeout",)).name == "gw1-policy"
    assert union.source_of(("retries",)).name == "gw2-policy"
    assert len(union.chains) == 2
    assert [warning.code for warning in warnings] == [WarningCode.AMBIGUOUS_POLICY]


def test_direct_policy_wins_in_union_mode() -> None:
    snapshot = _snapshot(
        _policy("gw1-policy", GW1, {"timeout": 10}),
        _policy("gw2-policy", GW2, {"timeout": 20}),
        _policy("direct", R2, {"timeout": 1}),
    )
    union, warnings = EffectivePolicyCalculator(snapshot).compute_union_across_parents(
        R2,
        TIMEOUT,
    )
    assert union.value.to_native() == {"timeout": 1}
    assert union.source_of(("timeout",)).name == "direct"
    assert warnings == []


def test_batch_preserves_input_order() -> None:
    snapshot = _snapshot(*_scenario_a())
    targets = [GC1, R1, GW1, SVC1]
    results = EffectivePolicyCalculator(snapshot).compute_batch(targets, TIMEOUT, max_workers=3)
    assert [item.target for item in results] == targets
    values = [item.results[0][0].value.to_native() for item in results]
    assert values == [
        {"timeout": 30},
        {"timeout": 10, "retries": 3},
        {"timeout": 10, "retries": 3},
        {"timeout": 10, "retries": 3},
    ]
    with pytest.raises(ValueError):
        EffectivePolicyCalculator(snapshot).compute_batch(targets, TIMEOUT, max_workers=0)


def test_batch_reports_per_target_errors() -> None:
    results = EffectivePolicyCalculator(_snapshot()).compute_batch([R1, GW1], " ")
    assert [item.target for item in results] == [R1, GW1]
    assert all(isinstance(item.error, ValueError) for item in results)
    assert all(item.results == () for item in results)


def test_compute_all_kinds_skips_kinds_that_cannot_apply() -> None:
    snapshot = _snapshot(*_scenario_a(), _policy("access-gw", GW1, {"allow": ["a"]}, kind=ACCESS))
    calculator = EffectivePolicyCalculator(snapshot)
    assert set(calculator.compute_all_kinds(GW1)) == {TIMEOUT, ACCESS}
    assert set(calculator.compute_all_kinds(SVC1)) == {TIMEOUT}


def test_cyclic_snapshot_terminates_with_warning() -> None:
    graph = ResourceGraph(
        resources={R1: Resource(ref=R1), GW1: Resource(ref=GW1)},
        parents={R1: (GW1,), GW1: (R1,)},
    )
    catalog = PolicyCatalog()
    for crd in _crds():
        catalog.register_crd(crd)
    catalog.register_instance(_policy("gateway", GW1, {"timeout": 10}))
    snapshot = ClusterSnapshot(graph=graph, catalog=catalog)

    policy, warnings = compute_effective_policy(R1, TIMEOUT, snapshot)
    assert policy.value.to_native() == {"timeout": 10}
    assert WarningCode.CYCLE_DETECTED in {warning.code for warning in warnings}


def test_policy_dropped_for_unsupported_target_is_reported_in_results() -> None:
    snapshot = ClusterSnapshot.from_objects(
        resources=_resources(),
        crds=[
            PolicyCRD(
                group_kind=TIMEOUT,
                target_kinds=frozenset({ResourceKind.HTTP_ROUTE}),
                inheritance_scope=InheritanceScope.INHERITABLE,
            )
        ],
        instances=[_policy("on-gateway", GW1, {"timeout": 5})],
    )
    calculator = EffectivePolicyCalculator(snapshot)

    _, warnings = calculator.compute_effective_policy(GW1, TIMEOUT)
    assert [warning.code for warning in warnings] == [
        WarningCode.UNKNOWN_POLICY_KIND,
        WarningCode.NO_APPLICABLE_POLICY,
    ]
    assert warnings[0].subject == "TimeoutPolicy/default/on-gateway"

    policy, warnings = calculator.compute_effective_policy(R1, TIMEOUT)
    assert policy.value.to_native() == {}
    assert [warning.code for warning in warnings] == [WarningCode.UNKNOWN_POLICY_KIND]


def test_dropped_direct_policy_is_only_reported_on_its_target() -> None:
    snapshot = _snapshot(_policy("on-service", SVC1, {"allow": ["b"]}, kind=ACCESS))
    calculator = EffectivePolicyCalculator(snapshot)
    _, warnings = calculator.compute_effective_policy(SVC1, ACCESS)
    assert WarningCode.UNKNOWN_POLICY_KIND in {warning.code for warning in warnings}
    _, warnings = calculator.compute_effective_policy(R1, ACCESS)
    assert warnings == []


def test_provenance_keys_with_dots_and_slashes_stay_distinct() -> None:
    snapshot = _snapshot(_policy("labels", GW1, {"a.b": 1, "a": {"b": 2}, "x/y": 3}))
    policy, warnings = compute_effective_policy(GW1, TIMEOUT, snapshot)
    assert warnings == []
    assert policy.to_dict()["provenance"] == {
        "/a.b": "TimeoutPolicy/default/labels",
        "/a/b": "TimeoutPolicy/default/labels",
        "/x~1y": "TimeoutPolicy/default/labels",
    }


def test_batch_without_policy_kind_groups_results_by_kind() -> None:
    snapshot = _snapshot(*_scenario_a(), _policy("access-gw", GW1, {"allow": ["a"]}, kind=ACCESS))
    batch = EffectivePolicyCalculator(snapshot).compute_batch([GW1, SVC1])
    assert [item.error for item in batch] == [None, None]
    assert set(batch[0].by_kind) == {"TimeoutPolicy.example.io", "AccessPolicy.example.io"}
    assert list(batch[1].by_kind) == ["TimeoutPolicy.example.io"]
    policy, _ = batch[1].results[0]
    assert policy.value.to_native() == {"timeout": 10, "retries": 3}
