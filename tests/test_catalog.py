"""Tests for the policy catalog index."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gateway_policy_inspector.inspector.catalog import PolicyCatalog
from gateway_policy_inspector.inspector.errors import DuplicateCRDError, WarningCode
from gateway_policy_inspector.inspector.models import (
    GroupKind,
    InheritanceScope,
    PolicyCRD,
    PolicyInstance,
    ResourceKind,
    ResourceRef,
)
from gateway_policy_inspector.inspector.values import PolicyValue

TIMEOUT = GroupKind("example.io", "TimeoutPolicy")
ACCESS = GroupKind("example.io", "AccessPolicy")
GW1 = ResourceRef.of(ResourceKind.GATEWAY, "default", "gw1")
R1 = ResourceRef.of(ResourceKind.HTTP_ROUTE, "default", "r1")


def _crd(group_kind: GroupKind, *targets: ResourceKind) -> PolicyCRD:
    return PolicyCRD(
        group_kind=group_kind,
        target_kinds=frozenset(targets or ResourceKind),
        inheritance_scope=InheritanceScope.INHERITABLE,
    )


def _policy(
    name: str,
    target: ResourceRef,
    *,
    kind: GroupKind = TIMEOUT,
    day: int = 1,
) -> PolicyInstance:
    return PolicyInstance(
        group_kind=kind,
        namespace="default",
        name=name,
        target=target,
        created_at=datetime(2024, 1, day, tzinfo=UTC),
        spec=PolicyValue.from_native({"timeout": day}),
    )


def test_duplicate_crd_registration_fails() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT))
    with pytest.raises(DuplicateCRDError):
        catalog.register_crd(_crd(TIMEOUT, ResourceKind.GATEWAY))


def test_unknown_policy_kind_is_dropped_with_warning() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT))
    warning = catalog.register_instance(_policy("stray", GW1, kind=ACCESS))
    assert warning is not None
    assert warning.code is WarningCode.UNKNOWN_POLICY_KIND
    assert catalog.policies_targeting(GW1) == []
    assert catalog.warnings == [warning]


def test_unsupported_target_kind_is_dropped() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT, ResourceKind.GATEWAY))
    assert catalog.register_instance(_policy("on-route", R1)) is not None
    assert catalog.register_instance(_policy("on-gateway", GW1)) is None
    assert [item.name for item in catalog.policies()] == ["on-gateway"]


def test_policies_targeting_orders_oldest_then_by_name() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT))
    catalog.register_crd(_crd(ACCESS))
    for instance in (
        _policy("newest", GW1, day=3),
        _policy("beta", GW1, day=1),
        _policy("alpha", GW1, day=1),
        _policy("access", GW1, kind=ACCESS, day=2),
    ):
        catalog.register_instance(instance)

    assert [item.name for item in catalog.policies_targeting(GW1)] == [
        "alpha",
        "beta",
        "access",
        "newest",
    ]
    assert [item.name for item in catalog.policies_targeting(GW1, TIMEOUT)] == [
        "alpha",
        "beta",
        "newest",
    ]
    assert catalog.policies_targeting(R1) == []


def test_lookup_helpers() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT))
    catalog.register_instance(_policy("policy-a", GW1))

    assert catalog.crd_for(TIMEOUT) is not None
    assert catalog.crd_for(ACCESS) is None
    assert catalog.resolve_group_kind("TimeoutPolicy") == TIMEOUT
    assert catalog.resolve_group_kind("timeoutpolicy") == TIMEOUT
    assert catalog.resolve_group_kind("TimeoutPolicy.example.io") == TIMEOUT
    assert catalog.resolve_group_kind("TimeoutPolicy.other.io") is None
    assert catalog.resolve_group_kind("Missing") is None
    found = catalog.get_policy("default/policy-a")
    assert found is not None and found.name == "policy-a"
    assert catalog.get_policy("/policy-a") is None


def test_dropped_warnings_are_indexed_by_target() -> None:
    catalog = PolicyCatalog()
    catalog.register_crd(_crd(TIMEOUT, ResourceKind.GATEWAY))
    on_route = catalog.register_instance(_policy("on-route", R1))
    stray = catalog.register_instance(_policy("stray", R1, kind=ACCESS))
    assert catalog.dropped_warnings(R1) == [stray, on_route]
    assert catalog.dropped_warnings(R1, TIMEOUT) == [on_route]
    assert catalog.dropped_warnings(GW1) == []
