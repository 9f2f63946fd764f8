"""Table and describe views for resources, policies and effective policies."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table
from rich.text import Text

from gateway_policy_inspector.inspector.catalog import PolicyCatalog
from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot
from gateway_policy_inspector.inspector.effective import Result
from gateway_policy_inspector.inspector.hierarchy import ResourceGraph
from gateway_policy_inspector.inspector.models import (
    EPOCH,
    PolicyCRD,
    PolicyInstance,
    Resource,
    ResourceKind,
    ResourceRef,
)
from gateway_policy_inspector.inspector.values import FieldPath, parse_pointer


def _timestamp(value: Any) -> str:
    return "-" if value == EPOCH else value.isoformat()


def _policy_type(crd: PolicyCRD | None) -> str:
    if crd is None:
        return "Unknown"
    return "Inherited" if crd.inheritable else "Direct"


def result_payload(result: Result) -> dict[str, Any]:
    """Serialize one effective policy result with its warnings."""
    policy, warnings = result
    payload = policy.to_dict()
    payload["warnings"] = [warning.to_dict() for warning in warnings]
    return payload


def policy_payload(instance: PolicyInstance, catalog: PolicyCatalog) -> dict[str, Any]:
    """Serialize one policy instance for the describe view."""
    crd = catalog.crd_for(instance.group_kind)
    return {
        "name": instance.name,
        "namespace": instance.namespace,
        "group": instance.group_kind.group,
        "kind": instance.group_kind.kind,
        "policyType": _policy_type(crd),
        "createdAt": _timestamp(instance.created_at),
        "targetRef": {
            "kind": instance.target.kind.value,
            "namespace": instance.target.namespace,
            "name": instance.target.name,
        },
        "spec": instance.spec.to_native(),
    }


def _attributes(resource: Resource, graph: ResourceGraph) -> dict[str, Any]:
    ref = resource.ref
    if ref.kind is ResourceKind.GATEWAY_CLASS:
        return {
            "controllerName": resource.spec.get("controllerName"),
            "gateways": [str(child) for child in graph.children_of(ref)],
        }
    if ref.kind is ResourceKind.GATEWAY:
        return {
            "gatewayClassName": resource.spec.get("gatewayClassName"),
            "httpRoutes": [
                str(child)
                for child in graph.children_of(ref)
                if child.kind is ResourceKind.HTTP_ROUTE
            ],
        }
    if ref.kind is ResourceKind.HTTP_ROUTE:
        return {
            "hostnames": list(resource.spec.get("hostnames") or []),
            "parentRefs": [str(parent) for parent in graph.parents_of(ref)],
            "backends": [str(child) for child in graph.children_of(ref)],
        }
    return {"referencedBy": [str(parent) for parent in graph.parents_of(ref)]}


def describe_payload(
    resource: Resource,
    snapshot: ClusterSnapshot,
    effective: Mapping[str, Sequence[Result]],
) -> dict[str, Any]:
    """Build the describe view of one hierarchy resource.

    ``effective`` maps a policy kind name to its per-parent (or union) results.
    Policies dropped while targeting the resource are listed separately since
    they never reach any result.
    """
    ref = resource.ref
    return {
        "kind": ref.kind.value,
        "namespace": ref.namespace,
        "name": ref.name,
        "createdAt": _timestamp(resource.created_at),
        "labels": dict(resource.labels),
        **_attributes(resource, snapshot.graph),
        "directlyAttachedPolicies": [
            str(instance.ref) for instance in snapshot.catalog.policies_targeting(ref)
        ],
        "droppedPolicies": [
            warning.to_dict() for warning in snapshot.catalog.dropped_warnings(ref)
        ],
        "effectivePolicies": {
            kind: [result_payload(result) for result in results]
            for kind, results in effective.items()
        },
    }


def print_structured(console: Console, payload: Any, output_format: str) -> None:
    """Print a JSON or YAML document."""
    if output_format == "json":
        console.print_json(json.dumps(payload))
        return
    console.print(
        yaml.safe_dump(payload, sort_keys=False).rstrip(),
        soft_wrap=True,
        markup=False,
        emoji=False,
        highlight=False,
    )


def print_describe(console: Console, payloads: Iterable[Mapping[str, Any]]) -> None:
    """Print describe views as one table per resource.

    Every cell built from cluster data is a ``Text`` so brackets in policy
    values are never parsed as console markup.
    """
    for payload in payloads:
        table = Table(
            title=Text(f"{payload['kind']} {_display_name(payload)}"),
            show_header=False,
        )
        table.add_column("Field")
        table.add_column("Value")
        for key, value in payload.items():
            if key in {"kind", "effectivePolicies", "spec", "droppedPolicies"}:
                continue
            table.add_row(Text(key), Text(_format_cell(value)))
        if "spec" in payload:
            table.add_row("spec", Text(yaml.safe_dump(payload["spec"], sort_keys=False).rstrip()))
        for warning in payload.get("droppedPolicies", []):
            table.add_row(Text(warning["code"], style="yellow"), Text(warning["message"]))
        console.print(table)
        for kind, results in payload.get("effectivePolicies", {}).items():
            for result in results:
                console.print(_effective_table(kind, result))


def _display_name(payload: Mapping[str, Any]) -> str:
    if payload.get("namespace"):
        return f"{payload['namespace']}/{payload['name']}"
    return str(payload["name"])


def _format_cell(value: Any) -> str:
    if isinstance(value, list):
        return "\n".join(str(item) for item in value) or "-"
    if isinstance(value, Mapping):
        return "\n".join(f"{key}={item}" for key, item in value.items()) or "-"
    return "-" if value is None or value == "" else str(value)


def _effective_table(kind: str, result: Mapping[str, Any]) -> Table:
    ancestry = "; ".join(result["ancestry"])
    table = Table(title=Text(f"Effective {kind} ({ancestry})"))
    table.add_column("Field")
    table.add_column("Value")
    table.add_column("Source")
    provenance = result["provenance"]
    for pointer, source in provenance.items():
        table.add_row(
            Text(pointer or "/"),
            Text(json.dumps(_lookup(result["value"], parse_pointer(pointer)))),
            Text(source),
        )
    if not provenance:
        table.add_row("-", "{}", "-")
    for warning in result["warnings"]:
        table.add_row(
            Text(warning.get("path", "-")),
            Text(warning["code"], style="yellow"),
            Text(warning["message"]),
        )
    return table


def _lookup(value: Any, path: FieldPath) -> Any:
    node = value
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def policies_table(policies: Iterable[PolicyInstance], catalog: PolicyCatalog) -> Table:
    """Build the ``get policies`` listing."""
    table = Table(title="Policies")
    for column in ("NAMESPACE", "NAME", "KIND", "TARGET KIND", "TARGET NAME", "POLICY TYPE"):
        table.add_column(column)
    for policy in policies:
        _add_text_row(
            table,
            policy.namespace or "-",
            policy.name,
            str(policy.group_kind),
            policy.target.kind.value,
            _ref_name(policy.target),
            _policy_type(catalog.crd_for(policy.group_kind)),
        )
    return table


def policy_crds_table(crds: Iterable[PolicyCRD]) -> Table:
    """Build the ``get policycrds`` listing."""
    table = Table(title="Policy CRDs")
    for column in ("NAME", "GROUP", "KIND", "POLICY TYPE", "TARGET KINDS"):
        table.add_column(column)
    for crd in crds:
        _add_text_row(
            table,
            crd.name or "-",
            crd.group_kind.group or "-",
            crd.group_kind.kind,
            _policy_type(crd),
            ", ".join(sorted(kind.value for kind in crd.target_kinds)),
        )
    return table


def httproutes_table(routes: Iterable[Resource], graph: ResourceGraph) -> Table:
    """Build the ``get httproutes`` listing."""
    table = Table(title="HTTPRoutes")
    for column in ("NAMESPACE", "NAME", "HOSTNAMES", "PARENT REFS", "CREATED"):
        table.add_column(column)
    for route in routes:
        hostnames = route.spec.get("hostnames") or []
        _add_text_row(
            table,
            route.ref.namespace,
            route.ref.name,
            ", ".join(str(item) for item in hostnames) or "-",
            str(len(graph.parents_of(route.ref))),
            _timestamp(route.created_at),
        )
    return table


def _ref_name(ref: ResourceRef) -> str:
    return f"{ref.namespace}/{ref.name}" if ref.namespace else ref.name


def _add_text_row(table: Table, *cells: str) -> None:
    table.add_row(*(Text(cell) for cell in cells))
