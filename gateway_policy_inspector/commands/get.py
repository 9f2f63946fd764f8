"""``get`` command: tabular listings of policies, policy CRDs and routes."""

from __future__ import annotations

# mypy: ignore-errors
# ruff: noqa: B008,F403,F405,I001
from gateway_policy_inspector.commands.common import *


def _get_policies(request: CommandRequest, name: str | None) -> None:
    _, snapshot = _load_snapshot(request)
    policies = snapshot.catalog.policies()
    if request.output_format == "table":
        console.print(policies_table(policies, snapshot.catalog))
    else:
        payloads = [policy_payload(policy, snapshot.catalog) for policy in policies]
        print_structured(console, payloads, request.output_format)


def _get_policy_crds(request: CommandRequest, name: str | None) -> None:
    _, snapshot = _load_snapshot(request)
    crds = snapshot.catalog.crds()
    if request.output_format == "table":
        console.print(policy_crds_table(crds))
        return
    payloads = [
        {
            "name": crd.name,
            "group": crd.group_kind.group,
            "kind": crd.group_kind.kind,
            "inheritanceScope": crd.inheritance_scope.value,
            "targetKinds": sorted(kind.value for kind in crd.target_kinds),
        }
        for crd in crds
    ]
    print_structured(console, payloads, request.output_format)


def _get_httproutes(request: CommandRequest, name: str | None) -> None:
    source, snapshot = _load_snapshot(request)
    routes = source.list_resources(ResourceKind.HTTP_ROUTE, request.effective_namespace)
    if request.output_format == "table":
        console.print(httproutes_table(routes, snapshot.graph))
        return
    payloads = [
        {
            "namespace": route.ref.namespace,
            "name": route.ref.name,
            "hostnames": list(route.spec.get("hostnames") or []),
            "parentRefs": [str(parent) for parent in snapshot.graph.parents_of(route.ref)],
        }
        for route in routes
    ]
    print_structured(console, payloads, request.output_format)


GET_HANDLERS: dict[ResourceType, Handler] = {
    ResourceType.POLICY: _get_policies,
    ResourceType.POLICY_CRD: _get_policy_crds,
    ResourceType.HTTP_ROUTE: _get_httproutes,
}


@app.command("get")
def get(
    resource_type: Annotated[
        str,
        typer.Argument(
            metavar="{policies|policycrds|httproutes}",
            help="Type of resource to list.",
        ),
    ],
    namespace: NamespaceOption = "default",
    all_namespaces: AllNamespacesOption = False,
    output: OutputOption = "table",
    manifests: ManifestsOption = None,
) -> None:
    """Display one or many resources."""
    request = _build_request(
        manifests=manifests,
        namespace=namespace,
        all_namespaces=all_namespaces,
        output=output,
    )
    resource = parse_resource_type(resource_type)
    handler = GET_HANDLERS.get(resource) if resource is not None else None
    if handler is None:
        _fail("Unrecognized RESOURCE_TYPE")
    _run_handler(handler, request, None)
