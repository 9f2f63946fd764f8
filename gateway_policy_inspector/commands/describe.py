"""``describe`` command: resource details with effective policies."""

from __future__ import annotations

# mypy: ignore-errors
# ruff: noqa: B008,F403,F405,I001
from gateway_policy_inspector.commands.common import *


def _describe_policies(request: CommandRequest, name: str | None) -> None:
    """Describe all policies, or one policy looked up by ``namespace/name``."""
    _, snapshot = _load_snapshot(request)
    catalog = snapshot.catalog
    if name is None:
        policies = catalog.policies()
    elif request.all_namespaces:
        policies = [policy for policy in catalog.policies() if policy.name == name]
        if not policies:
            raise NotFoundError("Policy", "", name)
    else:
        namespace = request.effective_namespace
        policy = catalog.get_policy(f"{namespace}/{name}")
        if policy is None and namespace == "default":
            policy = catalog.get_policy(f"/{name}")
        if policy is None:
            raise NotFoundError("Policy", namespace, name)
        policies = [policy]
    payloads = [policy_payload(policy, catalog) for policy in policies]
    _emit(request, payloads)


def _describe_hierarchy(kind: ResourceKind) -> Handler:
    """Build the describe handler for one hierarchy resource kind."""

    def handler(request: CommandRequest, name: str | None) -> None:
        source, snapshot = _load_snapshot(request)
        resources = _select_resources(source, kind, request, name)
        LOGGER.info("Describing %d %s resource(s)", len(resources), kind.value)
        batch = EffectivePolicyCalculator(snapshot).compute_batch(
            [resource.ref for resource in resources],
            request.policy_kind,
            max_workers=request.max_workers,
            union_parents=request.union_parents,
        )
        payloads = []
        for resource, item in zip(resources, batch, strict=True):
            if item.error is not None:
                raise item.error
            payloads.append(describe_payload(resource, snapshot, item.by_kind))
        _emit(request, payloads)

    return handler


def _emit(request: CommandRequest, payloads: list[dict[str, Any]]) -> None:
    if request.output_format == "table":
        print_describe(console, payloads)
    else:
        print_structured(console, payloads, request.output_format)


DESCRIBE_HANDLERS: dict[ResourceType, Handler] = {
    ResourceType.POLICY: _describe_policies,
    **{
        resource_type: _describe_hierarchy(kind)
        for resource_type, kind in HIERARCHY_KINDS.items()
    },
}


@app.command("describe")
def describe(
    resource_type: Annotated[
        str,
        typer.Argument(
            metavar="{policies|httproutes|gateways|gatewayclasses|backends}",
            help="Type of resource to describe.",
        ),
    ],
    name: Annotated[
        str | None,
        typer.Argument(metavar="RESOURCE_NAME", help="Optional resource name."),
    ] = None,
    namespace: NamespaceOption = "default",
    all_namespaces: AllNamespacesOption = False,
    policy_kind: Annotated[
        str | None,
        typer.Option("--policy-kind", help="Only compute this policy kind (Kind or Kind.group)."),
    ] = None,
    union_parents: Annotated[
        bool,
        typer.Option(
            "--union-parents",
            help="Merge effective policies across all parent chains instead of per parent.",
        ),
    ] = False,
    output: OutputOption = "table",
    manifests: ManifestsOption = None,
) -> None:
    """Show details of a specific resource or group of resources."""
    request = _build_request(
        manifests=manifests,
        namespace=namespace,
        all_namespaces=all_namespaces,
        output=output,
        policy_kind=policy_kind,
        union_parents=union_parents,
    )
    resource = parse_resource_type(resource_type)
    handler = DESCRIBE_HANDLERS.get(resource) if resource is not None else None
    if handler is None:
        _fail("Unrecognized RESOURCE_TYPE")
    _run_handler(handler, request, name)
