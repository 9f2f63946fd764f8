"""Shared CLI objects and helpers for gwpi commands."""

from __future__ import annotations

# ruff: noqa: F401
from collections.abc import Callable, Sequence
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from rich.console import Console

from gateway_policy_inspector import __version__
from gateway_policy_inspector.inspector.cluster.manifests import ManifestClusterSource
from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot, build_snapshot
from gateway_policy_inspector.inspector.config import (
    CommandRequest,
    manifests_from_env,
    max_workers_from_env,
)
from gateway_policy_inspector.inspector.config_validation import validate_output_format
from gateway_policy_inspector.inspector.effective import EffectivePolicyCalculator
from gateway_policy_inspector.inspector.errors import ClusterAccessError, NotFoundError
from gateway_policy_inspector.inspector.models import Resource, ResourceKind
from gateway_policy_inspector.inspector.render import (
    describe_payload,
    httproutes_table,
    policies_table,
    policy_crds_table,
    policy_payload,
    print_describe,
    print_structured,
)
from gateway_policy_inspector.logging_utils import configure_logging, get_logger

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
LOGGER = get_logger()


class ResourceType(str, Enum):
    """Resource types accepted by ``describe`` and ``get``."""

    POLICY = "policies"
    POLICY_CRD = "policycrds"
    HTTP_ROUTE = "httproutes"
    GATEWAY = "gateways"
    GATEWAY_CLASS = "gatewayclasses"
    BACKEND = "backends"


RESOURCE_TYPE_ALIASES: dict[str, ResourceType] = {
    "policy": ResourceType.POLICY,
    "policies": ResourceType.POLICY,
    "policycrd": ResourceType.POLICY_CRD,
    "policycrds": ResourceType.POLICY_CRD,
    "httproute": ResourceType.HTTP_ROUTE,
    "httproutes": ResourceType.HTTP_ROUTE,
    "gateway": ResourceType.GATEWAY,
    "gateways": ResourceType.GATEWAY,
    "gatewayclass": ResourceType.GATEWAY_CLASS,
    "gatewayclasses": ResourceType.GATEWAY_CLASS,
    "backend": ResourceType.BACKEND,
    "backends": ResourceType.BACKEND,
}

HIERARCHY_KINDS: dict[ResourceType, ResourceKind] = {
    ResourceType.HTTP_ROUTE: ResourceKind.HTTP_ROUTE,
    ResourceType.GATEWAY: ResourceKind.GATEWAY,
    ResourceType.GATEWAY_CLASS: ResourceKind.GATEWAY_CLASS,
    ResourceType.BACKEND: ResourceKind.BACKEND,
}

Handler = Callable[[CommandRequest, str | None], None]

NamespaceOption = Annotated[
    str,
    typer.Option("--namespace", "-n", help="Namespace of the requested resources."),
]
AllNamespacesOption = Annotated[
    bool,
    typer.Option(
        "--all-namespaces",
        "-A",
        help="If present, list requested resources from all namespaces.",
    ),
]
OutputOption = Annotated[
    str,
    typer.Option("--output", "-o", help="Output format: table, json or yaml."),
]
ManifestsOption = Annotated[
    list[Path] | None,
    typer.Option(
        "--manifests",
        "-f",
        help="Manifest file or directory forming the cluster snapshot (repeatable).",
    ),
]


def parse_resource_type(value: str) -> ResourceType | None:
    """Map a singular or plural resource-type argument to its variant."""
    return RESOURCE_TYPE_ALIASES.get(value.strip().lower())


def _version_callback(value: bool) -> None:
    """Print package version and exit when requested."""
    if value:
        console.print(__version__)
        raise typer.Exit()


def _fail(message: str) -> NoReturn:
    """Write a one-line error to stderr and exit non-zero."""
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


def _build_request(
    *,
    manifests: Sequence[Path] | None,
    namespace: str,
    all_namespaces: bool,
    output: str,
    policy_kind: str | None = None,
    union_parents: bool = False,
) -> CommandRequest:
    """Validate CLI options into one request value; invalid options exit 1."""
    try:
        return CommandRequest(
            manifests=tuple(manifests) if manifests else manifests_from_env(),
            namespace=namespace,
            all_namespaces=all_namespaces,
            parent_mode="union" if union_parents else "per-parent",
            output_format=validate_output_format(output),
            policy_kind=policy_kind,
            max_workers=max_workers_from_env(),
        )
    except ValueError as exc:
        _fail(f"invalid options: {exc}")


def _run_handler(handler: Handler, request: CommandRequest, name: str | None) -> None:
    """Run one command handler, turning fatal errors into exit code 1."""
    try:
        handler(request, name)
    except NotFoundError as exc:
        _fail(f"failed to get resource: {exc}")
    except ClusterAccessError as exc:
        _fail(f"failed to read cluster snapshot: {exc}")
    except ValueError as exc:
        _fail(str(exc))


def _load_snapshot(request: CommandRequest) -> tuple[ManifestClusterSource, ClusterSnapshot]:
    """Read the cluster snapshot for this invocation."""
    source = ManifestClusterSource(list(request.manifests))
    return source, build_snapshot(source)


def _select_resources(
    source: ManifestClusterSource,
    kind: ResourceKind,
    request: CommandRequest,
    name: str | None,
) -> list[Resource]:
    """List resources, or fetch one by name, honoring the namespace options."""
    namespace = request.effective_namespace
    if name is None:
        return source.list_resources(kind, namespace)
    if namespace or kind.cluster_scoped:
        return [source.get_resource(kind, namespace, name)]
    matches = [item for item in source.list_resources(kind, "") if item.ref.name == name]
    if not matches:
        raise NotFoundError(kind.value, "", name)
    return matches


__all__ = [name for name in globals() if not name.startswith("__")]
