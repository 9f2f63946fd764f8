"""Cluster source backed by Kubernetes manifest files."""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

import yaml

from gateway_policy_inspector.inspector.cluster.base import ClusterSource
from gateway_policy_inspector.inspector.errors import (
    ClusterAccessError,
    NotFoundError,
    PolicyWarning,
    WarningCode,
)
from gateway_policy_inspector.inspector.models import (
    GroupKind,
    InheritanceScope,
    PolicyCRD,
    PolicyInstance,
    Resource,
    ResourceKind,
    ResourceRef,
    parse_timestamp,
)
from gateway_policy_inspector.inspector.values import PolicyValue
from gateway_policy_inspector.logging_utils import get_logger

LOGGER = get_logger()

POLICY_LABEL = "gateway.networking.k8s.io/policy"
POLICY_TARGET_KINDS_ANNOTATION = "gateway.networking.k8s.io/policy-target-kinds"
MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")


class DuplicateKeyError(ValueError):
    """Raised when duplicate keys are found in manifest YAML."""

    def __init__(self, key: str) -> None:
        super().__init__(f"duplicate key: {key}")
        self.key = key


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate keys."""

    def construct_mapping(self, node: Any, deep: bool = False) -> dict[Hashable, Any]:
        mapping: dict[Hashable, Any] = {}
        for key_node, value_node in node.value:
            key = self.construct_object(key_node, deep=deep)  # type: ignore[no-untyped-call]
            if key in mapping:
                raise DuplicateKeyError(str(key))
            mapping[key] = self.construct_object(  # type: ignore[no-untyped-call]
                value_node,
                deep=deep,
            )
        return mapping


class ManifestClusterSource(ClusterSource):
    """Serve resources and policies from YAML manifests on disk.

    Files are read once, on first access, so every query within one command
    sees the same snapshot.
    """

    def __init__(self, paths: Sequence[Path]) -> None:
        self.paths = [path.expanduser() for path in paths]
        self._resources: list[Resource] | None = None
        self._crds: list[PolicyCRD] = []
        self._instances: list[PolicyInstance] = []
        self._warnings: list[PolicyWarning] = []

    def list_resources(self, kind: ResourceKind, namespace: str = "") -> list[Resource]:
        return [
            resource
            for resource in self._load()
            if resource.ref.kind is kind
            and (not namespace or kind.cluster_scoped or resource.ref.namespace == namespace)
        ]

    def get_resource(self, kind: ResourceKind, namespace: str, name: str) -> Resource:
        wanted = ResourceRef.of(kind, namespace, name)
        for resource in self.list_resources(kind, wanted.namespace):
            if resource.ref == wanted:
                return resource
        raise NotFoundError(kind.value, wanted.namespace, name)

    def list_policy_crds(self) -> list[PolicyCRD]:
        self._load()
        return list(self._crds)

    def list_policy_instances(self) -> list[PolicyInstance]:
        self._load()
        return list(self._instances)

    def list_warnings(self) -> list[PolicyWarning]:
        self._load()
        return list(self._warnings)

    def _load(self) -> list[Resource]:
        if self._resources is not None:
            return self._resources
        documents: list[tuple[Path, Mapping[str, Any]]] = []
        for path in _manifest_files(self.paths):
            documents.extend((path, item) for item in _read_documents(path))

        resources: list[Resource] = []
        for path, document in documents:
            try:
                crd = _parse_policy_crd(document)
                if crd is not None:
                    self._crds.append(crd)
                    continue
                resource = _parse_resource(document)
                if resource is not None:
                    resources.append(resource)
                    continue
                instance = _parse_policy_instance(document)
                if isinstance(instance, PolicyWarning):
                    self._warnings.append(instance)
                elif instance is not None:
                    self._instances.append(instance)
            except ValueError as exc:
                raise ClusterAccessError(f"{path}: {exc}") from exc
        self._resources = resources
        LOGGER.debug("Read %d manifest documents from %d path(s)", len(documents), len(self.paths))
        return resources


def _manifest_files(paths: Iterable[Path]) -> list[Path]:
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                sorted(
                    candidate
                    for candidate in path.rglob("*")
                    if candidate.is_file() and candidate.suffix in MANIFEST_SUFFIXES
                )
            )
        elif path.is_file():
            files.append(path)
        else:
            raise ClusterAccessError(f"manifest path not found: {path}")
    return files


def _read_documents(path: Path) -> list[Mapping[str, Any]]:
    try:
        text = path.read_text(encoding="utf-8")
        loaded = list(yaml.load_all(text, Loader=UniqueKeyLoader))  # nosec B506
    except (OSError, yaml.YAMLError, DuplicateKeyError) as exc:
        raise ClusterAccessError(f"failed to read {path}: {exc}") from exc
    documents: list[Mapping[str, Any]] = []
    for item in loaded:
        if not isinstance(item, Mapping):
            continue
        if str(item.get("kind", "")).endswith("List"):
            documents.extend(obj for obj in item.get("items") or [] if isinstance(obj, Mapping))
        else:
            documents.append(item)
    return documents


def _group_of(document: Mapping[str, Any]) -> str:
    api_version = str(document.get("apiVersion", ""))
    group, slash, _ = api_version.partition("/")
    return group if slash else ""


def _metadata(document: Mapping[str, Any]) -> Mapping[str, Any]:
    metadata = document.get("metadata")
    if not isinstance(metadata, Mapping):
        raise ValueError(f"{document.get('kind')} object is missing metadata.")
    name = metadata.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValueError(f"Expected '{document.get('kind')}.metadata.name' to be non-empty.")
    return metadata


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    return {str(key): str(item) for key, item in value.items()}


def _parse_resource(document: Mapping[str, Any]) -> Resource | None:
    kind = ResourceKind.from_kind(str(document.get("kind", "")))
    if kind is None or _group_of(document) != kind.group:
        return None
    metadata = _metadata(document)
    spec = document.get("spec")
    return Resource(
        ref=ResourceRef.of(kind, str(metadata.get("namespace") or "default"), metadata["name"]),
        spec=spec if isinstance(spec, Mapping) else {},
        created_at=parse_timestamp(metadata.get("creationTimestamp"), "creationTimestamp"),
        labels=_string_map(metadata.get("labels")),
    )


def _parse_policy_crd(document: Mapping[str, Any]) -> PolicyCRD | None:
    if document.get("kind") != "CustomResourceDefinition":
        return None
    metadata = _metadata(document)
    labels = _string_map(metadata.get("labels"))
    if POLICY_LABEL not in labels:
        return None
    spec = document.get("spec")
    if not isinstance(spec, Mapping):
        raise ValueError(f"CustomResourceDefinition '{metadata['name']}' is missing spec.")
    names = spec.get("names")
    kind = names.get("kind") if isinstance(names, Mapping) else None
    if not isinstance(kind, str) or not kind:
        raise ValueError(f"Expected '{metadata['name']}.spec.names.kind' to be non-empty.")
    annotations = _string_map(metadata.get("annotations"))
    return PolicyCRD(
        group_kind=GroupKind(group=str(spec.get("group", "")), kind=kind),
        target_kinds=_target_kinds(annotations.get(POLICY_TARGET_KINDS_ANNOTATION)),
        inheritance_scope=InheritanceScope.from_label(labels[POLICY_LABEL]),
        name=str(metadata["name"]),
    )


def _target_kinds(raw: str | None) -> frozenset[ResourceKind]:
    if raw is None:
        return frozenset(ResourceKind)
    kinds: set[ResourceKind] = set()
    for item in raw.split(","):
        cleaned = item.strip()
        if not cleaned:
            continue
        kind = ResourceKind.from_kind(cleaned)
        if kind is None:
            LOGGER.warning("Ignoring unsupported policy target kind '%s'", cleaned)
            continue
        kinds.add(kind)
    return frozenset(kinds)


def _parse_policy_instance(
    document: Mapping[str, Any],
) -> PolicyInstance | PolicyWarning | None:
    """Parse a policy object, or describe why its targetRef cannot be followed."""
    spec = document.get("spec")
    if not isinstance(spec, Mapping) or not isinstance(spec.get("targetRef"), Mapping):
        return None
    metadata = _metadata(document)
    namespace = str(metadata.get("namespace") or "")
    target_ref = spec["targetRef"]
    target_kind = ResourceKind.from_kind(str(target_ref.get("kind", "")))
    target_name = target_ref.get("name")
    if target_kind is None or not isinstance(target_name, str) or not target_name:
        parts = (str(document.get("kind", "")), namespace, str(metadata["name"]))
        subject = "/".join(part for part in parts if part)
        warning = PolicyWarning(
            code=WarningCode.UNKNOWN_POLICY_KIND,
            message=f"unsupported targetRef {dict(target_ref)}; ignoring {subject}",
            subject=subject,
        )
        LOGGER.warning("%s", warning)
        return warning
    target_namespace = str(target_ref.get("namespace") or namespace or "default")
    fields = {key: value for key, value in spec.items() if key != "targetRef"}
    return PolicyInstance(
        group_kind=GroupKind(group=_group_of(document), kind=str(document.get("kind", ""))),
        namespace=namespace,
        name=str(metadata["name"]),
        target=ResourceRef.of(target_kind, target_namespace, target_name),
        created_at=parse_timestamp(metadata.get("creationTimestamp"), "creationTimestamp"),
        spec=PolicyValue.from_native(fields, "spec"),
    )

