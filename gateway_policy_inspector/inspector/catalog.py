"""Index of known policy kinds and the policy instances attached to resources."""

from __future__ import annotations

from collections import defaultdict

from gateway_policy_inspector.inspector.errors import (
    DuplicateCRDError,
    PolicyWarning,
    WarningCode,
)
from gateway_policy_inspector.inspector.models import (
    GroupKind,
    PolicyCRD,
    PolicyInstance,
    ResourceRef,
)
from gateway_policy_inspector.logging_utils import get_logger

LOGGER = get_logger()


class PolicyCatalog:
    """Policy CRD registry plus a target-reference index of policy instances."""

    def __init__(self) -> None:
        self._crds: dict[GroupKind, PolicyCRD] = {}
        self._by_target: dict[ResourceRef, list[PolicyInstance]] = defaultdict(list)
        self._by_key: dict[str, list[PolicyInstance]] = defaultdict(list)
        self.warnings: list[PolicyWarning] = []
        self._dropped: dict[ResourceRef, list[tuple[GroupKind, PolicyWarning]]] = defaultdict(list)

    def register_crd(self, crd: PolicyCRD) -> None:
        """Add a known policy kind; registering the same group/kind twice fails."""
        if crd.group_kind in self._crds:
            raise DuplicateCRDError(str(crd.group_kind))
        self._crds[crd.group_kind] = crd

    def register_instance(self, instance: PolicyInstance) -> PolicyWarning | None:
        """Index one instance by target; unknown kinds are dropped with a warning."""
        crd = self._crds.get(instance.group_kind)
        if crd is None:
            return self._drop(
                instance,
                f"policy kind {instance.group_kind} is not registered by any policy CRD",
            )
        if not crd.supports(instance.target.kind):
            return self._drop(
                instance,
                f"policy kind {instance.group_kind} cannot target {instance.target.kind.value}",
            )
        self._by_target[instance.target].append(instance)
        self._by_key[instance.ref.key].append(instance)
        return None

    def _drop(self, instance: PolicyInstance, reason: str) -> PolicyWarning:
        warning = PolicyWarning(
            code=WarningCode.UNKNOWN_POLICY_KIND,
            message=f"{reason}; ignoring {instance.ref}",
            subject=str(instance.ref),
        )
        LOGGER.warning("%s", warning)
        self.warnings.append(warning)
        self._dropped[instance.target].append((instance.group_kind, warning))
        return warning

    def record_warning(self, warning: PolicyWarning) -> None:
        """Keep a snapshot-level warning that has no hierarchy target."""
        self.warnings.append(warning)

    def dropped_warnings(
        self,
        ref: ResourceRef,
        group_kind: GroupKind | None = None,
    ) -> list[PolicyWarning]:
        """Return warnings for instances dropped while targeting ``ref``."""
        found = [
            warning
            for kind, warning in self._dropped.get(ref, [])
            if group_kind is None or kind == group_kind
        ]
        return sorted(found, key=lambda item: (item.subject, item.message))

    def policies_targeting(
        self,
        ref: ResourceRef,
        group_kind: GroupKind | None = None,
    ) -> list[PolicyInstance]:
        """Return instances attached to ``ref``, oldest first then by name."""
        found = self._by_target.get(ref, [])
        if group_kind is not None:
            found = [item for item in found if item.group_kind == group_kind]
        return sorted(found, key=_instance_order)

    def crd_for(self, group_kind: GroupKind) -> PolicyCRD | None:
        return self._crds.get(group_kind)

    def resolve_group_kind(self, value: str) -> GroupKind | None:
        """Resolve ``Kind`` or ``Kind.group`` text to a registered group/kind."""
        wanted = GroupKind.parse(value)
        if wanted in self._crds:
            return wanted
        if wanted.group:
            return None
        matches = sorted(gk for gk in self._crds if gk.kind.lower() == wanted.kind.lower())
        if len(matches) == 1:
            return matches[0]
        return None

    def crds(self) -> list[PolicyCRD]:
        return [self._crds[key] for key in sorted(self._crds)]

    def policies(self) -> list[PolicyInstance]:
        """Return every indexed instance in a stable order."""
        everything = [item for items in self._by_target.values() for item in items]
        return sorted(everything, key=lambda item: (item.ref, item.created_at))

    def get_policy(self, key: str) -> PolicyInstance | None:
        """Return the instance stored under ``namespace/name``.

        When several policy kinds share the key, the first by group/kind wins.
        """
        found = self._by_key.get(key)
        if not found:
            return None
        return min(found, key=lambda item: item.group_kind)


def _instance_order(instance: PolicyInstance) -> tuple[object, ...]:
    return (*instance.sort_key, instance.group_kind)
