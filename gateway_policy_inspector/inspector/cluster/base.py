"""Cluster access abstractions consumed by the policy inspector."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gateway_policy_inspector.inspector.errors import PolicyWarning
from gateway_policy_inspector.inspector.models import (
    PolicyCRD,
    PolicyInstance,
    Resource,
    ResourceKind,
)


class ClusterSource(ABC):
    """Read-only source of Gateway API resources and policy objects.

    Implementations raise ``ClusterAccessError`` when the backing store cannot
    be read; callers treat that as fatal for the current command.
    """

    @abstractmethod
    def list_resources(self, kind: ResourceKind, namespace: str = "") -> list[Resource]:
        """List resources of one kind; an empty namespace means all namespaces."""

    @abstractmethod
    def get_resource(self, kind: ResourceKind, namespace: str, name: str) -> Resource:
        """Return one resource or raise ``NotFoundError``."""

    @abstractmethod
    def list_policy_crds(self) -> list[PolicyCRD]:
        """List known policy kinds."""

    @abstractmethod
    def list_policy_instances(self) -> list[PolicyInstance]:
        """List policy objects of every known policy kind."""

    def list_warnings(self) -> list[PolicyWarning]:
        """Return non-fatal problems found while reading policy objects."""
        return []
