"""Cluster access collaborators."""

from gateway_policy_inspector.inspector.cluster.base import ClusterSource
from gateway_policy_inspector.inspector.cluster.manifests import ManifestClusterSource
from gateway_policy_inspector.inspector.cluster.snapshot import ClusterSnapshot, build_snapshot

__all__ = ["ClusterSnapshot", "ClusterSource", "ManifestClusterSource", "build_snapshot"]
