"""Shared manifest fixtures for policy inspector tests."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

CLUSTER_MANIFEST = """\
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: timeoutpolicies.example.io
  labels:
    gateway.networking.k8s.io/policy: inherited
spec:
  group: example.io
  names:
    kind: TimeoutPolicy
---
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: accesspolicies.example.io
  labels:
    gateway.networking.k8s.io/policy: direct
  annotations:
    gateway.networking.k8s.io/policy-target-kinds: Gateway,HTTPRoute
spec:
  group: example.io
  names:
    kind: AccessPolicy
---
apiVersion: apiextensions.k8s.io/v1
kind: CustomResourceDefinition
metadata:
  name: widgets.example.io
spec:
  group: example.io
  names:
    kind: Widget
---
apiVersion: gateway.networking.k8s.io/v1
kind: GatewayClass
metadata:
  name: gc1
spec:
  controllerName: example.io/gateway-controller
---
apiVersion: gateway.networking.k8s.io/v1
kind: Gateway
metadata:
  name: gw1
  namespace: default
spec:
  gatewayClassName: gc1
---
apiVersion: gateway.networking.k8s.io/v1
kind: HTTPRoute
metadata:
  name: r1
  namespace: default
  creationTimestamp: "2024-01-02T00:00:00Z"
spec:
  hostnames:
    - shop.example.com
  parentRefs:
    - name: gw1
  rules:
    - backendRefs:
        - name: svc1
          port: 8080
---
apiVersion: v1
kind: Service
metadata:
  name: svc1
  namespace: default
spec:
  ports:
    - port: 8080
"""

POLICY_MANIFEST = """\
apiVersion: v1
kind: List
items:
  - apiVersion: example.io/v1alpha1
    kind: TimeoutPolicy
    metadata:
      name: policy-a
      creationTimestamp: "2024-01-01T00:00:00Z"
    spec:
      targetRef:
        group: gateway.networking.k8s.io
        kind: GatewayClass
        name: gc1
      timeout: 30
  - apiVersion: example.io/v1alpha1
    kind: TimeoutPolicy
    metadata:
      name: policy-b
      namespace: default
      creationTimestamp: "2024-01-01T00:00:00Z"
    spec:
      targetRef:
        group: gateway.networking.k8s.io
        kind: Gateway
        name: gw1
      timeout: 10
      retries: 3
  - apiVersion: example.io/v1alpha1
    kind: AccessPolicy
    metadata:
      name: access-gw
      namespace: default
    spec:
      targetRef:
        group: gateway.networking.k8s.io
        kind: Gateway
        name: gw1
      allow:
        - a
"""


@pytest.fixture()
def manifest_dir(tmp_path: Path) -> Path:
    """Write a small cluster (one chain GatewayClass -> Gateway -> HTTPRoute -> Service)."""
    root = tmp_path / "cluster"
    (root / "policies").mkdir(parents=True)
    (root / "cluster.yaml").write_text(CLUSTER_MANIFEST, encoding="utf-8")
    (root / "policies" / "policies.yml").write_text(POLICY_MANIFEST, encoding="utf-8")
    (root / "README.md").write_text("not a manifest\n", encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def _reset_gwpi_logger() -> Iterator[None]:
    """Drop handlers a CLI invocation bound to streams that no longer exist."""
    yield
    logger = logging.getLogger("gwpi")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
