"""Per-invocation request configuration."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from gateway_policy_inspector.inspector.config_validation import (
    require_positive_int,
    validate_output_format,
    validate_parent_mode,
)

GWPI_MANIFESTS_ENV = "GWPI_MANIFESTS"
GWPI_MAX_WORKERS_ENV = "GWPI_MAX_WORKERS"
DEFAULT_NAMESPACE = "default"
DEFAULT_MAX_WORKERS = 4


@dataclass(frozen=True)
class CommandRequest:
    """Options of one command invocation, built once and passed down."""

    manifests: tuple[Path, ...]
    namespace: str = DEFAULT_NAMESPACE
    all_namespaces: bool = False
    parent_mode: str = "per-parent"
    output_format: str = "table"
    policy_kind: str | None = None
    max_workers: int = DEFAULT_MAX_WORKERS

    def __post_init__(self) -> None:
        validate_parent_mode(self.parent_mode)
        validate_output_format(self.output_format)
        require_positive_int(self.max_workers, "max_workers")
        if not self.manifests:
            raise ValueError(
                f"No manifests given; pass --manifests or set {GWPI_MANIFESTS_ENV}."
            )

    @property
    def effective_namespace(self) -> str:
        """Namespace filter for listings; empty means all namespaces."""
        return "" if self.all_namespaces else self.namespace

    @property
    def union_parents(self) -> bool:
        return self.parent_mode == "union"


def manifests_from_env(environ: Mapping[str, str] | None = None) -> tuple[Path, ...]:
    """Resolve manifest paths from the environment."""
    env = os.environ if environ is None else environ
    raw = env.get(GWPI_MANIFESTS_ENV, "")
    return tuple(Path(item) for item in raw.split(os.pathsep) if item.strip())


def max_workers_from_env(environ: Mapping[str, str] | None = None) -> int:
    """Resolve batch worker count from the environment."""
    env = os.environ if environ is None else environ
    raw = env.get(GWPI_MAX_WORKERS_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_MAX_WORKERS
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{GWPI_MAX_WORKERS_ENV} must be an integer.") from exc
    return require_positive_int(value, GWPI_MAX_WORKERS_ENV)
