"""Error taxonomy for policy inspection.

Fatal conditions are exceptions. Everything else is a ``PolicyWarning`` that is
collected next to the result so the caller can explain it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from gateway_policy_inspector.inspector.values import FieldPath, format_pointer


class NotFoundError(LookupError):
    """Raised when a requested named resource is absent from the cluster snapshot."""

    def __init__(self, kind: str, namespace: str, name: str) -> None:
        key = f"{namespace}/{name}" if namespace else name
        super().__init__(f"{kind} '{key}' not found")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class ClusterAccessError(RuntimeError):
    """Raised when the cluster snapshot cannot be read."""


class DuplicateCRDError(ValueError):
    """Raised when the same policy group/kind is registered twice."""

    def __init__(self, group_kind: str) -> None:
        super().__init__(f"duplicate policy CRD: {group_kind}")
        self.group_kind = group_kind


class AmbiguousAncestryError(ValueError):
    """Raised when a single chain is requested for a target with several parent chains."""


class WarningCode(str, Enum):
    """Non-fatal conditions recorded during a calculation."""

    UNKNOWN_POLICY_KIND = "UnknownPolicyKind"
    AMBIGUOUS_POLICY = "AmbiguousPolicy"
    MERGE_CONFLICT = "MergeConflict"
    NO_APPLICABLE_POLICY = "NoApplicablePolicy"
    CYCLE_DETECTED = "CycleDetected"
    DEPTH_EXCEEDED = "DepthExceeded"
    DANGLING_REFERENCE = "DanglingReference"


INFORMATIONAL_CODES = frozenset({WarningCode.NO_APPLICABLE_POLICY, WarningCode.DANGLING_REFERENCE})


@dataclass(frozen=True)
class PolicyWarning:
    """One non-fatal diagnostic attached to a result."""

    code: WarningCode
    message: str
    subject: str = ""
    path: FieldPath | None = None

    @property
    def informational(self) -> bool:
        return self.code in INFORMATIONAL_CODES

    def to_dict(self) -> dict[str, str]:
        payload = {"code": self.code.value, "message": self.message}
        if self.subject:
            payload["subject"] = self.subject
        if self.path is not None:
            payload["path"] = format_pointer(self.path)
        return payload

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"
