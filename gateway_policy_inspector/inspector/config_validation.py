"""Shared configuration validation helpers."""

from __future__ import annotations

OUTPUT_FORMATS = {"table", "json", "yaml"}
PARENT_MODES = {"per-parent", "union"}


def require_positive_int(value: int, field_name: str) -> int:
    """Validate a positive integer input and return it."""
    if value <= 0:
        raise ValueError(f"{field_name} must be greater than zero.")
    return value


def validate_choice(value: str, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is within a set of allowed options."""
    if value not in allowed:
        options = ", ".join(sorted(allowed))
        raise ValueError(f"{field_name} must be one of: {options}.")
    return value


def validate_output_format(value: str) -> str:
    """Validate output format option."""
    return validate_choice(value.lower(), "output", OUTPUT_FORMATS)


def validate_parent_mode(value: str) -> str:
    """Validate multi-parent resolution mode."""
    return validate_choice(value, "parent_mode", PARENT_MODES)
