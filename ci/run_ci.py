"""Cross-platform CI entrypoint for gwpi quality gates."""

from __future__ import annotations

import os
import subprocess  # nosec B404
import sys
from collections.abc import Sequence


def _run(args: Sequence[str]) -> int:
    """Run one command and return its exit code."""
    command = " ".join(args)
    print(f"$ {command}")
    result = subprocess.run(args, check=False)  # nosec B603
    if result.returncode != 0:
        print(f"Command failed with exit code {result.returncode}: {command}")
    return int(result.returncode)


def main() -> int:
    """Execute lint, type check and tests, stopping at the first failure."""
    coverage_floor = os.environ.get("GWPI_CI_COVERAGE_FLOOR", "85")
    commands: list[list[str]] = [
        [sys.executable, "-m", "ruff", "check", "."],
        [sys.executable, "-m", "mypy", "gateway_policy_inspector"],
        [
            sys.executable,
            "-m",
            "pytest",
            "--cov=gateway_policy_inspector",
            "--cov-report=term-missing",
            f"--cov-fail-under={coverage_floor}",
        ],
    ]
    for args in commands:
        exit_code = _run(args)
        if exit_code != 0:
            return exit_code
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
