#!/usr/bin/env python3
"""Run Ruff lint, format and the pytest suite in sequence.

Every command runs even if an earlier one fails; the exit status summarises
all of them.
"""

from __future__ import annotations

import subprocess
from typing import Final

Command = tuple[str, list[str]]

COMMANDS: Final[list[Command]] = [
    ("ruff check .", ["ruff", "check", "."]),
    ("ruff format --check", ["ruff", "format", "--check"]),
    ("pytest", ["pytest", "-q"]),
]


def run_command(label: str, command: list[str]) -> int:
    print(f"Running {label}...")
    try:
        result = subprocess.run(command, check=False)
    except FileNotFoundError:
        print(f"{label} skipped: {command[0]} is not installed.")
        return 127
    outcome = "passed" if result.returncode == 0 else "failed"
    print(f"{label} {outcome} with exit code {result.returncode}.")
    return result.returncode


def main() -> None:
    """Run each configured command and exit non-zero if any fail."""
    failures: list[tuple[str, int]] = []

    for label, command in COMMANDS:
        exit_code = run_command(label, command)
        if exit_code != 0:
            failures.append((label, exit_code))

    if failures:
        print("\nSummary: some commands failed:")
        for label, code in failures:
            print(f" - {label}: exit code {code}")
        raise SystemExit(1)

    print("\nSummary: all commands succeeded.")
    raise SystemExit(0)


if __name__ == "__main__":
    main()
