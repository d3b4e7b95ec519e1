#!/usr/bin/env python3
"""Validate every diagnostics configuration file in the repository.

Each ``*.yml`` / ``*.yaml`` file under the scan root is loaded with the same
loader the CLI uses, so unknown keys and out-of-range values are reported in
addition to YAML syntax errors.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable

DEFAULT_EXCLUDES = {".git", ".venv", "venv", "build", "dist", "__pycache__", ".github"}


def iter_yaml_files(root: Path, excludes: set[str]) -> Iterable[Path]:
    """Yield YAML files under *root* while skipping excluded directories."""
    for pattern in ("*.yml", "*.yaml"):
        for path in root.rglob(pattern):
            if any(part in excludes for part in path.parts):
                continue
            if path.is_file():
                yield path


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate diagnostics configuration files.")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path(__file__).resolve().parent.parent,
        help="Root directory to scan for YAML files.",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=list(DEFAULT_EXCLUDES),
        help="Directories to exclude from the search (can be specified multiple times).",
    )
    args = parser.parse_args()

    src_dir = Path(__file__).resolve().parents[1] / "src"
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))
    from pppoe_link_diagnostics.config import load_config
    from pppoe_link_diagnostics.link_check.errors import ConfigError

    root = args.root.resolve()
    yaml_files = sorted(iter_yaml_files(root, set(args.exclude)))
    if not yaml_files:
        print("No YAML files found.")
        return 0

    failures: list[Path] = []
    for yaml_file in yaml_files:
        relative_path = yaml_file.relative_to(root)
        try:
            load_config(str(yaml_file))
        except ConfigError as exc:
            print(f"ERROR: {relative_path}")
            for issue in exc.issues:
                print(f"  {issue}")
            failures.append(yaml_file)
            continue
        print(f"OK: {relative_path}")

    if failures:
        print(f"Validation failed for {len(failures)} file(s).")
        return 1

    print("All configuration files validated successfully.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
