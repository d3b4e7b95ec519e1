from __future__ import annotations

import sys
from pathlib import Path


def _ensure_package_on_path() -> None:
    """Insert the ``src`` directory into ``sys.path`` when run as a script.

    Running ``python __main__.py`` directly puts this file's directory at the
    top of ``sys.path`` instead of its parent, so the absolute
    ``pppoe_link_diagnostics`` imports would fail without this adjustment.
    """

    package_dir = Path(__file__).resolve().parent
    project_root = package_dir.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)


def _load_app():
    _ensure_package_on_path()
    from pppoe_link_diagnostics.cli import app as cli_app

    return cli_app


app = _load_app()


def main() -> None:
    """Entrypoint for running the CLI application."""

    app(prog_name="pppoe-link-diagnostics")


if __name__ == "__main__":
    main()
