"""Version lookup for the CLI and log records.

A source checkout reports the version in its own pyproject.toml, so the
number moves with the tree even under an editable install. Otherwise the
installed distribution metadata is used.
"""

import os
import tomllib
from importlib import metadata
from pathlib import Path
from typing import Optional

DISTRIBUTION_NAME = "rolehop"


def _source_tree_version() -> Optional[str]:
    pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
    try:
        with open(pyproject_path, "rb") as f:
            project = tomllib.load(f).get("project", {})
    except (OSError, tomllib.TOMLDecodeError):
        return None

    # A pyproject.toml next to an installed package belongs to something else
    if project.get("name") != DISTRIBUTION_NAME:
        return None
    return project.get("version")


def _installed_version() -> Optional[str]:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return None


def get_version() -> str:
    """
    Resolve the rolehop version.

    Priority:
    1. BUILD_VERSION environment variable (set by release builds)
    2. pyproject.toml of the source checkout
    3. Installed distribution metadata
    4. "unknown"
    """
    return os.getenv("BUILD_VERSION") or _source_tree_version() or _installed_version() or "unknown"


__version__ = get_version()
