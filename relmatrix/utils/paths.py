# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Path utilities for relmatrix.

Matrix entries name paths relative to the source tree. Those paths come from
config, so they are resolved against their root and rejected if they try to
climb out of it.
"""

from pathlib import Path


def ensure_directory(path: Path) -> Path:
    """Create a directory (and parents) if it doesn't exist. Returns the path for chaining."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_under(root: Path, relative: str) -> Path:
    """
    Resolve `relative` against `root` and make sure it stays inside it.

    Tricks like ``../../etc/passwd`` get caught because both sides are
    resolved to absolute paths before comparing.

    Args:
        root: The directory the path must stay within.
        relative: A path string from config.

    Returns:
        The resolved absolute path.

    Raises:
        ValueError: If the path escapes root.
    """
    resolved_root = root.resolve()
    resolved_target = (resolved_root / relative).resolve()

    if resolved_target != resolved_root and resolved_root not in resolved_target.parents:
        raise ValueError(
            f"Path '{relative}' resolves to '{resolved_target}' which is outside "
            f"'{resolved_root}'. This is not allowed."
        )
    return resolved_target
