# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Atomic filesystem writes.

Several matrix entries can write into the same pool directory at once, and
a reader must never see half a wheel. Every write goes to a temporary file
in the target's own directory and is then renamed over the target. Rename
within one filesystem is atomic on POSIX and replaces atomically on Windows.
"""

import os
import shutil
import tempfile
from pathlib import Path


def atomic_write(target_path: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Write text to a file atomically.

    Raises:
        OSError: If the write or rename fails. The target is untouched.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd = tempfile.NamedTemporaryFile(
        mode="w",
        encoding=encoding,
        dir=str(target_path.parent),
        prefix=".relmatrix_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        temp_fd.write(content)
        temp_fd.flush()
        temp_fd.close()
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_copy(source_path: Path, target_path: Path) -> None:
    """
    Copy a file to target_path atomically, preserving its mode bits.

    Same approach as atomic_write, but streams the source so large binaries
    are never held in memory.

    Raises:
        FileNotFoundError: If source_path doesn't exist.
        OSError: If the copy or rename fails. The target is untouched.
    """
    target_path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd = tempfile.NamedTemporaryFile(
        mode="wb",
        dir=str(target_path.parent),
        prefix=".relmatrix_tmp_",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_fd.name)

    try:
        with open(source_path, "rb") as src:
            shutil.copyfileobj(src, temp_fd)
        temp_fd.flush()
        temp_fd.close()
        shutil.copymode(str(source_path), str(temp_path))
        os.replace(temp_path, target_path)
    except BaseException:
        temp_fd.close()
        if temp_path.exists():
            temp_path.unlink()
        raise
