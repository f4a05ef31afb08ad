"""Atomic file replacement shared by the registry, config and credential stores."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from loguru import logger

from .errors import StorageError


def write_atomic(path: Path, content: str, mode: Optional[int] = None) -> None:
    """Replace ``path`` with ``content`` so readers never see a partial file.

    The content goes to a temporary file in the target directory which is
    flushed, fsynced, optionally chmod-ed and then renamed over the target.

    Args:
        path: Target file
        content: Full new file content
        mode: Permission bits applied to the temporary file before the rename

    Raises:
        StorageError: If any step fails; the target is left untouched
    """
    path = Path(path)
    temp_name: Optional[str] = None

    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())

        if mode is not None:
            os.chmod(temp_name, mode)

        # Same directory, so the rename is atomic on POSIX
        os.replace(temp_name, path)
        temp_name = None

    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e

    finally:
        if temp_name is not None:
            try:
                os.unlink(temp_name)
            except OSError as e:
                logger.warning(f"Could not remove temporary file {temp_name}: {e}")
