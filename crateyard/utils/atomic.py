"""Atomic file replacement.

Readers (typically a static file server) must never observe a partially
written file, so content is written to a temp file in the destination
directory and moved into place with :func:`os.replace`.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: str | Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` in a single rename.

    Raises:
        OSError: If the temp file cannot be created, written or renamed.
            The temp file is removed on failure.
    """
    path = Path(path)
    tmp_fd, tmp_path = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(tmp_fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        # mkstemp creates 0600 files; published files must be world-readable
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.debug("Atomically wrote %d bytes to %s", len(data), path)


def atomic_write_text(path: str | Path, text: str) -> None:
    """Text variant of :func:`atomic_write_bytes`, always UTF-8."""
    atomic_write_bytes(path, text.encode("utf-8"))
