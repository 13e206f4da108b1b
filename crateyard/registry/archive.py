"""Crate package inspection.

A ``.crate`` file is a gzip-compressed tarball whose entries all live
under a single ``<name>-<version>/`` directory. The only file the registry
needs from it is the normalized ``Cargo.toml`` directly under that root.
"""

from __future__ import annotations

import io
import logging
import tarfile
import zlib
from pathlib import PurePosixPath

from crateyard.errors import ArchiveError, MalformedArchiveError, ManifestMissingError

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = "Cargo.toml"

# Decompression failures surface as any of these depending on where the
# stream breaks.
_STREAM_ERRORS = (tarfile.TarError, zlib.error, EOFError, OSError)


def find_root_manifest(crate_data: bytes) -> bytes | None:
    """Return the bytes of the root ``Cargo.toml``, or None if there is none.

    Entries are streamed; nothing but the manifest is read into memory.

    Raises:
        MalformedArchiveError: If an entry is not nested under the root
            directory fixed by the first entry.
        ArchiveError: If the stream cannot be decompressed or read.
    """
    try:
        with tarfile.open(fileobj=io.BytesIO(crate_data), mode="r|gz") as tar:
            root = None
            for member in tar:
                parts = PurePosixPath(member.name).parts

                if root is None:
                    if not parts or parts[0] in ("/", ".."):
                        raise MalformedArchiveError(
                            f"The crate package entry {member.name!r} is not inside a directory"
                        )
                    root = parts[0]

                if parts[:1] != (root,):
                    raise MalformedArchiveError(
                        f"The crate package entry {member.name!r} is not inside {root!r}"
                    )

                if parts[1:] != (MANIFEST_FILE_NAME,):
                    logger.debug("Skipping crate package entry %s", member.name)
                    continue

                if not member.isfile():
                    raise MalformedArchiveError(
                        f"The crate package entry {member.name!r} is not a regular file"
                    )
                fh = tar.extractfile(member)
                return fh.read()
    except ArchiveError:
        raise
    except _STREAM_ERRORS as e:
        raise ArchiveError(f"Could not read the crate package entries: {e}") from e

    return None


def extract_manifest(crate_data: bytes) -> bytes:
    """Like :func:`find_root_manifest` but a missing manifest is an error."""
    manifest = find_root_manifest(crate_data)
    if manifest is None:
        raise ManifestMissingError("The crate package does not contain a Cargo.toml file")
    return manifest
