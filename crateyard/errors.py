"""Exceptions raised by the registry engine.

Every failure surfaced by :mod:`crateyard.registry` derives from
:class:`RegistryError`. Lower-level exceptions (``OSError``,
``json.JSONDecodeError``, ``tarfile.TarError``...) are chained with
``raise ... from exc`` so callers can render the full cause chain.
"""

from __future__ import annotations

from pathlib import Path


class RegistryError(Exception):
    """Base exception for registry operations."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(RegistryError):
    """Raised when user-supplied data is not acceptable."""


class InvalidNameError(ValidationError):
    """Raised when a string is not a valid crate name."""

    def __init__(self, value: str, reason: str) -> None:
        super().__init__(f"Invalid crate name {value!r}: {reason}")
        self.value = value
        self.reason = reason


class ManifestError(ValidationError):
    """Raised when the crate's Cargo.toml cannot be understood."""


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------

class NotFoundError(RegistryError):
    """Raised when a registry or a crate version does not exist."""


class RegistryNotFoundError(NotFoundError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"No registry configuration found at {path}")
        self.path = path


class VersionNotFoundError(NotFoundError):
    def __init__(self, name: str, version: str) -> None:
        super().__init__(f"Crate {name} has no version {version} in the index")
        self.name = name
        self.version = version


# ---------------------------------------------------------------------------
# I/O
# ---------------------------------------------------------------------------

class RegistryIOError(RegistryError):
    """Raised when a filesystem operation fails.

    ``operation`` describes the step that failed (``"write index file"``)
    and ``path`` the file or directory it was applied to.
    """

    def __init__(self, operation: str, path: Path, message: str | None = None) -> None:
        super().__init__(message or f"Could not {operation} {path}")
        self.operation = operation
        self.path = path


class IndexReadError(RegistryIOError):
    """Raised when a line of an index file cannot be read."""

    def __init__(self, path: Path, line: int) -> None:
        super().__init__("read index file", path, f"Could not read line {line} of {path}")
        self.line = line


# ---------------------------------------------------------------------------
# Formats
# ---------------------------------------------------------------------------

class FormatError(RegistryError):
    """Raised when encoding or decoding a file format fails."""


class ArchiveError(FormatError):
    """Raised when the crate package cannot be decompressed or read."""


class MalformedArchiveError(ArchiveError):
    """Raised when the crate package entries are not under one root directory."""


class ManifestMissingError(ArchiveError):
    """Raised when the crate package does not contain a root Cargo.toml."""


class IndexParseError(FormatError):
    """Raised when a line of an index file is not a valid index entry."""

    def __init__(self, path: Path, line: int, detail: str = "") -> None:
        message = f"Could not parse line {line} of {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.path = path
        self.line = line


class ConfigError(FormatError):
    """Raised when the registry configuration cannot be (de)serialized."""
