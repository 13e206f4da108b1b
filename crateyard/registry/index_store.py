"""Per-crate index files.

Each crate has one index file holding one JSON object per line, one line
per published version, ordered by version string. A missing file means the
crate was never published; a present but empty file means every version was
removed. Both parse to an empty index.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from crateyard.errors import (
    IndexParseError,
    IndexReadError,
    InvalidNameError,
    RegistryIOError,
    VersionNotFoundError,
)
from crateyard.registry.crate_name import CrateName
from crateyard.registry.models import Dependency, DependencyKind, Index, IndexEntry
from crateyard.utils.atomic import atomic_write_text

logger = logging.getLogger(__name__)


class IndexStore:
    """Read, write and edit crate index files."""

    @staticmethod
    def parse(path: str | Path) -> Index:
        """Load an index file. A missing file yields an empty index.

        Raises:
            IndexParseError: A non-blank line is not a valid entry.
            IndexReadError: A line could not be read.
            RegistryIOError: The file exists but cannot be opened.
        """
        path = Path(path)
        try:
            fh = open(path, "rb")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise RegistryIOError("open index file", path) from e

        index: Index = {}
        with fh:
            line_no = 0
            while True:
                line_no += 1
                # Lines are decoded one at a time so a bad byte is blamed
                # on the line that holds it
                try:
                    raw = fh.readline()
                    line = raw.decode("utf-8")
                except (OSError, UnicodeDecodeError) as e:
                    raise IndexReadError(path, line_no) from e
                if not raw:
                    break
                if not line.strip():
                    continue

                try:
                    entry = entry_from_dict(json.loads(line))
                except (ValueError, TypeError, KeyError, InvalidNameError) as e:
                    raise IndexParseError(path, line_no, str(e)) from e
                index[entry.vers] = entry

        return index

    @staticmethod
    def write(index: Index, path: str | Path) -> None:
        """Replace the index file with ``index``, ordered by version string.

        The ordering is a plain string sort, so ``10.0.0`` sorts before
        ``2.0.0``.
        """
        path = Path(path)
        lines = [to_json_line(index[vers]) for vers in sorted(index)]
        try:
            atomic_write_text(path, "".join(lines))
        except OSError as e:
            raise RegistryIOError("write index file", path) from e
        logger.debug("Wrote %d entries to %s", len(lines), path)

    @staticmethod
    def insert(index: Index, entry: IndexEntry) -> None:
        """Add ``entry``, replacing any record for the same version."""
        index[entry.vers] = entry

    @staticmethod
    def set_yanked(index: Index, version: str, yanked: bool, name: str | None = None) -> IndexEntry:
        """Flag or unflag a version. Setting the current value is a no-op."""
        entry = index.get(version)
        if entry is None:
            raise VersionNotFoundError(name or _crate_name_of(index), version)
        entry.yanked = yanked
        return entry

    @staticmethod
    def remove(index: Index, version: str, name: str | None = None) -> IndexEntry:
        """Delete a version's record entirely."""
        if version not in index:
            raise VersionNotFoundError(name or _crate_name_of(index), version)
        return index.pop(version)


def _crate_name_of(index: Index) -> str:
    for entry in index.values():
        return str(entry.name)
    return "<unknown>"


# ---------------------------------------------------------------------------
# JSON conversion
# ---------------------------------------------------------------------------


def dependency_to_dict(dep: Dependency) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": dep.name,
        "req": dep.req,
        "features": list(dep.features),
        "optional": dep.optional,
        "default_features": dep.default_features,
    }
    if dep.target is not None:
        data["target"] = dep.target
    data["kind"] = dep.kind.value
    if dep.registry is not None:
        data["registry"] = dep.registry
    if dep.package is not None:
        data["package"] = dep.package
    return data


def entry_to_dict(entry: IndexEntry) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": str(entry.name),
        "vers": entry.vers,
        "deps": [dependency_to_dict(d) for d in entry.deps],
        "cksum": entry.cksum,
        "features": {k: list(v) for k, v in entry.features.items()},
        "yanked": entry.yanked,
    }
    if entry.links is not None:
        data["links"] = entry.links
    data["v"] = entry.v
    if entry.features2:
        data["features2"] = {k: list(v) for k, v in entry.features2.items()}
    if entry.rust_version is not None:
        data["rust_version"] = entry.rust_version
    return data


def to_json_line(entry: IndexEntry) -> str:
    return json.dumps(entry_to_dict(entry), separators=(",", ":")) + "\n"


def _require(data: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    value = data[key]
    if not isinstance(value, kind):
        raise TypeError(f"{key!r} has the wrong type")
    return value


def _optional(data: dict, key: str, kind: type) -> Any:
    value = data.get(key)
    if value is not None and not isinstance(value, kind):
        raise TypeError(f"{key!r} has the wrong type")
    return value


def _schema_version(data: dict) -> int:
    v = data.get("v", 1)
    # bool is an int subclass
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError("'v' has the wrong type")
    return v


def _feature_map(data: dict, key: str, required: bool = True) -> dict[str, list[str]]:
    value = _require(data, key, dict) if required else _optional(data, key, dict)
    features = {}
    for name, enables in (value or {}).items():
        if not isinstance(enables, list) or not all(isinstance(e, str) for e in enables):
            raise TypeError(f"{key}.{name} must be a list of strings")
        features[name] = list(enables)
    return features


def dependency_from_dict(data: Any) -> Dependency:
    if not isinstance(data, dict):
        raise TypeError("dependency must be an object")
    kind = data.get("kind") or DependencyKind.NORMAL.value
    return Dependency(
        name=_require(data, "name", str),
        req=_require(data, "req", str),
        features=list(_require(data, "features", list)),
        optional=_require(data, "optional", bool),
        default_features=_require(data, "default_features", bool),
        target=_optional(data, "target", str),
        kind=DependencyKind(kind),
        registry=_optional(data, "registry", str),
        package=_optional(data, "package", str),
    )


def entry_from_dict(data: Any) -> IndexEntry:
    if not isinstance(data, dict):
        raise TypeError("index entry must be an object")
    return IndexEntry(
        name=CrateName(_require(data, "name", str)),
        vers=_require(data, "vers", str),
        deps=[dependency_from_dict(d) for d in _require(data, "deps", list)],
        cksum=_require(data, "cksum", str),
        features=_feature_map(data, "features"),
        yanked=_require(data, "yanked", bool),
        links=_optional(data, "links", str),
        v=_schema_version(data),
        features2=_feature_map(data, "features2", required=False),
        rust_version=_optional(data, "rust_version", str),
    )
