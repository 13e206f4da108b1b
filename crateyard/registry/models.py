"""Index data models — one record per published crate version."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from crateyard.registry.crate_name import CrateName

# The schema version written for every new index entry. Version 2 adds the
# ``features2`` key.
INDEX_SCHEMA_VERSION = 2


class DependencyKind(str, Enum):
    """How a dependency is used. ``dev`` is stored but unused by clients."""

    DEV = "dev"
    BUILD = "build"
    NORMAL = "normal"


@dataclass
class Dependency:
    """A direct dependency as recorded in the index."""

    name: str
    req: str
    features: list[str] = field(default_factory=list)
    optional: bool = False
    default_features: bool = True
    target: str | None = None  # e.g. "cfg(windows)"
    kind: DependencyKind = DependencyKind.NORMAL
    # Index URL of the registry the dependency lives in. None means this
    # registry.
    registry: str | None = None
    # Actual package name when the dependency is renamed.
    package: str | None = None


@dataclass
class IndexEntry:
    """One published version of one crate."""

    name: CrateName
    vers: str
    deps: list[Dependency] = field(default_factory=list)
    cksum: str = ""
    features: dict[str, list[str]] = field(default_factory=dict)
    yanked: bool = False
    links: str | None = None
    v: int = INDEX_SCHEMA_VERSION
    # Extended feature syntax is folded into ``features``; kept empty.
    features2: dict[str, list[str]] = field(default_factory=dict)
    rust_version: str | None = None

    @property
    def qualified_id(self) -> str:
        return f"{self.name}@{self.vers}"


# version string -> entry, for a single crate
Index = dict[str, IndexEntry]

# crate name -> that crate's index
ListAll = dict[CrateName, Index]
