"""Registry — index and storage engine for a static crate registry.

The registry provides:
- Naming: crate name validation and directory sharding
- Inspection: reading the manifest out of a ``.crate`` package
- Indexing: one JSON line per published version, per crate
- Storage: add, yank, unyank, remove and list over a plain directory
"""

from crateyard.registry.config import ConfigV1, HtmlConfig
from crateyard.registry.crate_name import CrateName
from crateyard.registry.index_store import IndexStore
from crateyard.registry.local_registry import Registry
from crateyard.registry.models import Dependency, DependencyKind, Index, IndexEntry, ListAll

__all__ = [
    "ConfigV1",
    "CrateName",
    "Dependency",
    "DependencyKind",
    "HtmlConfig",
    "Index",
    "IndexEntry",
    "IndexStore",
    "ListAll",
    "Registry",
]
