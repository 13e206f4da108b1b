"""Local file-based registry implementation.

A registry is a directory that a plain HTTP file server can host as a
sparse index:

    <root>/crateyard.yaml              internal configuration
    <root>/config.json                 public configuration
    <root>/<shard>/<name>              index file, one line per version
    <root>/crates/<shard>/<name>/<version>.crate

Index files and archives are sharded by the same rule, so the index path of
a crate can be recovered from the directory holding its archives.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path

from crateyard.errors import (
    ConfigError,
    InvalidNameError,
    RegistryIOError,
    RegistryNotFoundError,
)
from crateyard.registry.archive import extract_manifest
from crateyard.registry.config import (
    CONFIG_FILE_NAME,
    CRATE_DIR_NAME,
    CRATE_FILE_EXTENSION,
    PUBLIC_CONFIG_FILE_NAME,
    ConfigV1,
    dump_config,
    dump_public_config,
    load_config,
)
from crateyard.registry.crate_name import CrateName
from crateyard.registry.index_store import IndexStore
from crateyard.registry.manifest import CRATES_IO_INDEX_URL, adapt_manifest, parse_manifest
from crateyard.registry.models import Index, IndexEntry, ListAll
from crateyard.utils.atomic import atomic_write_bytes, atomic_write_text

logger = logging.getLogger(__name__)


class Registry:
    """A static crate registry rooted at ``path``."""

    def __init__(
        self,
        path: str | Path,
        config: ConfigV1,
        upstream_index_url: str = CRATES_IO_INDEX_URL,
    ):
        self.path = Path(path)
        self.config = config
        self.upstream_index_url = upstream_index_url

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def initialize(
        cls,
        config: ConfigV1,
        path: str | Path,
        upstream_index_url: str = CRATES_IO_INDEX_URL,
    ) -> "Registry":
        """Create the registry directory and write both config files.

        Running it again on an existing registry rewrites the configuration
        and leaves published crates untouched.
        """
        path = Path(path)
        logger.info("Initializing registry in `%s`", path)

        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RegistryIOError("create the registry directory", path) from e

        config_path = path / CONFIG_FILE_NAME
        _write_text(config_path, dump_config(config), "write the internal configuration to")

        public_path = path / PUBLIC_CONFIG_FILE_NAME
        _write_text(public_path, dump_public_config(config), "write the public configuration to")

        return cls(path, config, upstream_index_url)

    @classmethod
    def open(
        cls,
        path: str | Path,
        upstream_index_url: str = CRATES_IO_INDEX_URL,
    ) -> "Registry":
        """Load an existing registry from its internal configuration."""
        path = Path(path)
        config_path = path / CONFIG_FILE_NAME
        try:
            text = config_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RegistryNotFoundError(config_path) from e
        except (OSError, UnicodeDecodeError) as e:
            raise RegistryIOError("open the internal configuration at", config_path) from e

        try:
            config = load_config(text)
        except ConfigError as e:
            raise ConfigError(
                f"Could not deserialize the registry's internal configuration at {config_path}"
            ) from e

        return cls(path, config, upstream_index_url)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def add_file(self, crate_path: str | Path) -> IndexEntry:
        """Read a ``.crate`` file from disk and add it."""
        crate_path = Path(crate_path)
        logger.info("Adding crate `%s` to registry", crate_path)
        try:
            crate_data = crate_path.read_bytes()
        except OSError as e:
            raise RegistryIOError("read the crate package", crate_path) from e
        return self.add(crate_data)

    def add(self, crate_data: bytes) -> IndexEntry:
        """Publish a crate package, replacing any record of the same version.

        The index is written before the archive. If the archive write fails
        the index keeps a record whose archive is missing.
        """
        checksum_hex = hashlib.sha256(crate_data).hexdigest()
        logger.debug("Crate package checksum is %s", checksum_hex)

        manifest = parse_manifest(extract_manifest(crate_data))
        entry = adapt_manifest(
            manifest,
            checksum_hex,
            base_url=self.config.base_url,
            upstream_index_url=self.upstream_index_url,
        )

        index_path = self.index_file_path_for(entry.name)
        _mkdirs(index_path.parent, "create the crate's index directory")

        crate_file_path = self.crate_file_path_for(entry.name, entry.vers)
        _mkdirs(crate_file_path.parent, "create the crate directory")

        index = IndexStore.parse(index_path)
        IndexStore.insert(index, entry)
        IndexStore.write(index, index_path)
        logger.info("Wrote crate index to `%s`", index_path)

        try:
            atomic_write_bytes(crate_file_path, crate_data)
        except OSError as e:
            raise RegistryIOError("write the crate", crate_file_path) from e
        logger.info("Wrote crate to `%s`", crate_file_path)

        return entry

    def yank(self, name: str, version: str) -> IndexEntry:
        """Mark a version as yanked. Yanking a yanked version is a no-op."""
        return self._set_yanked(name, version, True)

    def unyank(self, name: str, version: str) -> IndexEntry:
        return self._set_yanked(name, version, False)

    def _set_yanked(self, name: str, version: str, yanked: bool) -> IndexEntry:
        name = CrateName(name)
        index_path = self.index_file_path_for(name)

        index = IndexStore.parse(index_path)
        entry = IndexStore.set_yanked(index, version, yanked, name=name)
        IndexStore.write(index, index_path)

        logger.info("%s %s in `%s`", "Yanked" if yanked else "Unyanked", entry.qualified_id, index_path)
        return entry

    def remove(self, name: str, version: str) -> IndexEntry:
        """Delete a version's index record.

        The archive stays on disk, and the index file stays even when it
        ends up empty.
        """
        name = CrateName(name)
        index_path = self.index_file_path_for(name)

        index = IndexStore.parse(index_path)
        entry = IndexStore.remove(index, version, name=name)
        IndexStore.write(index, index_path)

        logger.info("Removed %s from `%s`", entry.qualified_id, index_path)
        return entry

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_index_files(self) -> dict[CrateName, Path]:
        """Find every crate with at least one stored archive.

        The archive tree is walked rather than the index tree, since the
        latter shares the registry root with unrelated files.
        """
        crate_dir = self.crate_dir()
        index_files: dict[CrateName, Path] = {}

        def _raise(err: OSError) -> None:
            raise err

        try:
            for dirpath, _dirnames, filenames in os.walk(crate_dir, onerror=_raise):
                if not any(_is_crate_file(f) for f in filenames):
                    continue
                subdir = Path(dirpath).relative_to(crate_dir)
                try:
                    name = CrateName(subdir.name)
                except InvalidNameError:
                    logger.debug("Ignoring crate files in `%s`", dirpath)
                    continue
                index_files[name] = self.path / subdir
        except FileNotFoundError as e:
            # A fresh registry has no crate directory yet
            if not crate_dir.exists():
                return {}
            raise RegistryIOError("enumerate the crate directory", crate_dir) from e
        except OSError as e:
            raise RegistryIOError("enumerate the crate directory", crate_dir) from e

        return index_files

    def list_all(self) -> ListAll:
        """Load the index of every crate in the registry."""
        crates: ListAll = {}
        for name, index_path in sorted(self.list_index_files().items()):
            crates[name] = IndexStore.parse(index_path)
        return crates

    def get_index(self, name: str) -> Index:
        """Load one crate's index; empty if it was never published."""
        return IndexStore.parse(self.index_file_path_for(CrateName(name)))

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def crate_dir(self) -> Path:
        return self.path / CRATE_DIR_NAME

    def index_file_path_for(self, name: CrateName) -> Path:
        return self.path / name.relative_path()

    def crate_dir_for(self, name: CrateName) -> Path:
        return self.crate_dir() / name.relative_path()

    def crate_file_path_for(self, name: CrateName, version: str) -> Path:
        return self.crate_dir_for(name) / f"{version}.{CRATE_FILE_EXTENSION}"


def _is_crate_file(filename: str) -> bool:
    return Path(filename).suffix == f".{CRATE_FILE_EXTENSION}"


def _mkdirs(path: Path, operation: str) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise RegistryIOError(operation, path) from e


def _write_text(path: Path, text: str, operation: str) -> None:
    try:
        atomic_write_text(path, text)
    except OSError as e:
        raise RegistryIOError(operation, path) from e
