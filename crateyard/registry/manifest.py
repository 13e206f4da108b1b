"""Cargo.toml → index entry translation.

Only intended for the normalized ``Cargo.toml`` that ``cargo package``
writes into a ``.crate`` file: dependencies there always carry an explicit
``version`` and, for non-default registries, a ``registry-index`` URL.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from crateyard.errors import InvalidNameError, ManifestError
from crateyard.registry.crate_name import CrateName
from crateyard.registry.models import (
    INDEX_SCHEMA_VERSION,
    Dependency,
    DependencyKind,
    IndexEntry,
)

# Dependencies without an explicit registry are assumed to come from here.
CRATES_IO_INDEX_URL = "https://github.com/rust-lang/crates.io-index"


@dataclass
class ManifestDependency:
    version: str
    features: list[str] = field(default_factory=list)
    optional: bool = False
    default_features: bool = True
    registry_index: str | None = None
    package: str | None = None


@dataclass
class ManifestPackage:
    name: CrateName
    version: str
    links: str | None = None
    rust_version: str | None = None


@dataclass
class Manifest:
    """The parts of a Cargo.toml the index cares about.

    Dependency groups preserve manifest order.
    """

    package: ManifestPackage
    features: dict[str, list[str]] = field(default_factory=dict)
    dependencies: dict[str, ManifestDependency] = field(default_factory=dict)
    build_dependencies: dict[str, ManifestDependency] = field(default_factory=dict)
    # cfg string -> dependencies for that target
    target: dict[str, dict[str, ManifestDependency]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_manifest(data: bytes) -> Manifest:
    """Decode and parse the raw bytes of a Cargo.toml.

    Raises:
        ManifestError: If the bytes are not UTF-8, not TOML, or do not have
            the expected shape.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ManifestError("The crate's Cargo.toml is not valid UTF-8") from e

    try:
        doc = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ManifestError("The crate's Cargo.toml is malformed") from e

    package = _table(doc, "package", required=True)
    try:
        name = CrateName(_string(package, "name", "package", required=True))
    except InvalidNameError as e:
        raise ManifestError("The crate's Cargo.toml has an invalid package name") from e

    targets = {}
    for cfg, defn in _table(doc, "target").items():
        if not isinstance(defn, dict):
            raise ManifestError(f"[target.{cfg!r}] must be a table")
        targets[cfg] = _dependencies(defn, "dependencies", f"target.{cfg}.dependencies")

    return Manifest(
        package=ManifestPackage(
            name=name,
            version=_version(package),
            links=_string(package, "links", "package"),
            rust_version=_string(package, "rust-version", "package"),
        ),
        features=_features(doc),
        dependencies=_dependencies(doc, "dependencies", "dependencies"),
        build_dependencies=_dependencies(doc, "build-dependencies", "build-dependencies"),
        target=targets,
    )


def _table(doc: dict, key: str, required: bool = False) -> dict:
    value = doc.get(key)
    if value is None:
        if required:
            raise ManifestError(f"The crate's Cargo.toml has no [{key}] table")
        return {}
    if not isinstance(value, dict):
        raise ManifestError(f"[{key}] must be a table")
    return value


def _string(table: dict, key: str, where: str, required: bool = False) -> str | None:
    value = table.get(key)
    if value is None:
        if required:
            raise ManifestError(f"{where}.{key} is missing")
        return None
    if not isinstance(value, str):
        raise ManifestError(f"{where}.{key} must be a string")
    return value


def _version(package: dict) -> str:
    # The version names the archive file, so it must stay one path segment
    version = _string(package, "version", "package", required=True)
    if not version.strip():
        raise ManifestError("package.version is empty")
    if "/" in version or "\\" in version or version == "." or ".." in version:
        raise ManifestError(f"package.version {version!r} is not a valid version")
    return version


def _string_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError(f"{where} must be a list of strings")
    return list(value)


def _bool(table: dict, key: str, where: str, default: bool) -> bool:
    value = table.get(key, default)
    if not isinstance(value, bool):
        raise ManifestError(f"{where}.{key} must be a boolean")
    return value


def _features(doc: dict) -> dict[str, list[str]]:
    return {
        name: _string_list(enables, f"features.{name}")
        for name, enables in _table(doc, "features").items()
    }


def _dependencies(doc: dict, key: str, where: str) -> dict[str, ManifestDependency]:
    deps = {}
    for name, spec in _table(doc, key).items():
        dep_where = f"{where}.{name}"
        # `foo = "1.0"` shorthand
        if isinstance(spec, str):
            deps[name] = ManifestDependency(version=spec)
            continue
        if not isinstance(spec, dict):
            raise ManifestError(f"{dep_where} must be a string or a table")
        deps[name] = ManifestDependency(
            version=_string(spec, "version", dep_where, required=True),
            features=_string_list(spec.get("features", []), f"{dep_where}.features"),
            optional=_bool(spec, "optional", dep_where, False),
            default_features=_bool(spec, "default-features", dep_where, True),
            registry_index=_string(spec, "registry-index", dep_where),
            package=_string(spec, "package", dep_where),
        )
    return deps


# ---------------------------------------------------------------------------
# Adapting
# ---------------------------------------------------------------------------


def normalize_url(url: str) -> str:
    """Canonicalize a URL so equal URLs compare equal.

    The scheme and host are case-insensitive and get lowercased; the path
    always ends with a slash. Everything else is kept as written.
    """
    parts = urlsplit(url.strip())
    userinfo, at, host = parts.netloc.rpartition("@")
    path = parts.path if parts.path.endswith("/") else parts.path + "/"
    return urlunsplit(
        parts._replace(
            scheme=parts.scheme.lower(),
            netloc=f"{userinfo}{at}{host.lower()}",
            path=path,
        )
    )


def resolve_registry(
    registry_index: str | None, base_url: str, upstream_index_url: str
) -> str | None:
    """Decide which registry a dependency lives in.

    The dependency is in...
    """
    # ...the upstream default
    if registry_index is None:
        return upstream_index_url
    # ...this registry
    if normalize_url(registry_index) == normalize_url(base_url):
        return None
    # ...another registry
    return registry_index


def adapt_dependency(
    name: str,
    dep: ManifestDependency,
    base_url: str,
    upstream_index_url: str = CRATES_IO_INDEX_URL,
) -> Dependency:
    return Dependency(
        name=name,
        req=dep.version,
        features=list(dep.features),
        optional=dep.optional,
        default_features=dep.default_features,
        target=None,
        kind=DependencyKind.NORMAL,
        registry=resolve_registry(dep.registry_index, base_url, upstream_index_url),
        package=dep.package,
    )


def adapt_manifest(
    manifest: Manifest,
    checksum_hex: str,
    base_url: str,
    upstream_index_url: str = CRATES_IO_INDEX_URL,
) -> IndexEntry:
    """Build the index entry for a parsed manifest.

    Dependencies are ordered: normal, then build, then each target group.
    Whether the dependencies exist anywhere is not checked.
    """
    deps = [
        adapt_dependency(name, dep, base_url, upstream_index_url)
        for name, dep in manifest.dependencies.items()
    ]

    for name, dep in manifest.build_dependencies.items():
        adapted = adapt_dependency(name, dep, base_url, upstream_index_url)
        adapted.kind = DependencyKind.BUILD
        deps.append(adapted)

    for cfg, target_deps in manifest.target.items():
        for name, dep in target_deps.items():
            adapted = adapt_dependency(name, dep, base_url, upstream_index_url)
            adapted.target = cfg
            deps.append(adapted)

    return IndexEntry(
        name=manifest.package.name,
        vers=manifest.package.version,
        deps=deps,
        cksum=checksum_hex,
        features={k: list(v) for k, v in manifest.features.items()},
        yanked=False,
        links=manifest.package.links,
        v=INDEX_SCHEMA_VERSION,
        features2={},
        rust_version=manifest.package.rust_version,
    )
