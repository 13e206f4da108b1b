"""Tests for the local registry."""

import hashlib
import json
import tempfile
from pathlib import Path

import pytest
import yaml

from conftest import BASE_URL, build_crate, make_crate
from crateyard.errors import (
    ConfigError,
    InvalidNameError,
    ManifestError,
    ManifestMissingError,
    NotFoundError,
    RegistryNotFoundError,
    VersionNotFoundError,
)
from crateyard.registry.config import ConfigV1, HtmlConfig
from crateyard.registry.local_registry import Registry
from crateyard.registry.manifest import CRATES_IO_INDEX_URL


def test_initialize_writes_public_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = ConfigV1(base_url="https://example.com/")
        Registry.initialize(config, Path(tmpdir) / "registry")

        public = json.loads((Path(tmpdir) / "registry" / "config.json").read_text())
        assert public == {
            "dl": "https://example.com/crates/{shard}/{crate}/{version}.crate",
            "api": None,
            "auth-required": False,
        }


def test_initialize_mirrors_auth_required():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = ConfigV1(base_url="https://example.com/private", auth_required=True)
        Registry.initialize(config, tmpdir)

        public = json.loads((Path(tmpdir) / "config.json").read_text())
        assert public["auth-required"] is True
        assert public["dl"].startswith("https://example.com/private/crates/")


def test_initialize_is_idempotent(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    again = Registry.initialize(registry.config, registry.path)
    assert "1.0.0" in again.list_all()["alpha"]


def test_open_reads_internal_config():
    with tempfile.TemporaryDirectory() as tmpdir:
        config = ConfigV1(
            base_url="https://example.com/",
            auth_required=True,
            html=HtmlConfig(enabled=True, suggested_registry_name="corp"),
        )
        Registry.initialize(config, tmpdir)

        reg = Registry.open(tmpdir)
        assert reg.config == config


def test_open_ignores_public_config(registry):
    (registry.path / "config.json").write_text("garbage")
    assert Registry.open(registry.path).config.base_url == BASE_URL


def test_open_missing_registry():
    with tempfile.TemporaryDirectory() as tmpdir:
        with pytest.raises(RegistryNotFoundError):
            Registry.open(Path(tmpdir) / "missing")


def test_open_bad_config(registry):
    (registry.path / "crateyard.yaml").write_text(yaml.safe_dump({"version": "99"}))
    with pytest.raises(ConfigError):
        Registry.open(registry.path)


def test_add_and_list(registry):
    data = make_crate("alpha", "1.0.0")
    entry = registry.add(data)

    crates = registry.list_all()
    assert list(crates) == ["alpha"]
    assert list(crates["alpha"]) == ["1.0.0"]
    assert crates["alpha"]["1.0.0"] == entry
    assert entry.cksum == hashlib.sha256(data).hexdigest()


def test_add_writes_sharded_paths(registry):
    data = make_crate("alpha", "1.0.0")
    registry.add(data)

    assert (registry.path / "al" / "ph" / "alpha").is_file()
    archive = registry.path / "crates" / "al" / "ph" / "alpha" / "1.0.0.crate"
    assert archive.read_bytes() == data


def test_add_short_names(registry):
    for name in ["a", "ab", "abc"]:
        registry.add(make_crate(name, "0.1.0"))

    assert (registry.path / "1" / "a").is_file()
    assert (registry.path / "2" / "ab").is_file()
    assert (registry.path / "3" / "a" / "abc").is_file()
    assert (registry.path / "crates" / "3" / "a" / "abc" / "0.1.0.crate").is_file()
    assert sorted(registry.list_all()) == ["a", "ab", "abc"]


def test_adding_duplicate_crate(registry):
    data = make_crate("duplicated", "1.0.0")
    registry.add(data)
    registry.add(data)

    index_path = registry.path / "du" / "pl" / "duplicated"
    assert len(index_path.read_text().splitlines()) == 1
    assert registry.list_all()["duplicated"]["1.0.0"].cksum == hashlib.sha256(data).hexdigest()


def test_readding_overwrites_record(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    changed = make_crate("alpha", "1.0.0", extra='[features]\nextra = []\n')
    registry.add(changed)

    entry = registry.list_all()["alpha"]["1.0.0"]
    assert entry.cksum == hashlib.sha256(changed).hexdigest()
    assert entry.features == {"extra": []}
    archive = registry.crate_file_path_for(entry.name, "1.0.0")
    assert archive.read_bytes() == changed


def test_multiple_versions(registry):
    for vers in ["1.0.0", "1.1.0", "2.0.0"]:
        registry.add(make_crate("alpha", vers))

    index = registry.list_all()["alpha"]
    assert sorted(index) == ["1.0.0", "1.1.0", "2.0.0"]
    assert len((registry.path / "al" / "ph" / "alpha").read_text().splitlines()) == 3


def test_add_records_dependency_registries(registry):
    data = make_crate(
        "alpha",
        "1.0.0",
        extra=f"""\
        [dependencies.serde]
        version = "1"

        [dependencies.beta]
        version = "0.1"
        registry-index = "{BASE_URL}"
        """,
    )
    entry = registry.add(data)
    deps = {d.name: d.registry for d in entry.deps}
    assert deps == {"serde": CRATES_IO_INDEX_URL, "beta": None}


def test_custom_upstream_index(tmp_path):
    upstream = "https://mirror.example.net/index"
    reg = Registry.initialize(ConfigV1(base_url=BASE_URL), tmp_path, upstream_index_url=upstream)
    entry = reg.add(make_crate("alpha", "1.0.0", extra='[dependencies]\nrand = "0.8"\n'))
    assert entry.deps[0].registry == upstream


def test_add_without_manifest_changes_nothing(registry):
    with pytest.raises(ManifestMissingError):
        registry.add(build_crate({"alpha-1.0.0/src/lib.rs": ""}))
    assert registry.list_all() == {}
    assert not (registry.path / "crates").exists()


def test_add_rejects_version_outside_crate_dir(registry):
    crate = build_crate(
        {"alpha/Cargo.toml": '[package]\nname = "alpha"\nversion = "../../../../../escaped"\n'}
    )
    with pytest.raises(ManifestError):
        registry.add(crate)
    assert list(registry.path.parent.rglob("*.crate")) == []
    assert registry.list_all() == {}


def test_add_file(registry, tmp_path):
    crate_file = tmp_path / "alpha-1.0.0.crate"
    crate_file.write_bytes(make_crate("alpha", "1.0.0"))
    entry = registry.add_file(crate_file)
    assert entry.qualified_id == "alpha@1.0.0"


def test_yank_and_unyank(registry):
    registry.add(make_crate("alpha", "1.0.0"))

    registry.yank("alpha", "1.0.0")
    assert registry.list_all()["alpha"]["1.0.0"].yanked is True

    registry.unyank("alpha", "1.0.0")
    assert registry.list_all()["alpha"]["1.0.0"].yanked is False


def test_yank_twice_is_noop(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    registry.yank("alpha", "1.0.0")
    entry = registry.yank("alpha", "1.0.0")
    assert entry.yanked is True


def test_yank_keeps_checksum(registry):
    data = make_crate("alpha", "1.0.0")
    registry.add(data)
    registry.yank("alpha", "1.0.0")
    assert registry.list_all()["alpha"]["1.0.0"].cksum == hashlib.sha256(data).hexdigest()


def test_yank_nonexistent_version(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    with pytest.raises(NotFoundError):
        registry.yank("alpha", "9.9.9")


def test_yank_never_published_crate(registry):
    with pytest.raises(VersionNotFoundError):
        registry.yank("ghost", "1.0.0")
    assert not (registry.path / "gh" / "os" / "ghost").exists()


def test_yank_invalid_name(registry):
    with pytest.raises(InvalidNameError):
        registry.yank("not a name", "1.0.0")


def test_remove_keeps_archive(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    registry.add(make_crate("alpha", "1.1.0"))

    registry.remove("alpha", "1.0.0")

    assert "1.0.0" not in registry.list_all()["alpha"]
    assert "1.1.0" in registry.list_all()["alpha"]
    assert (registry.path / "crates" / "al" / "ph" / "alpha" / "1.0.0.crate").is_file()


def test_remove_last_version_keeps_empty_index(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    registry.remove("alpha", "1.0.0")

    index_path = registry.path / "al" / "ph" / "alpha"
    assert index_path.is_file()
    assert index_path.read_text() == ""
    assert registry.list_all() == {"alpha": {}}
    assert registry.get_index("alpha") == {}


def test_remove_twice_fails(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    registry.remove("alpha", "1.0.0")
    with pytest.raises(VersionNotFoundError):
        registry.remove("alpha", "1.0.0")


def test_list_all_fresh_registry(registry):
    assert registry.list_all() == {}


def test_list_all_ignores_other_files(registry):
    registry.add(make_crate("alpha", "1.0.0"))
    (registry.path / "crates" / "README.txt").write_text("hello")
    (registry.path / "crates" / "al" / "ph" / "alpha" / "notes.md").write_text("x")
    assert list(registry.list_all()) == ["alpha"]


def test_list_all_multiple_crates():
    with tempfile.TemporaryDirectory() as tmpdir:
        reg = Registry.initialize(ConfigV1(base_url=BASE_URL), tmpdir)
        reg.add(make_crate("alpha", "1.0.0"))
        reg.add(make_crate("beta", "0.1.0"))
        reg.add(make_crate("beta", "0.2.0"))

        crates = reg.list_all()
        assert sorted(crates) == ["alpha", "beta"]
        assert sorted(crates["beta"]) == ["0.1.0", "0.2.0"]
