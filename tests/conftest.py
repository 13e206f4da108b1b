"""Shared fixtures: building .crate packages and scratch registries."""

import io
import tarfile
import textwrap

import pytest

from crateyard.registry.config import ConfigV1
from crateyard.registry.local_registry import Registry

BASE_URL = "https://example.com/"


def make_cargo_toml(name: str, version: str, extra: str = "") -> str:
    manifest = textwrap.dedent(
        f"""\
        [package]
        name = "{name}"
        version = "{version}"
        """
    )
    if extra:
        manifest += "\n" + textwrap.dedent(extra)
    return manifest


def build_crate(files: dict[str, bytes | str]) -> bytes:
    """Pack ``files`` (archive path -> content) into a gzipped tarball."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for path, content in files.items():
            if isinstance(content, str):
                content = content.encode("utf-8")
            info = tarfile.TarInfo(path)
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def make_crate(name: str, version: str, extra: str = "") -> bytes:
    root = f"{name}-{version}"
    return build_crate(
        {
            f"{root}/Cargo.toml.orig": "# original manifest\n",
            f"{root}/Cargo.toml": make_cargo_toml(name, version, extra),
            f"{root}/src/lib.rs": "pub const ID: u8 = 1;\n",
        }
    )


@pytest.fixture
def registry(tmp_path):
    config = ConfigV1(base_url=BASE_URL)
    return Registry.initialize(config, tmp_path / "registry")
