"""Registry configuration.

Two files live at the registry root:

- ``crateyard.yaml`` — the internal, versioned configuration. This is the
  only source of truth and the only one ever read back.
- ``config.json`` — the public configuration clients fetch. It is derived
  from the internal one on ``init`` and never parsed.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import yaml

from crateyard.errors import ConfigError
from crateyard.registry.manifest import normalize_url

CONFIG_FILE_NAME = "crateyard.yaml"
PUBLIC_CONFIG_FILE_NAME = "config.json"
CRATE_DIR_NAME = "crates"
CRATE_FILE_EXTENSION = "crate"

# Placeholder for the shard directories of a crate (``ab/cd``, ``3/a``...).
# ``{crate}`` and ``{version}`` are substituted by the client as well.
SHARD_PLACEHOLDER = "{shard}"


@dataclass
class HtmlConfig:
    """Settings for the optional HTML preview page."""

    USER_DEFAULT_ENABLED = True
    USER_DEFAULT_SUGGESTED_REGISTRY_NAME = "my-awesome-registry"

    enabled: bool = False
    suggested_registry_name: str | None = None

    def display_name(self) -> str:
        return self.suggested_registry_name or self.USER_DEFAULT_SUGGESTED_REGISTRY_NAME


@dataclass
class ConfigV1:
    """Version 1 of the internal configuration."""

    VERSION = "1"
    USER_DEFAULT_AUTH_REQUIRED = False

    base_url: str
    auth_required: bool = False
    html: HtmlConfig = field(default_factory=HtmlConfig)

    def __post_init__(self) -> None:
        self.base_url = normalize_url(self.base_url)


# The current configuration schema. New versions get their own dataclass
# and a step in ``upgrade_config``.
Config = ConfigV1


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def config_to_dict(config: ConfigV1) -> dict[str, Any]:
    html: dict[str, Any] = {"enabled": config.html.enabled}
    if config.html.suggested_registry_name is not None:
        html["suggested_registry_name"] = config.html.suggested_registry_name
    return {
        "version": ConfigV1.VERSION,
        "base_url": config.base_url,
        "auth_required": config.auth_required,
        "html": html,
    }


def _config_v1_from_dict(data: dict[str, Any]) -> ConfigV1:
    base_url = data.get("base_url")
    if not isinstance(base_url, str) or not base_url:
        raise ConfigError("The configuration has no base_url")

    auth_required = data.get("auth_required", False)
    if not isinstance(auth_required, bool):
        raise ConfigError("auth_required must be a boolean")

    html = data.get("html") or {}
    if not isinstance(html, dict):
        raise ConfigError("html must be a mapping")
    enabled = html.get("enabled", False)
    suggested = html.get("suggested_registry_name")
    if not isinstance(enabled, bool):
        raise ConfigError("html.enabled must be a boolean")
    if suggested is not None and not isinstance(suggested, str):
        raise ConfigError("html.suggested_registry_name must be a string")

    return ConfigV1(
        base_url=base_url,
        auth_required=auth_required,
        html=HtmlConfig(enabled=enabled, suggested_registry_name=suggested),
    )


_CONFIG_LOADERS = {
    ConfigV1.VERSION: _config_v1_from_dict,
}


def upgrade_config(config: ConfigV1) -> Config:
    """Bring a loaded configuration up to the current schema.

    Only version 1 exists, so this is the identity.
    """
    return config


def config_from_dict(data: Any) -> Config:
    if not isinstance(data, dict):
        raise ConfigError("The configuration must be a mapping")
    version = data.get("version")
    # YAML may hand us an int for an unquoted `version: 1`
    loader = _CONFIG_LOADERS.get(str(version)) if version is not None else None
    if loader is None:
        raise ConfigError(f"Unsupported configuration version: {version!r}")
    return upgrade_config(loader(data))


def dump_config(config: ConfigV1) -> str:
    try:
        return yaml.safe_dump(config_to_dict(config), sort_keys=False)
    except yaml.YAMLError as e:
        raise ConfigError("Could not serialize the registry's internal configuration") from e


def load_config(text: str) -> Config:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("Could not deserialize the registry's internal configuration") from e
    return config_from_dict(data)


# ---------------------------------------------------------------------------
# Public config.json
# ---------------------------------------------------------------------------


def download_template(config: ConfigV1) -> str:
    # Must stay a plain string: the client does literal replacement on the
    # braces, which URL quoting would escape.
    return (
        f"{config.base_url}{CRATE_DIR_NAME}/{SHARD_PLACEHOLDER}"
        f"/{{crate}}/{{version}}.{CRATE_FILE_EXTENSION}"
    )


def public_config(config: ConfigV1) -> dict[str, Any]:
    return {
        "dl": download_template(config),
        "api": None,
        "auth-required": config.auth_required,
    }


def dump_public_config(config: ConfigV1) -> str:
    try:
        return json.dumps(public_config(config))
    except (TypeError, ValueError) as e:
        raise ConfigError("Could not serialize the registry's public configuration") from e
