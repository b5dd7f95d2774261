"""Loading and validation of the optional YAML configuration file."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from fastbootctl.core.errors import ConfigError

LOGGER = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    reconnect_delays_s: tuple[float, ...] = (3.0, 30.0)
    wait_for_connect_event: bool = True
    vendor_ids: tuple[int, ...] = (0x18D1,)
    poll_interval_s: float = 1.0
    default_sleep_s: float = 5.0


def _load_schema_validator() -> Any:
    schema_text = resources.files("fastbootctl.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "fastbootctl" / CONFIG_FILENAME


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def build_settings(doc: dict[str, Any], source: Path | str = "<config>") -> Settings:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    defaults = Settings()
    reconnect = doc.get("reconnect", {})
    usb = doc.get("usb", {})
    script = doc.get("script", {})
    return Settings(
        reconnect_delays_s=tuple(
            float(d) for d in reconnect.get("delays_s", defaults.reconnect_delays_s)
        ),
        wait_for_connect_event=reconnect.get("wait_for_event", defaults.wait_for_connect_event),
        vendor_ids=tuple(int(v) for v in usb.get("vendor_ids", defaults.vendor_ids)),
        poll_interval_s=float(usb.get("poll_interval_s", defaults.poll_interval_s)),
        default_sleep_s=float(script.get("default_sleep_s", defaults.default_sleep_s)),
    )


def load_settings(path: Path | None = None) -> Settings:
    path = path or config_path()
    if not path.exists():
        LOGGER.debug("No config file at %s, using defaults", path)
        return Settings()
    return build_settings(_read_yaml(path), path)
