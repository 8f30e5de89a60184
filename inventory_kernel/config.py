"""
Runtime configuration (``inventory_kernel.config``).

Responsibility
--------------
Loads the packaged ``defaults.yaml``, overlays an optional deployment file,
applies environment overrides, and returns a frozen ``InventorySettings``.

Overlay rules
-------------
* Scalars replace the default.
* ``publisher`` is merged key by key.
* ``roles`` replaces the default mapping wholesale, so a deployment can
  remove a role's capability by omitting it.
* ``INVENTORY_DATABASE_URL`` wins over both files.

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown top-level or publisher key, or a non-positive queue size
  -> ``ValueError``.
* Unknown capability name in ``roles``  -> ``ValueError`` from
  ``build_capability_policy``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from inventory_kernel.domain.capabilities import CapabilityPolicy

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
DATABASE_URL_ENV = "INVENTORY_DATABASE_URL"

_TOP_LEVEL_KEYS = frozenset({"database_url", "echo_sql", "log_level", "publisher", "roles"})
_PUBLISHER_KEYS = frozenset({"queue_size", "topic"})


@dataclass(frozen=True)
class PublisherSettings:
    queue_size: int = 1000
    topic: str = "low_stock_alert"


@dataclass(frozen=True)
class InventorySettings:
    database_url: str
    echo_sql: bool = False
    log_level: str = "INFO"
    publisher: PublisherSettings = field(default_factory=PublisherSettings)
    roles: Mapping[str, tuple[str, ...]] = field(default_factory=dict)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file.  An empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    unknown = set(overlay) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

    merged = dict(base)
    for key, value in overlay.items():
        if key == "publisher":
            publisher = dict(base.get("publisher") or {})
            publisher.update(value or {})
            merged[key] = publisher
        else:
            merged[key] = value
    return merged


def _parse(raw: dict[str, Any]) -> InventorySettings:
    publisher_raw = raw.get("publisher") or {}
    unknown = set(publisher_raw) - _PUBLISHER_KEYS
    if unknown:
        raise ValueError(f"Unknown publisher keys: {sorted(unknown)}")

    publisher = PublisherSettings(
        queue_size=int(publisher_raw.get("queue_size", PublisherSettings.queue_size)),
        topic=str(publisher_raw.get("topic", PublisherSettings.topic)),
    )
    if publisher.queue_size <= 0:
        raise ValueError("publisher.queue_size must be positive")

    roles = MappingProxyType({
        str(role): tuple(names or ())
        for role, names in (raw.get("roles") or {}).items()
    })

    return InventorySettings(
        database_url=str(raw["database_url"]),
        echo_sql=bool(raw.get("echo_sql", False)),
        log_level=str(raw.get("log_level", "INFO")).upper(),
        publisher=publisher,
        roles=roles,
    )


def load_settings(path: str | Path | None = None) -> InventorySettings:
    """
    Build settings from the packaged defaults and an optional overlay file.

    Args:
        path: Deployment YAML overlaying the defaults.
    """
    raw = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        raw = _merge(raw, load_yaml_file(Path(path)))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        raw["database_url"] = env_url

    return _parse(raw)


def build_capability_policy(settings: InventorySettings) -> CapabilityPolicy:
    """Role mapping from settings as a CapabilityPolicy."""
    return CapabilityPolicy.from_names(
        {role: list(names) for role, names in settings.roles.items()}
    )
