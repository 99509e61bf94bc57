from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

BUILTIN_CONFIG_DIR = Path(__file__).resolve().parent / "configs"

_SAFE_TYPE_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


class DeviceTypeConfigError(RuntimeError):
    pass


@dataclass
class DeviceTypeConfigRegistry:
    """
    Resolves device-type names to their JSON configuration.

    Each type has a `<name>.json` document of the form
    {"deviceType": {"label": ..., "category": ...}}. Directories are searched in order,
    so an override directory listed first shadows the built-in documents.
    """

    search_dirs: tuple[Path, ...]
    _cache: dict[str, dict] = field(default_factory=dict, repr=False)

    def _path_for(self, type_name: str) -> Path:
        if not type_name or not _SAFE_TYPE_NAME.match(type_name) or type_name.startswith("."):
            raise DeviceTypeConfigError(f"Invalid device type name: {type_name!r}")
        for d in self.search_dirs:
            p = d / f"{type_name}.json"
            if p.is_file():
                return p
        raise DeviceTypeConfigError(f"No configuration for device type {type_name!r}")

    def get_device_type_config(self, type_name: str) -> dict:
        if type_name in self._cache:
            return self._cache[type_name]

        p = self._path_for(type_name)
        try:
            config = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise DeviceTypeConfigError(f"Device type config {p.name} is invalid JSON: {e}") from e

        device_type = config.get("deviceType") if isinstance(config, dict) else None
        if not isinstance(device_type, dict):
            raise DeviceTypeConfigError(f"Device type config {p.name} has no deviceType object")
        missing = [k for k in ("label", "category") if not device_type.get(k)]
        if missing:
            raise DeviceTypeConfigError(f"Device type config {p.name} is missing: {', '.join(missing)}")

        logger.debug("Loaded device type config %s from %s", type_name, p)
        self._cache[type_name] = config
        return config

    def known_types(self) -> list[str]:
        names: set[str] = set()
        for d in self.search_dirs:
            if d.is_dir():
                names.update(p.stem for p in d.glob("*.json"))
        return sorted(names)


def registry_from_config(config: dict) -> DeviceTypeConfigRegistry:
    override = (config.get("DEVICE_TYPE_CONFIG_DIR") or "").strip()
    dirs: list[Path] = []
    if override:
        override_dir = Path(override)
        if not override_dir.is_dir():
            logger.error("DEVICE_TYPE_CONFIG_DIR %s is not a directory; using built-in device types only", override)
        else:
            dirs.append(override_dir)
    dirs.append(BUILTIN_CONFIG_DIR)
    return DeviceTypeConfigRegistry(search_dirs=tuple(dirs))
