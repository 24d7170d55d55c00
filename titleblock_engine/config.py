from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .types import RegionSpec
from .utils import load_json

DEFAULT_BACKENDS: dict[str, str] = {
    ".slddrw": "solidworks",
    ".dwg": "solidworks",
    ".tif": "tiff",
    ".tiff": "tiff",
}


@dataclass(frozen=True)
class EngineConfig:
    region: RegionSpec = field(default_factory=RegionSpec)
    convert: dict[str, Any] = field(default_factory=dict)
    extract: dict[str, Any] = field(default_factory=dict)

    @property
    def backends(self) -> dict[str, str]:
        """Extension (lower-case, with dot) -> converter backend name."""
        raw = self.convert.get("backends") or DEFAULT_BACKENDS
        out: dict[str, str] = {}
        for ext, name in raw.items():
            ext = str(ext).strip().lower()
            out[ext if ext.startswith(".") else f".{ext}"] = str(name)
        return out


def config_from_dict(data: dict[str, Any]) -> EngineConfig:
    return EngineConfig(
        region=RegionSpec.from_dict(data.get("region", {}) or {}),
        convert=data.get("convert", {}) or {},
        extract=data.get("extract", {}) or {},
    )


def load_config(config_path: str | Path | None) -> EngineConfig:
    if config_path is None:
        return EngineConfig()
    return config_from_dict(load_json(config_path))
