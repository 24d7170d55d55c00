from __future__ import annotations

from pathlib import Path


class InvalidArgument(ValueError):
    """Raised for geometry or config values the extractor cannot work with."""


class ConversionError(RuntimeError):
    def __init__(self, source_path: str | Path, message: str):
        self.source_path = str(source_path)
        self.message = message
        super().__init__(f"{message}: {self.source_path}")
