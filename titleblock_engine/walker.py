from __future__ import annotations

from pathlib import Path
from typing import Iterable


def normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def iter_files(folder: str | Path, extensions: Iterable[str], *, recursive: bool = False) -> list[Path]:
    """List files in folder whose suffix matches one of extensions (case-insensitive).

    Sorted by path so batch runs are deterministic.
    """
    root = Path(folder)
    if not root.exists() or not root.is_dir():
        raise ValueError(f"expected a folder: {root}")

    exts = {normalize_extension(e) for e in extensions}
    candidates = root.rglob("*") if recursive else root.iterdir()
    return sorted(p for p in candidates if p.is_file() and p.suffix.lower() in exts)

