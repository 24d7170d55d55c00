from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from types import SimpleNamespace
from typing import Callable

import fitz  # PyMuPDF
import pytest
from PIL import Image, ImageDraw

from titleblock_engine import converters


def write_text_pdf(path: Path, pages: list[list[tuple[float, float, str]]], *, width: float = 600, height: float = 800) -> Path:
    """Write a PDF; each page is a list of (x, baseline_y, text) in PyMuPDF (top-left) coordinates."""
    doc = fitz.open()
    for items in pages:
        page = doc.new_page(width=width, height=height)
        for x, y, text in items:
            page.insert_text((x, y), text, fontsize=10)
    path.parent.mkdir(parents=True, exist_ok=True)
    doc.save(str(path))
    doc.close()
    return path


def write_tiff(path: Path, sizes: list[tuple[int, int]], dpi: tuple[int, int] = (100, 100)) -> Path:
    frames = []
    for w, h in sizes:
        img = Image.new("RGB", (w, h), color=(255, 255, 255))
        ImageDraw.Draw(img).rectangle([5, 5, w - 5, h - 5], outline=(0, 0, 0), width=2)
        frames.append(img)
    path.parent.mkdir(parents=True, exist_ok=True)
    frames[0].save(path, format="TIFF", save_all=True, append_images=frames[1:], dpi=dpi)
    return path


class FakeSwDoc:
    def __init__(self, app: "FakeSldWorks", path: str):
        self.app = app
        self.path = path
        self.Extension = self

    def GetTitle(self) -> str:
        return Path(self.path).name

    def SaveAs(self, pdf_path, version, options, export_data, errors, warnings):
        self.app.saved.append((self.path, pdf_path, version, options))
        if self.app.save_errors:
            errors.value = self.app.save_errors
            return False
        write_text_pdf(Path(pdf_path), [self.app.pdf_text])
        return True


class FakeSldWorks:
    """Stands in for the SldWorks.Application COM object."""

    def __init__(self, *, fail_open: bool = False, save_errors: int = 0, pdf_text=None):
        self.fail_open = fail_open
        self.save_errors = save_errors
        self.pdf_text = pdf_text or [(480, 780, "PART-42")]
        self.Visible = True
        self.FrameState = None
        self.opened: list[str] = []
        self.closed: list[str] = []
        self.saved: list[tuple] = []
        self.exited = False

    def OpenDoc(self, path, doc_type):
        self.opened.append(path)
        if self.fail_open:
            return None
        return FakeSwDoc(self, path)

    def CloseDoc(self, title):
        self.closed.append(title)

    def ExitApp(self):
        self.exited = True


class UnconfigurableSldWorks(FakeSldWorks):
    """Starts, but rejects hiding its window (COM "member not found")."""

    @property
    def Visible(self):
        return True

    @Visible.setter
    def Visible(self, value):
        if not value:
            raise OSError("member not found")


@pytest.fixture
def workspace_dir() -> Path:
    """Create temporary workspace."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def fake_com_refs(monkeypatch) -> None:
    """Replace pywin32 VARIANT out-parameters with plain objects."""
    monkeypatch.setattr(converters, "_int_ref", lambda: SimpleNamespace(value=0))
    monkeypatch.setattr(converters, "_null_dispatch", lambda: None)


@pytest.fixture
def make_pdf() -> Callable[..., Path]:
    return write_text_pdf


@pytest.fixture
def make_tiff() -> Callable[..., Path]:
    return write_tiff
