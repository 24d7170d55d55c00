"""Source file -> PDF bytes converters.

Every converter is a context manager. CAD converters start the CAD
application on ``__enter__`` and always shut it down on ``__exit__``; the
application handle never outlives the ``with`` block.

    with build_converter("solidworks") as conv:
        pdf_bytes = conv.convert("bracket.slddrw")
"""
from __future__ import annotations

import logging
import tempfile
from io import BytesIO
from pathlib import Path
from typing import Any, Callable

from PIL import Image, ImageSequence

from .errors import ConversionError

logger = logging.getLogger(__name__)

# SOLIDWORKS API enum values (swconst)
SW_DOC_DRAWING = 3  # swDocumentTypes_e.swDocDRAWING
SW_SAVE_AS_CURRENT_VERSION = 0  # swSaveAsVersion_e.swSaveAsCurrentVersion
SW_SAVE_AS_OPTIONS_SILENT = 1  # swSaveAsOptions_e.swSaveAsOptions_Silent
SW_WINDOW_MINIMIZED = 0  # swWindowState_e.swWindowMinimized

AUTOCAD_PDF_PLOTTER = "DWG To PDF.pc3"


def _com_dispatch(prog_id: str) -> Any:
    try:
        import win32com.client
    except Exception as e:  # pragma: no cover
        raise RuntimeError("pywin32 is required for CAD automation (Windows only). Install pywin32.") from e
    return win32com.client.Dispatch(prog_id)


def _int_ref() -> Any:
    """By-reference int for COM out parameters; read back through .value."""
    import pythoncom
    from win32com.client import VARIANT

    return VARIANT(pythoncom.VT_BYREF | pythoncom.VT_I4, 0)


def _null_dispatch() -> Any:
    import pythoncom
    from win32com.client import VARIANT

    return VARIANT(pythoncom.VT_DISPATCH, None)


class Converter:
    """Base converter: no session needed."""

    name = "base"

    def __enter__(self) -> Converter:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def convert(self, source_path: str | Path) -> bytes:
        raise NotImplementedError


class TiffConverter(Converter):
    """Lay each TIFF frame onto its own PDF page sized from pixels and DPI."""

    name = "tiff"

    def __init__(self, default_dpi: float = 72.0):
        self.default_dpi = float(default_dpi)

    def _frame_dpi(self, frame: Image.Image) -> tuple[float, float]:
        dpi = frame.info.get("dpi")
        try:
            dx, dy = float(dpi[0]), float(dpi[1])
        except Exception:
            return self.default_dpi, self.default_dpi
        if dx <= 0 or dy <= 0:
            return self.default_dpi, self.default_dpi
        return dx, dy

    def convert(self, source_path: str | Path) -> bytes:
        import fitz  # PyMuPDF

        src = Path(source_path)
        try:
            img = Image.open(src)
        except Exception as e:
            raise ConversionError(src, f"failed_to_open_image: {e}") from e

        doc = fitz.open()
        try:
            with img:
                for frame in ImageSequence.Iterator(img):
                    dx, dy = self._frame_dpi(frame)
                    w_px, h_px = frame.size
                    page = doc.new_page(width=w_px * 72.0 / dx, height=h_px * 72.0 / dy)

                    buf = BytesIO()
                    frame.convert("RGB").save(buf, format="PNG")
                    page.insert_image(page.rect, stream=buf.getvalue())

            if doc.page_count == 0:
                raise ConversionError(src, "no_frames")
            return doc.tobytes()
        finally:
            doc.close()


class CadConverter(Converter):
    """Converter backed by a CAD application's COM automation interface."""

    prog_id = ""

    def __init__(self, dispatch: Callable[[str], Any] | None = None):
        self._dispatch = dispatch or _com_dispatch
        self._app: Any | None = None

    @property
    def app(self) -> Any:
        if self._app is None:
            raise RuntimeError(f"{self.name} converter used outside its session (use 'with')")
        return self._app

    def __enter__(self) -> CadConverter:
        try:
            self._app = self._dispatch(self.prog_id)
        except Exception as e:
            raise ConversionError(self.prog_id, f"automation_unavailable: {e}") from e
        logger.debug("started %s", self.prog_id)
        try:
            self._configure(self._app)
        except Exception as e:
            self.__exit__(None, None, None)
            raise ConversionError(self.prog_id, f"automation_unavailable: {e}") from e
        except BaseException:
            self.__exit__(None, None, None)
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        app, self._app = self._app, None
        if app is None:
            return None
        try:
            self._shutdown(app)
            logger.debug("stopped %s", self.prog_id)
        except Exception as e:
            logger.warning("failed to shut down %s: %s", self.prog_id, e)
        return None

    def _configure(self, app: Any) -> None:
        pass

    def _shutdown(self, app: Any) -> None:
        raise NotImplementedError

    def _save_pdf(self, source: Path, pdf_path: Path) -> None:
        raise NotImplementedError

    def convert(self, source_path: str | Path) -> bytes:
        src = Path(source_path)
        with tempfile.TemporaryDirectory(prefix="titleblock_") as tmp:
            pdf_path = Path(tmp) / f"{src.stem}.pdf"
            self._save_pdf(src, pdf_path)
            if not pdf_path.exists():
                raise ConversionError(src, "no_pdf_written")
            return pdf_path.read_bytes()


class SolidWorksConverter(CadConverter):
    name = "solidworks"
    prog_id = "SldWorks.Application"

    def _configure(self, app: Any) -> None:
        app.Visible = False
        app.FrameState = SW_WINDOW_MINIMIZED

    def _shutdown(self, app: Any) -> None:
        app.ExitApp()

    def _save_pdf(self, source: Path, pdf_path: Path) -> None:
        app = self.app
        doc = app.OpenDoc(str(source), SW_DOC_DRAWING)
        if doc is None:
            raise ConversionError(source, "failed_to_open (is SOLIDWORKS installed and the file accessible?)")

        errors = _int_ref()
        warnings = _int_ref()
        try:
            ok = doc.Extension.SaveAs(
                str(pdf_path),
                SW_SAVE_AS_CURRENT_VERSION,
                SW_SAVE_AS_OPTIONS_SILENT,
                _null_dispatch(),
                errors,
                warnings,
            )
        finally:
            app.CloseDoc(doc.GetTitle())

        if not ok or int(errors.value) != 0:
            raise ConversionError(
                source, f"save_as_pdf_failed errors={int(errors.value)} warnings={int(warnings.value)}"
            )


class AutoCadConverter(CadConverter):
    name = "autocad"
    prog_id = "AutoCAD.Application"

    def __init__(self, dispatch: Callable[[str], Any] | None = None, plotter: str = AUTOCAD_PDF_PLOTTER):
        super().__init__(dispatch=dispatch)
        self.plotter = plotter

    def _configure(self, app: Any) -> None:
        app.Visible = False

    def _shutdown(self, app: Any) -> None:
        app.Quit()

    def _save_pdf(self, source: Path, pdf_path: Path) -> None:
        try:
            doc = self.app.Documents.Open(str(source), True)
        except Exception as e:
            raise ConversionError(source, f"failed_to_open: {e}") from e
        if doc is None:
            raise ConversionError(source, "failed_to_open")

        try:
            # foreground plotting so PlotToFile returns after the file is written
            doc.SetVariable("BACKGROUNDPLOT", 0)
            ok = doc.Plot.PlotToFile(str(pdf_path), self.plotter)
        finally:
            doc.Close(False)

        if not ok:
            raise ConversionError(source, "plot_to_pdf_failed")


CONVERTERS: dict[str, type[Converter]] = {
    TiffConverter.name: TiffConverter,
    SolidWorksConverter.name: SolidWorksConverter,
    AutoCadConverter.name: AutoCadConverter,
}


def build_converter(name: str, convert_cfg: dict[str, Any] | None = None, **kwargs: Any) -> Converter:
    cfg = convert_cfg or {}
    if name == TiffConverter.name:
        return TiffConverter(default_dpi=float(cfg.get("tiff_default_dpi", 72)))
    if name == AutoCadConverter.name:
        return AutoCadConverter(plotter=str(cfg.get("autocad_plotter", AUTOCAD_PDF_PLOTTER)), **kwargs)
    if name in CONVERTERS:
        return CONVERTERS[name](**kwargs)
    raise ValueError(f"Unknown converter backend: {name}")
