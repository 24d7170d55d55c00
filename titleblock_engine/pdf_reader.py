from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator

from .types import Page, Rectangle, Token


def _open_pdf(pdf_path: str | Path) -> Any:
    try:
        import fitz  # PyMuPDF
    except Exception as e:  # pragma: no cover
        raise RuntimeError("PyMuPDF is required to read PDFs. Install pymupdf.") from e
    return fitz.open(Path(pdf_path))


def page_from_words(
    words: Iterable[tuple[Any, ...]],
    *,
    width: float,
    height: float,
    origin: tuple[float, float] = (0.0, 0.0),
    page_index: int = 0,
    source_ref: str = "",
    sort_words: bool = False,
) -> Page:
    """Build a Page from PyMuPDF word tuples.

    PyMuPDF reports (x0, y0, x1, y1, text, block_no, line_no, word_no) with the
    origin at the top-left and y growing downward. Tokens are flipped into the
    bottom-left / y-up convention used by the region filter.
    """
    ox, oy = origin
    rows = [w for w in words if len(w) >= 5 and str(w[4]).strip()]
    if sort_words:
        # block, line, word numbers give reading order
        rows.sort(key=lambda w: (w[5], w[6], w[7]) if len(w) >= 8 else (0, 0, 0))

    tokens: list[Token] = []
    for w in rows:
        x0, y0, x1, y1 = (float(v) for v in w[:4])
        left, right = min(x0, x1) - ox, max(x0, x1) - ox
        top = height - (min(y0, y1) - oy)
        bottom = height - (max(y0, y1) - oy)
        tokens.append(Token(text=str(w[4]), bbox=Rectangle(left=left, bottom=bottom, right=right, top=top)))

    return Page(
        width=float(width),
        height=float(height),
        tokens=tuple(tokens),
        page_index=page_index,
        source_ref=source_ref,
    )


def page_from_fitz(fitz_page: Any, *, pdf_name: str, sort_words: bool = False) -> Page:
    rect = fitz_page.rect
    return page_from_words(
        fitz_page.get_text("words") or [],
        width=float(rect.width),
        height=float(rect.height),
        origin=(float(rect.x0), float(rect.y0)),
        page_index=int(fitz_page.number),
        source_ref=f"{pdf_name}#page={int(fitz_page.number) + 1}",
        sort_words=sort_words,
    )


@dataclass(frozen=True)
class PdfPageReader:
    pdf_path: str | Path
    sort_words: bool = False

    def iter_pages(self) -> Iterator[Page]:
        for page, _ in self.iter_pages_with_handles():
            yield page

    def iter_pages_with_handles(self) -> Iterator[tuple[Page, Any]]:
        """Yield (Page, fitz.Page) pairs; the fitz page is needed for OCR rendering."""
        pdf_path = Path(self.pdf_path)
        doc = _open_pdf(pdf_path)
        try:
            for i in range(doc.page_count):
                p = doc.load_page(i)
                yield page_from_fitz(p, pdf_name=pdf_path.name, sort_words=self.sort_words), p
        finally:
            doc.close()
