from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any

import cv2
import numpy as np
from PIL import Image, ImageEnhance

from .types import Page, Rectangle, Token

logger = logging.getLogger(__name__)


def _poly_to_xyxy(poly: list[list[float]] | list[tuple[float, float]]) -> tuple[float, float, float, float]:
    xs = [p[0] for p in poly]
    ys = [p[1] for p in poly]
    return float(min(xs)), float(min(ys)), float(max(xs)), float(max(ys))


def pixel_bbox_to_rect(
    bbox_xyxy: tuple[float, float, float, float],
    *,
    region: Rectangle,
    zoom: float,
) -> Rectangle:
    """Map a pixel box from a rendered region crop back to page points.

    The crop's pixel origin is the region's top-left corner and pixel y grows
    downward; page points have y growing upward.
    """
    x0, y0, x1, y1 = bbox_xyxy
    return Rectangle(
        left=region.left + x0 / zoom,
        bottom=region.top - y1 / zoom,
        right=region.left + x1 / zoom,
        top=region.top - y0 / zoom,
    )


@dataclass
class OCRExtractor:
    """Text for image-only pages (scanned drawings) via EasyOCR or PaddleOCR."""

    lang: str = "en"
    engine: str = "auto"  # auto, easyocr, paddleocr
    dpi: int = 300
    use_preprocessing: bool = True
    max_retries: int = 2
    _ocr: Any | None = field(default=None, repr=False)

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """Binarize, denoise and sharpen a scan before the second OCR attempt."""
        if not self.use_preprocessing:
            return image

        try:
            img_array = np.array(image.convert("RGB"))
            gray = cv2.cvtColor(img_array, cv2.COLOR_RGB2GRAY)

            # adaptive threshold copes with uneven scan lighting
            binary = cv2.adaptiveThreshold(
                gray, 255,
                cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                cv2.THRESH_BINARY,
                11, 2
            )
            denoised = cv2.fastNlMeansDenoising(binary, None, 10, 7, 21)
            kernel = np.array([[-1, -1, -1], [-1, 9, -1], [-1, -1, -1]])
            sharpened = cv2.filter2D(denoised, -1, kernel)

            processed = ImageEnhance.Contrast(Image.fromarray(sharpened)).enhance(1.5)
            return processed.convert("RGB")
        except Exception as e:
            logger.debug("preprocessing failed, using original image: %s", e)
            return image

    def render_region(self, fitz_page: Any, page: Page, region: Rectangle) -> tuple[Image.Image, float]:
        import fitz  # PyMuPDF

        rect = fitz_page.rect
        # page points (y up) -> PyMuPDF clip (y down)
        clip = fitz.Rect(
            rect.x0 + region.left,
            rect.y0 + (page.height - region.top),
            rect.x0 + region.right,
            rect.y0 + (page.height - region.bottom),
        )
        zoom = self.dpi / 72.0
        pix = fitz_page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), clip=clip, alpha=False)
        img = Image.open(BytesIO(pix.tobytes("png"))).convert("RGB")
        return img, zoom

    def tokens_for_region(self, fitz_page: Any, page: Page, region: Rectangle) -> list[Token]:
        if region.width <= 0 or region.height <= 0:
            return []
        image, zoom = self.render_region(fitz_page, page, region)
        raw = self.extract(image)
        return [
            Token(text=str(t["text"]), bbox=pixel_bbox_to_rect(t["bbox_xyxy"], region=region, zoom=zoom))
            for t in raw
        ]

    def extract(self, image: Image.Image) -> list[dict[str, Any]]:
        """Return raw OCR tokens ({text, confidence, bbox_xyxy}) in pixel space.

        The first attempt uses the plain render, the retry uses the
        preprocessed image. Errors on the last attempt propagate.
        """
        for attempt in range(self.max_retries):
            processed = image if attempt == 0 else self._preprocess_image(image)
            try:
                tokens = self._extract_with_engine(processed)
            except Exception:
                if attempt == self.max_retries - 1:
                    raise
                continue
            if tokens:
                return tokens
            if attempt < self.max_retries - 1:
                time.sleep(0.1)
        return []

    def _extract_with_engine(self, image: Image.Image) -> list[dict[str, Any]]:
        if self.engine == "easyocr":
            return self._extract_easyocr(image)
        if self.engine == "paddleocr":
            return self._extract_paddleocr(image)
        if self.engine == "auto":
            try:
                return self._extract_easyocr(image)
            except ImportError:
                return self._extract_paddleocr(image)
        raise ValueError(f"Unknown OCR engine: {self.engine}")

    def _extract_easyocr(self, image: Image.Image) -> list[dict[str, Any]]:
        import easyocr

        if self._ocr is None or not isinstance(self._ocr, easyocr.Reader):
            self._ocr = easyocr.Reader(self.lang.split(","), gpu=False)

        tokens = []
        for (bbox, text, confidence) in self._ocr.readtext(np.array(image)):
            if not str(text).strip():
                continue
            tokens.append({
                "text": text,
                "confidence": float(confidence),
                "bbox_xyxy": _poly_to_xyxy(bbox),
            })
        return tokens

    def _extract_paddleocr(self, image: Image.Image) -> list[dict[str, Any]]:
        from paddleocr import PaddleOCR

        if self._ocr is None or not hasattr(self._ocr, "ocr"):
            self._ocr = PaddleOCR(use_angle_cls=True, lang=self.lang, show_log=False)

        arr = np.array(image)
        try:
            result = self._ocr.ocr(arr, cls=True)
        except TypeError:
            result = self._ocr.ocr(arr)

        tokens = []
        for line in result or []:
            for item in line or []:
                poly, (text, score) = item
                if not str(text).strip():
                    continue
                tokens.append({
                    "text": text,
                    "confidence": float(score),
                    "bbox_xyxy": _poly_to_xyxy(poly),
                })
        return tokens
