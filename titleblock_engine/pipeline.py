from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable

from .config import EngineConfig
from .converters import Converter, build_converter
from .errors import ConversionError, InvalidArgument
from .job import JobPaths, empty_metrics, record_error
from .ocr import OCRExtractor
from .pdf_reader import PdfPageReader
from .region import PageRegionTextExtractor
from .utils import round_bbox, utc_now_iso
from .walker import iter_files
from .writer import JobWriter

logger = logging.getLogger(__name__)

ConverterFactory = Callable[[str, dict[str, Any]], Converter]


@dataclass
class RunOptions:
    input_path: str  # folder of sources/PDFs, or a single PDF for extract-only runs
    out_dir: str | None = None  # default: PDFs are written next to their sources
    convert: bool = True
    extract: bool = True
    overwrite: bool = False
    recursive: bool = False


class BatchPipeline:
    def __init__(
        self,
        paths: JobPaths,
        cfg: EngineConfig,
        opts: RunOptions,
        converter_factory: ConverterFactory | None = None,
    ):
        self.paths = paths
        self.cfg = cfg
        self.opts = opts
        self.converter_factory = converter_factory or build_converter

        self.extractor = PageRegionTextExtractor(spec=cfg.region)
        self.sort_words = bool(cfg.extract.get("sort_words", False))

        ocr_engine = str(cfg.extract.get("ocr_engine", "off"))
        self.ocr: OCRExtractor | None = None
        if ocr_engine != "off":
            self.ocr = OCRExtractor(
                lang=str(cfg.extract.get("ocr_lang", "en")),
                engine=ocr_engine,
                dpi=int(cfg.extract.get("ocr_dpi", 300)),
            )
        self.writer = JobWriter(paths=paths)

    # -- paths -----------------------------------------------------------

    @property
    def input_path(self) -> Path:
        return Path(self.opts.input_path)

    @property
    def output_root(self) -> Path:
        if self.opts.out_dir:
            return Path(self.opts.out_dir)
        if self.input_path.is_file():
            return self.input_path.parent
        return self.input_path

    def target_pdf_path(self, source: Path) -> Path:
        if self.opts.out_dir:
            return Path(self.opts.out_dir) / f"{source.stem}.pdf"
        return source.with_suffix(".pdf")

    # -- convert phase ---------------------------------------------------

    def _pending_by_backend(self, metrics: dict[str, Any], converted: dict[Path, Path]) -> dict[str, list[Path]]:
        backends = self.cfg.backends
        sources = iter_files(self.input_path, backends.keys(), recursive=self.opts.recursive)
        metrics["sources_total"] += len(sources)

        pending: dict[str, list[Path]] = {}
        claimed: dict[Path, Path] = {}
        for src in sources:
            target = self.target_pdf_path(src)
            key = target.resolve()
            if key in claimed:
                # two sources share a stem (part.slddrw and part.dwg); the first one wins
                metrics["sources_failed"] += 1
                message = f"target_collision: {target} already produced by {claimed[key]}"
                record_error(self.paths, source=str(src), stage="convert", message=message)
                logger.warning("skip %s: %s", src, message)
                continue
            claimed[key] = src
            if target.exists() and not self.opts.overwrite:
                metrics["sources_skipped_existing"] += 1
                converted[target.resolve()] = src
                logger.info("skip %s: %s already exists", src, target)
                continue
            pending.setdefault(backends[src.suffix.lower()], []).append(src)
        return pending

    def convert_sources(self, metrics: dict[str, Any]) -> dict[Path, Path]:
        """Convert every source file; returns resolved PDF path -> source path."""
        converted: dict[Path, Path] = {}
        pending = self._pending_by_backend(metrics, converted)

        for backend, sources in pending.items():
            try:
                converter = self.converter_factory(backend, self.cfg.convert)
                with converter:
                    for src in sources:
                        self._convert_one(converter, src, metrics, converted)
            except (ConversionError, ValueError) as e:
                # backend could not start: every file it owns fails
                for src in sources:
                    record_error(self.paths, source=str(src), stage=f"convert:{backend}", message=str(e))
                    print(f"Failed to convert {src} to PDF. {e}")
                metrics["sources_failed"] += len(sources)

        return converted

    def _convert_one(self, converter: Converter, src: Path, metrics: dict[str, Any], converted: dict[Path, Path]) -> None:
        target = self.target_pdf_path(src)
        try:
            pdf_bytes = converter.convert(src)
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(pdf_bytes)
        except Exception as e:
            metrics["sources_failed"] += 1
            record_error(self.paths, source=str(src), stage=f"convert:{converter.name}", message=str(e))
            print(f"Failed to convert {src} to PDF. {e}")
            return

        metrics["sources_converted"] += 1
        converted[target.resolve()] = src
        print(f"Successfully converted {src} to PDF.")

    # -- extract phase ---------------------------------------------------

    def _pdf_targets(self) -> list[Path]:
        if self.input_path.is_file():
            return [self.input_path]
        if not self.output_root.is_dir():
            record_error(self.paths, source=str(self.output_root), stage="extract", message="output_folder_missing")
            return []
        return iter_files(self.output_root, [".pdf"], recursive=self.opts.recursive)

    def extract_document(self, pdf_path: Path, metrics: dict[str, Any], source_path: Path | None = None) -> dict[str, Any]:
        reader = PdfPageReader(pdf_path, sort_words=self.sort_words)
        pages_out: list[dict[str, Any]] = []

        for page, fitz_page in reader.iter_pages_with_handles():
            metrics["pages_total"] += 1
            try:
                region = self.extractor.region_for(page)
            except InvalidArgument as e:
                record_error(self.paths, source=page.source_ref, stage="extract", message=str(e))
                continue

            used_ocr = False
            if not page.tokens and self.ocr is not None:
                try:
                    page = replace(page, tokens=tuple(self.ocr.tokens_for_region(fitz_page, page, region)))
                    used_ocr = True
                    metrics["pages_ocr"] += 1
                except Exception as e:
                    record_error(self.paths, source=page.source_ref, stage="ocr", message=str(e))

            tokens = self.extractor.extract(page)
            texts = [t.text for t in tokens]

            print(f"Extracted text from {pdf_path}:")
            for text in texts:
                print(text)
            self.writer.append_region_text(str(pdf_path), texts)

            metrics["pages_processed"] += 1
            metrics["tokens_extracted"] += len(tokens)
            pages_out.append(
                {
                    "page_index": page.page_index,
                    "source_ref": page.source_ref,
                    "width": page.width,
                    "height": page.height,
                    "region": round_bbox(region.to_list()),
                    "ocr": used_ocr,
                    "tokens": [{"text": t.text, "bbox": round_bbox(t.bbox.to_list())} for t in tokens],
                }
            )

        return {
            "pdf_path": str(pdf_path),
            "source_path": str(source_path) if source_path is not None else None,
            "pages": pages_out,
        }

    def extract_pdfs(self, converted: dict[Path, Path], metrics: dict[str, Any]) -> list[dict[str, Any]]:
        documents: list[dict[str, Any]] = []
        for pdf_path in self._pdf_targets():
            metrics["pdfs_total"] += 1
            try:
                documents.append(
                    self.extract_document(pdf_path, metrics, source_path=converted.get(pdf_path.resolve()))
                )
            except Exception as e:
                metrics["pdfs_failed"] += 1
                record_error(self.paths, source=str(pdf_path), stage="extract", message=str(e))
                logger.warning("failed to read %s: %s", pdf_path, e)
        return documents

    # -- run -------------------------------------------------------------

    def run(self, job_id: str) -> None:
        metrics = empty_metrics()
        job_meta = {
            "job_id": job_id,
            "input": str(self.input_path),
            "out_dir": str(self.output_root),
            "region": self.cfg.region.to_dict(),
            "ocr_engine": str(self.cfg.extract.get("ocr_engine", "off")),
            "created_at": utc_now_iso(),
        }

        converted: dict[Path, Path] = {}
        if self.opts.convert:
            if self.input_path.is_dir():
                converted = self.convert_sources(metrics)
            else:
                record_error(self.paths, source=str(self.input_path), stage="convert", message="input_is_not_a_folder")

        documents: list[dict[str, Any]] = []
        if self.opts.extract:
            documents = self.extract_pdfs(converted, metrics)

        self.writer.write_final(job_meta=job_meta, documents=documents, metrics=metrics)
