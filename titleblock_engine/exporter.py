from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .job import JobPaths
from .utils import load_json

CSV_FIELDS = ["pdf_path", "source_path", "page_number", "token_index", "text", "left", "bottom", "right", "top"]


@dataclass
class ExportStats:
    documents_seen: int = 0
    pages_seen: int = 0
    tokens_exported: int = 0
    tokens_invalid: int = 0


def export_csv(*, job_dir: str | Path, out_path: str | Path) -> ExportStats:
    """Export the extracted title block tokens of a finished job to CSV.

    One row per token; page_number is 1-based; rows keep document, page and
    token order from result.json. Tokens with a malformed bbox are counted in
    tokens_invalid and skipped.
    """
    paths = JobPaths.for_job_dir(job_dir)
    out_path = Path(out_path)

    result = load_json(paths.result_json)
    documents = result.get("documents", []) if isinstance(result, dict) else []

    stats = ExportStats()
    rows: list[dict[str, Any]] = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        stats.documents_seen += 1
        for page in doc.get("pages", []) or []:
            stats.pages_seen += 1
            for i, tok in enumerate(page.get("tokens", []) or []):
                bbox = tok.get("bbox") if isinstance(tok, dict) else None
                if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
                    stats.tokens_invalid += 1
                    continue
                rows.append(
                    {
                        "pdf_path": str(doc.get("pdf_path") or ""),
                        "source_path": str(doc.get("source_path") or ""),
                        "page_number": int(page.get("page_index", 0)) + 1,
                        "token_index": i,
                        "text": str(tok.get("text") or ""),
                        "left": bbox[0],
                        "bottom": bbox[1],
                        "right": bbox[2],
                        "top": bbox[3],
                    }
                )

    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for r in rows:
            writer.writerow(r)
            stats.tokens_exported += 1

    return stats
