from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .job import JobPaths
from .utils import append_lines, utc_now_iso, write_json


@dataclass
class JobWriter:
    paths: JobPaths

    def append_region_text(self, pdf_label: str, texts: list[str]) -> None:
        append_lines(self.paths.region_text, [f"Extracted text from {pdf_label}:", *texts])

    def write_final(
        self,
        job_meta: dict[str, Any],
        documents: list[dict[str, Any]],
        metrics: dict[str, Any],
    ) -> None:
        now = utc_now_iso()

        # Mark completion only when final outputs are successfully written.
        metrics_out = dict(metrics)
        metrics_out["finished"] = True
        metrics_out["completed_at"] = now

        job_out = dict(job_meta)
        job_out["finished"] = True
        job_out["completed_at"] = now

        write_json(self.paths.result_json, {"job": job_out, "documents": documents})
        write_json(self.paths.metrics_json, metrics_out)
