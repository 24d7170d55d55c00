from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .utils import append_jsonl, ensure_dir, utc_now_iso, write_json

CONTRACT_FILES = ("result.json", "metrics.json", "errors.jsonl", "region_text.txt")


@dataclass
class JobPaths:
    job_dir: Path
    result_json: Path
    metrics_json: Path
    errors_jsonl: Path
    region_text: Path

    @classmethod
    def for_job_dir(cls, job_dir: str | Path) -> JobPaths:
        job_dir = Path(job_dir)
        return cls(
            job_dir=job_dir,
            result_json=job_dir / "result.json",
            metrics_json=job_dir / "metrics.json",
            errors_jsonl=job_dir / "errors.jsonl",
            region_text=job_dir / "region_text.txt",
        )


def create_job_dirs(workspace: str | Path, job_id: str) -> JobPaths:
    paths = JobPaths.for_job_dir(Path(workspace) / "jobs" / job_id)
    ensure_dir(paths.job_dir)
    return paths


def new_job_id() -> str:
    """Timeline job id: YYYY-MM-DD/HH-MM-SS__<shortid>."""
    now = datetime.now(timezone.utc)
    short_id = uuid.uuid4().hex[:8]
    return f"{now.strftime('%Y-%m-%d')}/{now.strftime('%H-%M-%S')}__{short_id}"


def empty_metrics() -> dict[str, object]:
    return {
        "created_at": utc_now_iso(),
        "finished": False,
        "completed_at": None,
        "sources_total": 0,
        "sources_converted": 0,
        "sources_skipped_existing": 0,
        "sources_failed": 0,
        "pdfs_total": 0,
        "pdfs_failed": 0,
        "pages_total": 0,
        "pages_processed": 0,
        "pages_ocr": 0,
        "tokens_extracted": 0,
    }


def record_error(paths: JobPaths, source: str, stage: str, message: str) -> None:
    append_jsonl(paths.errors_jsonl, {"source": source, "stage": stage, "message": message})


def init_job_outputs(paths: JobPaths) -> None:
    # Always create output files, even if empty.
    write_json(paths.result_json, {"job": {}, "documents": []})
    write_json(paths.metrics_json, empty_metrics())
    paths.errors_jsonl.parent.mkdir(parents=True, exist_ok=True)
    paths.errors_jsonl.touch(exist_ok=True)
    paths.region_text.touch(exist_ok=True)
