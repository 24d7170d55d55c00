from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from .config import EngineConfig, load_config
from .errors import InvalidArgument
from .exporter import export_csv
from .job import CONTRACT_FILES, create_job_dirs, init_job_outputs, new_job_id
from .pipeline import BatchPipeline, RunOptions
from .types import Containment, Corner
from .utils import load_json

DEFAULT_CONFIG = Path("config") / "default.json"


def _add_region_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--corner", default=None, choices=[c.value for c in Corner], help="Corner holding the title block")
    p.add_argument("--width-inset", type=float, default=None, help="Region width in points")
    p.add_argument("--height-inset", type=float, default=None, help="Region height in points")
    p.add_argument(
        "--containment",
        default=None,
        choices=[c.value for c in Containment],
        help="full: whole token box inside region; corner: bottom-left corner inside region",
    )


def _add_job_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--workspace", default="./workspace", help="Workspace root for job reports")
    p.add_argument("--config", default=None, help=f"Config path (default: {DEFAULT_CONFIG} when present)")
    p.add_argument("--recursive", action="store_true", help="Also walk subfolders")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="titleblock_engine")
    p.add_argument("--log-level", default="WARNING", help="Logging level (DEBUG, INFO, WARNING, ...)")
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Convert drawings/TIFFs to PDF, then extract title block text")
    run.add_argument("--input", required=True, help="Folder containing .slddrw, .dwg and .tif files")
    run.add_argument("--out-dir", default=None, help="Folder for generated PDFs (default: next to sources)")
    run.add_argument("--overwrite", action="store_true", help="Re-convert sources whose PDF already exists")
    run.add_argument("--no-convert", action="store_true", help="Skip conversion, only extract")
    _add_job_args(run)
    _add_region_args(run)

    conv = sub.add_parser("convert", help="Convert drawings/TIFFs to PDF only")
    conv.add_argument("--input", required=True, help="Folder containing .slddrw, .dwg and .tif files")
    conv.add_argument("--out-dir", default=None, help="Folder for generated PDFs (default: next to sources)")
    conv.add_argument("--overwrite", action="store_true", help="Re-convert sources whose PDF already exists")
    _add_job_args(conv)

    ext = sub.add_parser("extract", help="Extract title block text from a PDF or a folder of PDFs")
    ext.add_argument("--input", required=True, help="PDF file or folder of PDFs")
    _add_job_args(ext)
    _add_region_args(ext)

    export = sub.add_parser("export", help="Export extracted tokens from a completed job")
    export.add_argument("--job-dir", required=True, help="Job directory (workspace/jobs/<job_id>)")
    export.add_argument("--out", required=True, help="Output CSV path")

    validate = sub.add_parser("validate", help="Validate job output files and result.json schema")
    validate.add_argument("--job-dir", required=True, help="Job directory (workspace/jobs/<job_id>)")

    return p


def _resolve_config(args: argparse.Namespace) -> EngineConfig:
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG.exists():
        config_path = DEFAULT_CONFIG
    cfg = load_config(config_path)

    overrides: dict[str, Any] = {}
    if getattr(args, "corner", None):
        overrides["corner"] = Corner(args.corner)
    if getattr(args, "width_inset", None) is not None:
        overrides["width_inset"] = float(args.width_inset)
    if getattr(args, "height_inset", None) is not None:
        overrides["height_inset"] = float(args.height_inset)
    if getattr(args, "containment", None):
        overrides["containment"] = Containment(args.containment)
    if overrides:
        cfg = replace(cfg, region=replace(cfg.region, **overrides))
    return cfg


def _run_job(args: argparse.Namespace, opts: RunOptions) -> int:
    try:
        cfg = _resolve_config(args)
    except (InvalidArgument, OSError, ValueError) as e:
        print(f"config_error: {e}")
        return 2

    job_id = new_job_id()
    paths = create_job_dirs(args.workspace, job_id)
    init_job_outputs(paths)

    BatchPipeline(paths=paths, cfg=cfg, opts=opts).run(job_id=job_id)
    print(str(paths.job_dir))
    return 0


def _check_input(path: str, *, folder_only: bool) -> str | None:
    p = Path(path)
    if folder_only and not p.is_dir():
        return f"input_not_a_folder: {p}"
    if not p.exists():
        return f"input_missing: {p}"
    return None


def cmd_run(args: argparse.Namespace) -> int:
    err = _check_input(args.input, folder_only=True)
    if err:
        print(err)
        return 2
    opts = RunOptions(
        input_path=args.input,
        out_dir=args.out_dir,
        convert=not args.no_convert,
        extract=True,
        overwrite=bool(args.overwrite),
        recursive=bool(args.recursive),
    )
    return _run_job(args, opts)


def cmd_convert(args: argparse.Namespace) -> int:
    err = _check_input(args.input, folder_only=True)
    if err:
        print(err)
        return 2
    opts = RunOptions(
        input_path=args.input,
        out_dir=args.out_dir,
        convert=True,
        extract=False,
        overwrite=bool(args.overwrite),
        recursive=bool(args.recursive),
    )
    return _run_job(args, opts)


def cmd_extract(args: argparse.Namespace) -> int:
    err = _check_input(args.input, folder_only=False)
    if err:
        print(err)
        return 2
    opts = RunOptions(input_path=args.input, convert=False, extract=True, recursive=bool(args.recursive))
    return _run_job(args, opts)


def _is_bbox(v: Any) -> bool:
    return isinstance(v, (list, tuple)) and len(v) == 4 and all(isinstance(x, (int, float)) for x in v)


def _validate_documents_schema(obj: Any, errors: list[str]) -> int:
    invalid = 0
    documents = (obj or {}).get("documents", []) if isinstance(obj, dict) else []
    for d_idx, doc in enumerate(documents):
        if not isinstance(doc, dict):
            errors.append(f"invalid document[{d_idx}]: not an object")
            invalid += 1
            continue

        for k in ("pdf_path", "source_path", "pages"):
            if k not in doc:
                errors.append(f"invalid document[{d_idx}]: missing field {k}")
                invalid += 1

        for p_idx, page in enumerate(doc.get("pages", []) or []):
            if not isinstance(page, dict):
                errors.append(f"invalid document[{d_idx}].page[{p_idx}]: not an object")
                invalid += 1
                continue
            if not _is_bbox(page.get("region")):
                errors.append(f"invalid document[{d_idx}].page[{p_idx}]: region must be [l,b,r,t]")
                invalid += 1
            for t_idx, tok in enumerate(page.get("tokens", []) or []):
                if not isinstance(tok, dict) or not isinstance(tok.get("text"), str) or not _is_bbox(tok.get("bbox")):
                    errors.append(f"invalid document[{d_idx}].page[{p_idx}].token[{t_idx}]")
                    invalid += 1

    return invalid


def cmd_validate(args: argparse.Namespace) -> int:
    job_dir = Path(args.job_dir)
    errors: list[str] = []

    missing_contract_files = 0
    invalid_documents = 0

    for f in CONTRACT_FILES:
        p = job_dir / f
        if not p.exists():
            missing_contract_files += 1
            errors.append(f"missing: {p}")

    try:
        result = load_json(job_dir / "result.json")
        invalid_documents += _validate_documents_schema(result, errors)
    except Exception as e:
        errors.append(f"failed to read result.json: {e}")
        invalid_documents += 1

    print(f"missing_contract_files={missing_contract_files}")
    print(f"invalid_documents={invalid_documents}")

    if errors:
        for m in errors:
            print(m)
        return 1

    print("OK")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    try:
        stats = export_csv(job_dir=args.job_dir, out_path=args.out)
        print(f"exported={stats.tokens_exported} pages={stats.pages_seen} invalid={stats.tokens_invalid}")
        return 1 if stats.tokens_invalid else 0
    except Exception as e:
        print(f"export_failed: {e}")
        return 1


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s | %(message)s")

    if args.command == "run":
        return cmd_run(args)

    if args.command == "convert":
        return cmd_convert(args)

    if args.command == "extract":
        return cmd_extract(args)

    if args.command == "export":
        return cmd_export(args)

    if args.command == "validate":
        return cmd_validate(args)

    raise SystemExit(2)


if __name__ == "__main__":
    raise SystemExit(main())
