#!/usr/bin/env python3
"""Mermaid mender CLI - refine, repair and validate diagram blocks in Markdown files."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx

from .analysis import summarize_block
from .blocks import iter_blocks
from .config import MenderSettings, build_checker
from .latex import cleanup_latex_delimiters
from .refine import refine_sync, repair_block
from .validation import validate_document, validation_summary


def _json_out(data):
    print(json.dumps(data, ensure_ascii=False))
    sys.exit(0)


def _api_request(api_base, method, endpoint, data=None):
    """Make a request to a running mermaid-mender service."""
    url = f"{api_base.rstrip('/')}{endpoint}"
    try:
        with httpx.Client(timeout=30.0) as client:
            response = client.request(method, url, json=data)
    except httpx.HTTPError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e}. Is the mermaid-mender service running?"})

    if response.status_code >= 400:
        try:
            detail = response.json().get("detail", "Unknown error")
        except ValueError:
            detail = response.text
        _json_out({"status": "error", "error": f"API error ({response.status_code}): {detail}"})
    return response.json()


def _read(path):
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e}"})


def _settings(args):
    settings = MenderSettings.from_env()
    if getattr(args, "parser", None):
        settings.parser = args.parser
    return settings


# ── Repair ───────────────────────────────────────────────────────────────────

def cmd_refine(args):
    text = _read(args.file)
    if args.api:
        result = _api_request(args.api, "POST", "/refine", data={"content": text, "deep": args.deep})
        content = result["content"]
    else:
        checker = build_checker(_settings(args)) if args.deep else None
        content = refine_sync(text, checker, deep=args.deep)

    changed = content != text
    if args.write and changed:
        Path(args.file).write_text(content, encoding="utf-8")
    _json_out({"status": "ok", "file": args.file, "changed": changed, "written": bool(args.write and changed),
               "content": None if args.write else content})


def cmd_repair(args):
    text = _read(args.file)
    if args.api:
        _json_out(_api_request(args.api, "POST", "/repair", data={"content": text}))
    content = repair_block(text)
    _json_out({"status": "ok", "changed": content != text, "content": content})


def cmd_latex(args):
    text = _read(args.file)
    content = cleanup_latex_delimiters(text)
    if args.write and content != text:
        Path(args.file).write_text(content, encoding="utf-8")
    _json_out({"status": "ok", "changed": content != text, "content": None if args.write else content})


# ── Validation ───────────────────────────────────────────────────────────────

def cmd_check(args):
    text = _read(args.file)
    if args.api:
        _json_out(_api_request(args.api, "POST", "/check", data={"content": text}))

    checker = build_checker(_settings(args))
    blocks = [summarize_block(b.content).to_dict() for b in iter_blocks(text)]
    if checker is None:
        _json_out({"status": "ok", "validated": False, "blocks": blocks})

    issues = asyncio.run(validate_document(text, checker))
    _json_out({
        "status": "ok",
        "validated": True,
        "issues": [i.to_dict() for i in issues],
        "summary": validation_summary(issues),
        "blocks": blocks,
    })


# ── Batch ────────────────────────────────────────────────────────────────────

def cmd_batch(args):
    from backend.batch_manager import BatchRepairManager

    if args.api:
        _json_out(_api_request(args.api, "POST", "/batch", data={
            "folder": args.folder,
            "move_error_files": args.move_errors,
            "error_folder": args.error_folder,
            "write_error_report": args.error_report,
        }))

    settings = _settings(args)
    checker = build_checker(settings)
    if checker is None:
        _json_out({"status": "error", "error": "Batch repair needs a diagram parser (--parser mmdc|http)"})

    manager = BatchRepairManager(checker, settings)
    try:
        report = asyncio.run(manager.fix_folder(
            args.folder,
            move_error_files=args.move_errors,
            error_folder=args.error_folder,
            write_error_report=args.error_report,
        ))
    except NotADirectoryError as e:
        _json_out({"status": "error", "error": str(e)})
    _json_out({"status": "ok", **report.model_dump(exclude={"files"}), "error_count": report.error_count})


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn

    settings = MenderSettings.from_env()
    uvicorn.run("backend.main:app", host=args.host or settings.host, port=args.port or settings.port)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Repair Mermaid diagram blocks in Markdown documents")
    parser.add_argument("--verbose", action="store_true", help="Log progress to stderr")
    parser.add_argument("--api", default=None, help="Base URL of a running service, e.g. http://127.0.0.1:8766/api")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("refine")
    p.add_argument("file")
    p.add_argument("--deep", action="store_true", help="Deep-repair blocks the parser rejects")
    p.add_argument("--parser", choices=["none", "mmdc", "http"], default=None)
    p.add_argument("--write", action="store_true", help="Write the result back to the file")

    p = sub.add_parser("repair")
    p.add_argument("file")

    p = sub.add_parser("latex")
    p.add_argument("file")
    p.add_argument("--write", action="store_true")

    p = sub.add_parser("check")
    p.add_argument("file")
    p.add_argument("--parser", choices=["none", "mmdc", "http"], default=None)

    p = sub.add_parser("batch")
    p.add_argument("folder")
    p.add_argument("--parser", choices=["none", "mmdc", "http"], default=None)
    p.add_argument("--move-errors", action="store_true", default=None)
    p.add_argument("--error-folder", default=None)
    p.add_argument("--error-report", action="store_true", default=None)

    p = sub.add_parser("serve")
    p.add_argument("--host", default=None)
    p.add_argument("--port", type=int, default=None)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    cmd_map = {
        "refine": cmd_refine,
        "repair": cmd_repair,
        "latex": cmd_latex,
        "check": cmd_check,
        "batch": cmd_batch,
        "serve": cmd_serve,
    }
    cmd_map[args.command](args)


if __name__ == "__main__":
    main()
