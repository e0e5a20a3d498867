"""
Batch Repair Manager - Repair diagram blocks across a folder of documents.

This module implements:
- Per-file repair: count invalid blocks, refine, write back only on change
- Folder runs that yield between documents and honour cancellation
- Optional quarantine of files that still fail into an error folder
- An optional `mermaid_error_<folder>.md` report listing those files
- Progress callbacks for callers that want live updates
"""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

from mermaid_mender.config import MenderSettings
from mermaid_mender.latex import cleanup_latex_delimiters
from mermaid_mender.models import BatchReport, FileRepairResult
from mermaid_mender.refine import refine
from mermaid_mender.validation import ValidityChecker

logger = logging.getLogger(__name__)


class BatchRepairManager:
    """
    Repairs Markdown documents on disk.

    Features:
    - Files with no invalid blocks are skipped untouched
    - Files are only rewritten when their content actually changed
    - Files that still fail can be moved aside for manual review
    - Change callbacks fire after every processed file
    """

    def __init__(self, checker: ValidityChecker, settings: Optional[MenderSettings] = None):
        self.checker = checker
        self.settings = settings or MenderSettings()
        self._on_progress_callbacks: list[Callable[[FileRepairResult], None]] = []

    # --- Callbacks ---

    def on_progress(self, callback: Callable[[FileRepairResult], None]):
        """Register a callback invoked with each file's result."""
        self._on_progress_callbacks.append(callback)

    def _notify_progress(self, result: FileRepairResult):
        for callback in self._on_progress_callbacks:
            try:
                callback(result)
            except Exception:
                logger.exception("Progress callback failed for %s", result.file)

    # --- Single file ---

    async def fix_file(self, path: Path | str) -> FileRepairResult:
        """
        Repair one document in place.

        Args:
            path: Markdown file to repair

        Returns:
            FileRepairResult describing what happened
        """
        path = Path(path)
        result = FileRepairResult(file=str(path))

        original = path.read_text(encoding="utf-8")
        result.invalid_before = await self.checker.count_invalid(original)
        if result.invalid_before == 0:
            result.skipped = True
            logger.info("No invalid diagram blocks in %s, skipping", path.name)
            return result

        content = original
        if self.settings.fix_latex_delimiters:
            content = cleanup_latex_delimiters(content)
        content = await refine(content, self.checker, deep=self.settings.deep_repair)

        if content != original:
            path.write_text(content, encoding="utf-8")
            result.modified = True
            logger.info("Repaired %s", path.name)

        result.invalid_after = await self.checker.count_invalid(content)
        return result

    def _move_to_error_folder(self, path: Path, error_dir: Path) -> Optional[Path]:
        error_dir.mkdir(parents=True, exist_ok=True)
        destination = error_dir / path.name
        if destination.exists():
            logger.warning("Not moving %s: %s already exists", path.name, destination)
            return None
        shutil.move(str(path), str(destination))
        return destination

    def _write_error_report(self, folder: Path, mermaid_errors: list[dict]) -> Optional[Path]:
        """Write `mermaid_error_<folder>.md` with one `[[file]]-[count]` entry per failing document."""
        path = folder / f"mermaid_error_{folder.name or 'Root'}.md"
        content = "\n\n\n".join(f"[[{e['filename']}]]-[{e['count']}]" for e in mermaid_errors)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError:
            logger.exception("Failed to write error report %s", path)
            return None
        logger.info("Wrote error report %s", path)
        return path

    # --- Folder ---

    async def fix_folder(
        self,
        folder: Path | str,
        cancel_event: Optional[asyncio.Event] = None,
        move_error_files: Optional[bool] = None,
        error_folder: Optional[str] = None,
        write_error_report: Optional[bool] = None,
    ) -> BatchReport:
        """
        Repair every Markdown document under a folder.

        Documents are processed one at a time; control is yielded between
        documents and cancellation is only checked there.

        Args:
            folder: Folder to scan recursively for `*.md` files
            cancel_event: Set to stop before the next document
            move_error_files: Override settings.move_error_files
            error_folder: Override settings.error_folder
            write_error_report: Override settings.write_error_report

        Returns:
            BatchReport with modified/error counts and residual invalid blocks

        Raises:
            NotADirectoryError: If folder is not a directory
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(f"Not a directory: {folder}")

        move = self.settings.move_error_files if move_error_files is None else move_error_files
        error_dir = folder / (error_folder or self.settings.error_folder)
        write_report = self.settings.write_error_report if write_error_report is None else write_error_report

        report = BatchReport(folder=str(folder))
        files = sorted(
            p for p in folder.rglob("*.md")
            if error_dir not in p.parents
        )

        for path in files:
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                logger.info("Batch repair cancelled after %d file(s)", report.processed)
                break
            await asyncio.sleep(0)

            try:
                result = await self.fix_file(path)
            except (OSError, UnicodeDecodeError) as e:
                logger.exception("Failed to repair %s", path)
                report.errors.append({"file": str(path), "message": str(e)})
                result = FileRepairResult(file=str(path), error=str(e))
            else:
                if result.modified:
                    report.modified_count += 1
                if result.invalid_after > 0:
                    report.mermaid_errors.append({"filename": path.name, "count": result.invalid_after})
                    if move:
                        try:
                            moved = self._move_to_error_folder(path, error_dir)
                        except OSError as e:
                            logger.exception("Failed to move %s to %s", path.name, error_dir)
                            report.errors.append({"file": str(path), "message": f"Move failed: {e}"})
                            moved = None
                        result.moved_to = str(moved) if moved else None

            report.processed += 1
            report.files.append(result)
            self._notify_progress(result)

        if write_report and report.mermaid_errors:
            written = self._write_error_report(folder, report.mermaid_errors)
            report.error_report = str(written) if written else None

        return report
