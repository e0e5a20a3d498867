"""
Refinement entry points - Compose scanning, validation and repair.

- refine_baseline: always-safe normalization (fences, closure, line fixes)
- refine: baseline plus deep repair of the blocks the grammar still rejects
- repair_block: deep repair of one block, without asking the grammar first
"""

import asyncio
import logging

from .blocks import locate_and_close_blocks, render_segments, split_segments
from .models import DiagramBlock, Segment
from .pipeline import repair
from .placeholders import is_table_separator, protect_lines, restore
from .validation import ValidityChecker

logger = logging.getLogger(__name__)


def refine_baseline(document: str) -> str:
    """Normalize fences and lines of every block and close open blocks."""
    protected, registry = protect_lines(document, is_table_separator, tag="TABLE")
    return restore(locate_and_close_blocks(protected), registry)


def repair_block(content: str) -> str:
    """Run the full repair pipeline on one block's inner text."""
    return repair(content)


async def refine(document: str, checker: ValidityChecker | None = None, deep: bool = True) -> str:
    """
    Refine every diagram block of a document.

    The baseline pass always runs. When a checker is given and deep is
    set, each block the checker rejects is rewritten by the repair
    pipeline; blocks it accepts are left exactly as the baseline produced
    them.

    Args:
        document: Full Markdown document
        checker: Validity checker wrapping an external grammar
        deep: Whether to run deep repair on rejected blocks

    Returns:
        The refined document
    """
    protected, registry = protect_lines(document, is_table_separator, tag="TABLE")
    baseline = locate_and_close_blocks(protected)

    if checker is None or not deep:
        return restore(baseline, registry)

    segments: list[Segment] = []
    repaired = 0
    for index, segment in enumerate(split_segments(baseline)):
        if isinstance(segment, DiagramBlock) and not await checker.check_block(segment.content):
            fixed = repair(segment.content)
            if fixed != segment.content:
                segment = segment.with_content(fixed)
                repaired += 1
                logger.debug("Deep-repaired diagram block at segment %d", index)
        segments.append(segment)

    if repaired:
        logger.debug("Deep repair rewrote %d block(s)", repaired)
    return restore(render_segments(segments), registry)


def refine_sync(document: str, checker: ValidityChecker | None = None, deep: bool = True) -> str:
    """Blocking wrapper around refine for synchronous callers."""
    return asyncio.run(refine(document, checker, deep=deep))
