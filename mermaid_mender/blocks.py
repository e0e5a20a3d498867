"""
Block scanning - Locate fenced diagram blocks and guarantee they are closed.

The scanner walks the document once:
- Opening fences (```` ```mermaid ````, ```` ``` mermaid ````, ```` ```(mermaid) ````)
  are normalized to ```` ```mermaid ````
- Lines inside a block go through the line normalizer
- A block left open (by a new opening fence or by end of document) is closed
  right after its last arrow line, or right after the opening fence when it
  has no arrow at all

Closing only ever inserts a fence line. Lines outside blocks are untouched.
"""

import re
from typing import Callable

from .line_normalizer import normalize_line
from .models import CLOSE_FENCE, OPEN_FENCE, DiagramBlock, Line, PlainText, Segment

# Only the fence token; text after it on the same line is kept as is
OPEN_FENCE_RE = re.compile(r"^```\s*(?:\(\s*mermaid\s*\)|mermaid)")


def is_opening_fence(line: str) -> bool:
    return bool(OPEN_FENCE_RE.match(line.strip()))


def is_closing_fence(line: str) -> bool:
    return line.strip() == CLOSE_FENCE


def normalize_opening_fence(line: str) -> str:
    """Rewrite the fence token to ```` ```mermaid ````, keeping indentation."""
    body = line.lstrip()
    indent = line[:len(line) - len(body)]
    return indent + OPEN_FENCE_RE.sub(OPEN_FENCE, body, count=1)


def _force_close(block: list[Line], last_arrow: int) -> list[Line]:
    """Insert a closing fence after the last arrow line (or the opening fence)."""
    insert_at = last_arrow + 1 if last_arrow != -1 else 1
    return block[:insert_at] + [Line(CLOSE_FENCE)] + block[insert_at:]


def locate_and_close_blocks(text: str, normalize: Callable[[str], str] = normalize_line) -> str:
    """
    Normalize every diagram block in text and close any that are left open.

    Args:
        text: Full Markdown document
        normalize: Per-line normalizer applied to lines inside a block

    Returns:
        The document with normalized fences and no unterminated block
    """
    result: list[str] = []
    block: list[Line] | None = None
    last_arrow = -1

    for raw in text.split("\n"):
        if is_opening_fence(raw):
            if block is not None:
                result.extend(line.text for line in _force_close(block, last_arrow))
            block = [Line(normalize_opening_fence(raw))]
            last_arrow = -1
        elif block is not None:
            if is_closing_fence(raw):
                block.append(Line(raw))
                result.extend(line.text for line in block)
                block = None
                continue
            line = Line(normalize(raw))
            block.append(line)
            if line.has_arrow:
                last_arrow = len(block) - 1
        else:
            result.append(raw)

    if block is not None:
        result.extend(line.text for line in _force_close(block, last_arrow))

    return "\n".join(result)


def split_segments(text: str) -> list[Segment]:
    """
    Split a document into plain-text and diagram-block segments.

    `render_segments(split_segments(text)) == text` for any input. A block
    still open at end of document is returned with `is_closed == False`.
    """
    segments: list[Segment] = []
    plain: list[str] = []
    block: list[Line] | None = None

    for raw in text.split("\n"):
        if block is None:
            if is_opening_fence(raw):
                if plain:
                    segments.append(PlainText("\n".join(plain)))
                    plain = []
                block = [Line(raw)]
            else:
                plain.append(raw)
        else:
            block.append(Line(raw))
            if is_closing_fence(raw):
                segments.append(DiagramBlock(lines=block))
                block = None

    if block is not None:
        segments.append(DiagramBlock(lines=block))
    if plain:
        segments.append(PlainText("\n".join(plain)))
    return segments


def render_segments(segments: list[Segment]) -> str:
    return "\n".join(segment.render() for segment in segments)


def iter_blocks(text: str) -> list[DiagramBlock]:
    """All diagram blocks of a document, in order."""
    return [s for s in split_segments(text) if isinstance(s, DiagramBlock)]
