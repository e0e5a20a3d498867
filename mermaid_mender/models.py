"""
Core data models for documents and diagram blocks.

These models describe how a Markdown document is seen by the repair engine:
- A document is an ordered list of segments
- Each segment is either plain text or a fenced diagram block
- A block is a list of lines with the flags the closure heuristic reads

Request/response models for the HTTP API live here as well, so the backend
and the CLI share one schema.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

OPEN_FENCE = "```mermaid"
CLOSE_FENCE = "```"

SUBGRAPH_RE = re.compile(r"\bsubgraph\b")


class SegmentKind(str, Enum):
    """Kinds of document segments."""
    TEXT = "text"
    DIAGRAM = "diagram"


class DiagramType(str, Enum):
    """Diagram families recognised from a block's header line."""
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    CLASS = "class"
    STATE = "state"
    ER = "er"
    GANTT = "gantt"
    PIE = "pie"
    MINDMAP = "mindmap"
    TIMELINE = "timeline"
    UNKNOWN = "unknown"


@dataclass
class Line:
    """A single line inside a diagram block."""
    text: str

    @property
    def has_arrow(self) -> bool:
        return "-->" in self.text

    @property
    def has_subgraph(self) -> bool:
        return bool(SUBGRAPH_RE.search(self.text))


@dataclass
class PlainText:
    """Document text outside any diagram block."""
    text: str
    kind: SegmentKind = SegmentKind.TEXT

    def render(self) -> str:
        return self.text


@dataclass
class DiagramBlock:
    """
    A fenced diagram block.

    `lines` holds every line including both fences. A closed block starts
    with an opening fence line and ends with a closing fence line.
    """
    lines: list[Line] = field(default_factory=list)
    kind: SegmentKind = SegmentKind.DIAGRAM

    @property
    def is_closed(self) -> bool:
        return len(self.lines) >= 2 and self.lines[-1].text.strip() == CLOSE_FENCE

    @property
    def opening(self) -> str:
        return self.lines[0].text if self.lines else OPEN_FENCE

    @property
    def closing(self) -> str:
        return self.lines[-1].text if self.is_closed else CLOSE_FENCE

    @property
    def content(self) -> str:
        """Inner text between the fences."""
        inner = self.lines[1:-1] if self.is_closed else self.lines[1:]
        return "\n".join(line.text for line in inner)

    def with_content(self, content: str) -> "DiagramBlock":
        """Return a new block with the same fences and new inner text."""
        inner = [Line(t) for t in content.split("\n")] if content else []
        return DiagramBlock(lines=[Line(self.opening), *inner, Line(self.closing)])

    def render(self) -> str:
        return "\n".join(line.text for line in self.lines)


Segment = PlainText | DiagramBlock


# --- Request models (for API) ---

class RefineRequest(BaseModel):
    """Request body for refining a whole document."""
    content: str
    deep: bool = True


class RepairRequest(BaseModel):
    """Request body for forcing deep repair on a single block."""
    content: str


class CheckRequest(BaseModel):
    """Request body for validating a document."""
    content: str


class BatchRequest(BaseModel):
    """Request body for repairing every Markdown file in a folder."""
    folder: str
    move_error_files: Optional[bool] = None
    error_folder: Optional[str] = None
    write_error_report: Optional[bool] = None


# --- Result models ---

class FileRepairResult(BaseModel):
    """Outcome of repairing one document on disk."""
    file: str
    modified: bool = False
    skipped: bool = False
    invalid_before: int = 0
    invalid_after: int = 0
    moved_to: Optional[str] = None
    error: Optional[str] = None


class BatchReport(BaseModel):
    """Aggregate outcome of a folder repair run."""
    folder: str
    processed: int = 0
    modified_count: int = 0
    cancelled: bool = False
    errors: list[dict] = Field(default_factory=list)
    mermaid_errors: list[dict] = Field(default_factory=list)
    files: list[FileRepairResult] = Field(default_factory=list)
    error_report: Optional[str] = None

    @property
    def error_count(self) -> int:
        return len(self.errors)
