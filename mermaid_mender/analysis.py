"""
Block analysis - Identifier harvesting and summarization for diagram blocks.

Provides the analysis the repair rules and the API use to understand a
block without parsing it:
- Which identifiers the block itself defines or references
- Which diagram family the block belongs to
- A small structural summary for reporting
"""

import re
from dataclasses import dataclass, field

from .models import DiagramType, Line

IDENT = r"[A-Za-z0-9_]+"
ARROW = r"(?:-->|---|==>|-\.->)"

KEYWORDS = frozenset({
    "graph", "flowchart", "subgraph", "end", "style", "classDef", "class",
    "click", "linkStyle", "direction", "note",
})

SOURCE_RE = re.compile(
    rf"^\s*(?P<id>{IDENT})\s*(?:\[[^\]]*\]|\([^)]*\)|\{{[^}}]*\}})?\s*(?:{ARROW}|--|<--)"
)
DEFINITION_RE = re.compile(rf"(?<![A-Za-z0-9_])(?P<id>{IDENT})\s*[\[({{]")
TARGET_RE = re.compile(
    rf"{ARROW}(?:\s*\|[^|]*\|)?\s*(?P<id>{IDENT})(?=\s*(?:;|$|\[|\(|\{{|&|{ARROW}))"
)

HEADER_TYPES = [
    (re.compile(r"^(?:graph|flowchart)\b"), DiagramType.FLOWCHART),
    (re.compile(r"^sequenceDiagram\b"), DiagramType.SEQUENCE),
    (re.compile(r"^classDiagram\b"), DiagramType.CLASS),
    (re.compile(r"^stateDiagram(?:-v2)?\b"), DiagramType.STATE),
    (re.compile(r"^erDiagram\b"), DiagramType.ER),
    (re.compile(r"^gantt\b"), DiagramType.GANTT),
    (re.compile(r"^pie\b"), DiagramType.PIE),
    (re.compile(r"^mindmap\b"), DiagramType.MINDMAP),
    (re.compile(r"^timeline\b"), DiagramType.TIMELINE),
]


@dataclass(frozen=True)
class ValidIdSet:
    """
    Identifiers harvested from one block.

    `ids` holds every identifier seen as an edge source, a bracket
    definition or a clean edge target. `defined` is the stricter subset of
    sources and bracket definitions. Both are heuristics only.
    """
    ids: frozenset[str] = frozenset()
    defined: frozenset[str] = frozenset()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.ids

    def longest_prefix(self, token: str) -> str | None:
        """Longest known id that is a proper prefix of token."""
        best = None
        for node_id in self.ids:
            if len(node_id) < len(token) and token.startswith(node_id):
                if best is None or len(node_id) > len(best):
                    best = node_id
        return best


@dataclass
class BlockSummary:
    """Structural summary of a diagram block."""
    diagram_type: DiagramType
    line_count: int
    edge_count: int
    node_ids: list[str] = field(default_factory=list)
    has_subgraph: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "diagram_type": self.diagram_type.value,
            "line_count": self.line_count,
            "edge_count": self.edge_count,
            "node_count": len(self.node_ids),
            "node_ids": self.node_ids,
            "has_subgraph": self.has_subgraph,
        }


def harvest_valid_ids(content: str) -> ValidIdSet:
    """
    Collect the identifiers a block defines or references.

    Args:
        content: Inner text of a diagram block

    Returns:
        ValidIdSet built from this block only
    """
    ids: set[str] = set()
    defined: set[str] = set()

    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("%%"):
            continue

        match = SOURCE_RE.match(line)
        if match:
            defined.add(match.group("id"))
        for match in DEFINITION_RE.finditer(line):
            defined.add(match.group("id"))
        for match in TARGET_RE.finditer(line):
            ids.add(match.group("id"))

    defined -= KEYWORDS
    ids = (ids | defined) - KEYWORDS
    return ValidIdSet(ids=frozenset(ids), defined=frozenset(defined))


def detect_diagram_type(content: str) -> DiagramType:
    """Detect the diagram family from the first meaningful line."""
    in_frontmatter = False
    for line in content.split("\n"):
        stripped = line.strip()
        if stripped == "---":
            in_frontmatter = not in_frontmatter
            continue
        if in_frontmatter or not stripped or stripped.startswith("%%"):
            continue
        for pattern, diagram_type in HEADER_TYPES:
            if pattern.match(stripped):
                return diagram_type
        return DiagramType.UNKNOWN
    return DiagramType.UNKNOWN


def summarize_block(content: str) -> BlockSummary:
    """
    Generate a structural summary of a diagram block.

    Args:
        content: Inner text of a diagram block

    Returns:
        BlockSummary object with all analysis results
    """
    lines = [line for line in content.split("\n") if line.strip()]
    edge_re = re.compile(rf"{ARROW}|<--|--\s")
    valid_ids = harvest_valid_ids(content)

    return BlockSummary(
        diagram_type=detect_diagram_type(content),
        line_count=len(lines),
        edge_count=sum(1 for line in lines if edge_re.search(line)),
        node_ids=sorted(valid_ids.ids),
        has_subgraph=any(Line(line).has_subgraph for line in lines),
    )
