"""
Mermaid Mender - Recovery of malformed Mermaid diagram blocks in Markdown.

This package provides the scanning, normalization, validation and repair
used by both the HTTP backend and the CLI, so every entry point applies the
same rules in the same order.
"""

from .models import (
    # Enums
    SegmentKind,
    DiagramType,
    # Document model
    Line,
    PlainText,
    DiagramBlock,
    # Request models (for API)
    RefineRequest,
    RepairRequest,
    CheckRequest,
    BatchRequest,
    # Results
    FileRepairResult,
    BatchReport,
)

from .placeholders import PlaceholderRegistry, protect_lines, protect_spans, restore, is_table_separator
from .brackets import find_closing_bracket, iter_bracket_regions, strip_inner_quotes
from .blocks import locate_and_close_blocks, split_segments, render_segments
from .line_normalizer import normalize_line
from .analysis import ValidIdSet, harvest_valid_ids, detect_diagram_type, summarize_block
from .validation import (
    ValidityChecker,
    ValidationIssue,
    IssueSeverity,
    MermaidCliParser,
    HttpRendererParser,
    validate_document,
    validation_summary,
)
from .pipeline import RepairRule, RepairContext, REPAIR_RULES, repair
from .refine import refine, refine_baseline, refine_sync, repair_block
from .latex import cleanup_latex_delimiters
from .config import MenderSettings, build_parser, build_checker

__all__ = [
    # Enums
    "SegmentKind",
    "DiagramType",
    # Models
    "Line",
    "PlainText",
    "DiagramBlock",
    # Request models
    "RefineRequest",
    "RepairRequest",
    "CheckRequest",
    "BatchRequest",
    "FileRepairResult",
    "BatchReport",
    # Placeholders
    "PlaceholderRegistry",
    "protect_lines",
    "protect_spans",
    "restore",
    "is_table_separator",
    # Scanning
    "find_closing_bracket",
    "iter_bracket_regions",
    "strip_inner_quotes",
    "locate_and_close_blocks",
    "split_segments",
    "render_segments",
    "normalize_line",
    # Analysis
    "ValidIdSet",
    "harvest_valid_ids",
    "detect_diagram_type",
    "summarize_block",
    # Validation
    "ValidityChecker",
    "ValidationIssue",
    "IssueSeverity",
    "MermaidCliParser",
    "HttpRendererParser",
    "validate_document",
    "validation_summary",
    # Repair
    "RepairRule",
    "RepairContext",
    "REPAIR_RULES",
    "repair",
    "refine",
    "refine_baseline",
    "refine_sync",
    "repair_block",
    "cleanup_latex_delimiters",
    # Config
    "MenderSettings",
    "build_parser",
    "build_checker",
]
