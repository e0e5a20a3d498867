"""
Tests for identifier harvesting and block summaries.
"""

from mermaid_mender.analysis import (
    ValidIdSet,
    detect_diagram_type,
    harvest_valid_ids,
    summarize_block,
)
from mermaid_mender.models import DiagramType


def test_harvest_sources_definitions_and_targets():
    content = "graph TD\nA[Start] --> B;\nB --> C\nC -->|yes| D[Done]"
    valid = harvest_valid_ids(content)

    assert valid.defined == {"A", "B", "C", "D"}
    assert valid.ids == {"A", "B", "C", "D"}
    assert "graph" not in valid


def test_targets_are_known_but_not_defined():
    valid = harvest_valid_ids("A --> X;")
    assert "X" in valid
    assert "X" not in valid.defined
    assert "A" in valid.defined


def test_keywords_are_excluded():
    valid = harvest_valid_ids("subgraph Group\nA --> B\nend\nclass A warn")
    assert "subgraph" not in valid
    assert "end" not in valid
    assert "class" not in valid


def test_unclean_targets_not_harvested():
    valid = harvest_valid_ids("A --> SubdivideSubdivide into 8 Octants")
    assert "SubdivideSubdivide" not in valid


def test_longest_prefix():
    valid = ValidIdSet(ids=frozenset({"B", "Sub", "Subdivide"}))
    assert valid.longest_prefix("SubdivideX") == "Subdivide"
    assert valid.longest_prefix("Bx") == "B"
    assert valid.longest_prefix("B") is None
    assert valid.longest_prefix("Other") is None


def test_detect_diagram_type():
    assert detect_diagram_type("graph TD\nA-->B") == DiagramType.FLOWCHART
    assert detect_diagram_type("%% comment\n\nflowchart LR") == DiagramType.FLOWCHART
    assert detect_diagram_type("sequenceDiagram\nA->>B: hi") == DiagramType.SEQUENCE
    assert detect_diagram_type("---\ntitle: x\n---\nstateDiagram-v2") == DiagramType.STATE
    assert detect_diagram_type("A --> B") == DiagramType.UNKNOWN
    assert detect_diagram_type("") == DiagramType.UNKNOWN


def test_summarize_block():
    summary = summarize_block("graph TD\nA --> B\nB --> C\nsubgraph S\nend")
    data = summary.to_dict()

    assert data["diagram_type"] == "flowchart"
    assert data["line_count"] == 5
    assert data["edge_count"] == 2
    assert data["node_ids"] == ["A", "B", "C"]
    assert data["node_count"] == 3
    assert data["has_subgraph"] is True
