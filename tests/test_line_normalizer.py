"""
Tests for the per-line normalizer applied inside diagram blocks.
"""

import pytest

from mermaid_mender.line_normalizer import (
    bracket_quoted_labels,
    clean_label_tail,
    normalize_line,
    quote_pipe_labels,
    strip_label_decorations,
)
from mermaid_mender.models import Line


@pytest.mark.parametrize("before, after", [
    ("Consumption[Consumption [消费]];", 'Consumption["Consumption [消费]"];'),
    ('Investment[Corporate Investment "[企业投资]"];', 'Investment["Corporate Investment [企业投资]"];'),
    ('MBS["MBS Pricing [MBS定价]["];', 'MBS["MBS Pricing [MBS定价]["];'),
    ('CapRate --["Inverse Relationship["--> PropValue;', 'CapRate -- "Inverse Relationship" --> PropValue;'),
    ("B_Out[Posterior pθ|D]", 'B_Out["Posterior pθ|D"]'),
    ("Consensus --> Adaptive; # Some advanced consensus", 'Consensus -- "Some advanced consensus" --> Adaptive;'),
])
def test_known_repairs(before, after):
    assert normalize_line(before) == after


def test_quote_glued_to_identifier_gets_brackets():
    assert normalize_line('A"Text";') == 'A["Text"];'
    assert normalize_line('A"Text" --> B') == 'A["Text"] --> B'


def test_unterminated_quote_left_alone():
    assert bracket_quoted_labels('A"Text') == 'A"Text'


def test_quote_inside_bracket_not_wrapped():
    assert bracket_quoted_labels('A[it is 5"wide"]') == 'A[it is 5"wide"]'


def test_subgraph_lines_skip_quote_repair():
    assert normalize_line('subgraph S1"Group"') == 'subgraph S1"Group"'
    assert normalize_line('  subgraph "Group"') == '  subgraph "Group"'


def test_subgraph_keyword_must_be_a_whole_word():
    assert not Line('subgraphNode"Text";').has_subgraph
    assert normalize_line('subgraphNode"Text";') == 'subgraphNode["Text"];'


def test_pipe_labels_are_quoted():
    assert quote_pipe_labels("A -->|Yes| B") == 'A -->|"Yes"| B'
    assert quote_pipe_labels('A -->|"Yes"| B') == 'A -->|"Yes"| B'
    assert normalize_line("A ==> |No| B") == 'A ==> |"No"| B'


def test_label_decorations_stripped():
    assert strip_label_decorations("A[Start (init)] --> B{Check}") == "A[Start init] --> B{Check}"
    assert normalize_line('A["f(x) {y}"]') == 'A["fx y"]'


def test_shape_brackets_kept():
    assert strip_label_decorations("A[(Database)] --> B") == "A[(Database)] --> B"
    assert normalize_line("A[[Subroutine]]") == "A[[Subroutine]]"


def test_label_tail_cleanup():
    assert clean_label_tail('A["Label[";') == 'A["Label"];'
    assert normalize_line('A["Label[";') == 'A["Label"];'


@pytest.mark.parametrize("line", [
    "graph TD",
    'A["Start"] --> B{Decide}',
    'A -->|"Yes"| B',
    'A -- "label" --> B;',
    "style A fill:#f9f,stroke:#333",
    "%% a comment",
    "",
])
def test_valid_lines_unchanged(line):
    assert normalize_line(line) == line


@pytest.mark.parametrize("line", [
    "Consumption[Consumption [消费]];",
    'A"Text";',
    "A -->|Yes| B[Start (now)]",
    "Consensus --> Adaptive; # note",
])
def test_idempotent(line):
    once = normalize_line(line)
    assert normalize_line(once) == once
