"""
Tests for the bracket scanner.
"""

from mermaid_mender.brackets import (
    find_closing_bracket,
    iter_bracket_regions,
    protect_bracket_regions,
    strip_inner_quotes,
)
from mermaid_mender.placeholders import restore


def test_find_closing_bracket_nested():
    assert find_closing_bracket("A[x [y] z]", 1) == 9


def test_find_closing_bracket_unbalanced():
    assert find_closing_bracket("A[x [y] z", 1) == -1


def test_find_closing_bracket_requires_opener():
    assert find_closing_bracket("A[x]", 0) == -1
    assert find_closing_bracket("A[x]", 10) == -1


def test_find_closing_bracket_other_pairs():
    assert find_closing_bracket("f(a(b))", 1, "(", ")") == 6


def test_iter_bracket_regions():
    assert list(iter_bracket_regions("A[x] --> B[y [z]]")) == [(1, 3), (10, 16)]


def test_iter_bracket_regions_skips_unbalanced_opener():
    assert list(iter_bracket_regions("A[x --> B[y]")) == [(9, 11)]


def test_strip_inner_quotes_nested_label():
    line = 'SP --> Martingale["Martingale<br>E["Future | Past"] = Present"];'
    assert strip_inner_quotes(line) == 'SP --> Martingale["Martingale<br>E[Future | Past] = Present"];'


def test_strip_inner_quotes_keeps_outer_quotes():
    assert strip_inner_quotes('Node["Outer ["Inner"] Outer"]') == 'Node["Outer [Inner] Outer"]'


def test_strip_inner_quotes_leaves_unbalanced_region():
    assert strip_inner_quotes('A["Unbalanced') == 'A["Unbalanced'
    assert strip_inner_quotes('MBS["MBS Pricing [MBS定价]["];') == 'MBS["MBS Pricing [MBS定价]["];'


def test_protect_bracket_regions_round_trip():
    line = 'A["x -->" y] -- "ok" --> B[z]'
    protected, registry = protect_bracket_regions(line)

    assert "[" not in protected
    assert '-- "ok" -->' in protected
    assert restore(protected, registry) == line
