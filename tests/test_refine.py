"""
Tests for the refinement entry points.

Verifies:
1. The baseline pass runs with or without a grammar.
2. Deep repair touches only the blocks the grammar rejects.
3. Markdown outside diagram blocks survives unchanged.
"""

import pytest

from mermaid_mender.refine import refine, refine_baseline, refine_sync, repair_block
from mermaid_mender.validation import ValidityChecker

TWO_BLOCKS = "```mermaid\nA -- Low, High --> B\n```\n\n```mermaid\nC <-- D;\n```"


@pytest.mark.asyncio
async def test_baseline_closes_open_block():
    text = "Some text\n```mermaid\ngraph TD;\nA --> B;\nSome other text"
    expected = "Some text\n```mermaid\ngraph TD;\nA --> B;\n```\nSome other text"
    assert refine_baseline(text) == expected
    assert await refine(text) == expected


@pytest.mark.asyncio
async def test_accepting_grammar_keeps_baseline(accepting_checker):
    assert await refine(TWO_BLOCKS, accepting_checker) == refine_baseline(TWO_BLOCKS)


@pytest.mark.asyncio
async def test_only_rejected_blocks_are_repaired(marker_parser):
    parser = marker_parser("<--")
    result = await refine(TWO_BLOCKS, ValidityChecker(parser))

    assert result == "```mermaid\nA -- Low, High --> B\n```\n\n```mermaid\nD --> C;\n```"
    assert parser.calls == ["A -- Low, High --> B", "C <-- D;"]


@pytest.mark.asyncio
async def test_deep_disabled(rejecting_checker):
    assert await refine(TWO_BLOCKS, rejecting_checker, deep=False) == TWO_BLOCKS


@pytest.mark.asyncio
async def test_unrepairable_block_left_as_baseline(rejecting_checker):
    text = "```mermaid\nBROKEN\n```"
    assert await refine(text, rejecting_checker) == text


@pytest.mark.asyncio
async def test_tables_survive(rejecting_checker):
    text = "| a | b |\n|---|:-:|\n| 1 | 2 |\n\n```mermaid\nA <-- B;\n```"
    expected = "| a | b |\n|---|:-:|\n| 1 | 2 |\n\n```mermaid\nB --> A;\n```"
    assert await refine(text, rejecting_checker) == expected
    assert refine_baseline(text) == text


@pytest.mark.asyncio
async def test_refine_is_idempotent(rejecting_checker):
    text = "Intro\n```mermaid\nX <-- Y;\nA --> B;\nOutro"
    once = await refine(text, rejecting_checker)
    assert once == "Intro\n```mermaid\nY --> X;\nA --> B;\n```\nOutro"
    assert await refine(once, rejecting_checker) == once


def test_refine_sync(rejecting_checker):
    assert refine_sync(TWO_BLOCKS, rejecting_checker) == (
        "```mermaid\nA -- Low, High --> B\n```\n\n```mermaid\nD --> C;\n```"
    )


def test_repair_block():
    assert repair_block("A <-- B;") == "B --> A;"


@pytest.mark.asyncio
async def test_tilde_blocks_counted_but_not_rewritten(rejecting_checker):
    text = "~~~mermaid\nX <-- Y;\n~~~"
    assert await rejecting_checker.count_invalid(text) == 1
    assert await refine(text, rejecting_checker) == text
