"""
Tests for validity checking against a pluggable grammar.

Verifies:
1. Sync, async and raising parsers are all handled.
2. Document validation reports the expected issues.
3. The concrete parsers fail closed.
"""

import asyncio

import httpx
import pytest

from mermaid_mender.validation import (
    HttpRendererParser,
    IssueSeverity,
    MermaidCliParser,
    ValidationIssue,
    ValidityChecker,
    extract_closed_blocks,
    validate_document,
    validation_summary,
)


@pytest.mark.asyncio
async def test_check_block_sync_parser(marker_parser):
    checker = ValidityChecker(marker_parser("BROKEN"))
    assert await checker.check_block("A --> B") is True
    assert await checker.check_block("BROKEN") is False


@pytest.mark.asyncio
async def test_check_block_async_parser():
    async def parser(content):
        await asyncio.sleep(0)
        return "-->" in content

    checker = ValidityChecker(parser)
    assert await checker.check_block("A --> B") is True
    assert await checker.check_block("A B") is False


@pytest.mark.asyncio
async def test_check_block_parser_exception_counts_as_invalid():
    def parser(content):
        raise ValueError("Parse error on line 1")

    assert await ValidityChecker(parser).check_block("A --> B") is False


def test_extract_closed_blocks():
    text = "intro\n```mermaid\nA --> B\n```\ntext\n~~~mermaid\nC --> D\n~~~\n```mermaid\nopen"
    assert extract_closed_blocks(text) == ["A --> B", "C --> D"]


@pytest.mark.asyncio
async def test_count_invalid(rejecting_checker):
    text = "```mermaid\nA --> B\n```\n\n```mermaid\nBROKEN\n```\n\n~~~mermaid\nX <-- Y\n~~~"
    assert await rejecting_checker.count_invalid(text) == 2


@pytest.mark.asyncio
async def test_count_invalid_ignores_unclosed_blocks(rejecting_checker):
    assert await rejecting_checker.count_invalid("```mermaid\nBROKEN") == 0


@pytest.mark.asyncio
async def test_validate_document(rejecting_checker):
    text = "\n".join([
        "```mermaid", "A --> B", "```",
        "",
        "```mermaid", "```",
        "",
        "```mermaid", "BROKEN", "```",
        "",
        "```mermaid", "C --> D",
    ])
    issues = await validate_document(text, rejecting_checker)

    assert [(i.severity, i.block_index) for i in issues] == [
        (IssueSeverity.INFO, 1),
        (IssueSeverity.ERROR, 2),
        (IssueSeverity.WARNING, 3),
    ]
    assert validation_summary(issues) == {"total": 3, "errors": 1, "warnings": 1, "info": 1, "valid": False}


def test_validation_summary_valid_when_no_errors():
    issues = [ValidationIssue(severity=IssueSeverity.WARNING, message="x")]
    assert validation_summary(issues)["valid"] is True
    assert issues[0].to_dict() == {"type": "warning", "message": "x"}


@pytest.mark.asyncio
async def test_http_renderer_parser():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if "BROKEN" in request.content.decode("utf-8"):
            return httpx.Response(400, text="Syntax error")
        return httpx.Response(200, text="<svg/>")

    parser = HttpRendererParser("https://renderer.test/", transport=httpx.MockTransport(handler))

    assert await parser("A --> B") is True
    assert await parser("BROKEN") is False
    assert seen[0].url == "https://renderer.test/mermaid/svg"
    assert seen[0].headers["content-type"] == "text/plain"


@pytest.mark.asyncio
async def test_http_renderer_server_error_is_invalid():
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    checker = ValidityChecker(HttpRendererParser("https://renderer.test", transport=transport))
    assert await checker.check_block("A --> B") is False


@pytest.mark.asyncio
async def test_mermaid_cli_parser_missing_binary():
    parser = MermaidCliParser("/nonexistent/mmdc")
    with pytest.raises(RuntimeError):
        await parser("A --> B")

    assert await ValidityChecker(parser).check_block("A --> B") is False
