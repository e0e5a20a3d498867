"""
Diagram validation - Ask an external grammar whether blocks parse.

The repair engine never decides validity itself. A parser is any callable
that takes the inner text of one block and either returns a truthy/falsy
verdict or raises; it may be sync or async. ValidityChecker wraps such a
parser so that an exception counts as one failure instead of escaping.

Two concrete parsers are provided for real deployments:
- MermaidCliParser runs the `mmdc` command line renderer
- HttpRendererParser posts the block to a Kroki-compatible render service

Counting recognizes both backtick and tilde fences, while the repair passes
only rewrite backtick blocks. A rejected `~~~mermaid` block is therefore
reported as invalid but never repaired.
"""

import asyncio
import inspect
import logging
import re
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

import httpx

from .blocks import split_segments
from .models import DiagramBlock

logger = logging.getLogger(__name__)

GrammarParser = Callable[[str], "bool | Awaitable[bool]"]

# Tilde fences are counted here but are not diagram segments for repair
CLOSED_BLOCK_RE = re.compile(
    r"^[ \t]*(?:```|~~~)\s*mermaid\b[^\n]*\n(.*?)\n[ \t]*(?:```|~~~)",
    re.MULTILINE | re.IGNORECASE | re.DOTALL,
)


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Block rejected by the grammar
    WARNING = "warning"  # Structural problem, e.g. an unterminated block
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a document."""
    severity: IssueSeverity
    message: str
    block_index: int | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.block_index is not None:
            result["block_index"] = self.block_index
        return result


def extract_closed_blocks(text: str) -> list[str]:
    """Inner text of every properly closed diagram block."""
    return [m.group(1) for m in CLOSED_BLOCK_RE.finditer(text)]


class ValidityChecker:
    """Wraps a grammar parser and counts the blocks it rejects."""

    def __init__(self, parser: GrammarParser):
        self._parser = parser

    async def check_block(self, content: str) -> bool:
        """True if the parser accepts the block."""
        try:
            verdict: Any = self._parser(content)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except Exception as e:
            logger.debug("Diagram parser rejected block: %s", e)
            return False
        return bool(verdict)

    async def count_invalid(self, text: str) -> int:
        """Number of closed diagram blocks in text the parser rejects."""
        invalid = 0
        for content in extract_closed_blocks(text):
            if not await self.check_block(content):
                invalid += 1
        return invalid


async def validate_document(text: str, checker: ValidityChecker) -> list[ValidationIssue]:
    """
    Validate every diagram block of a document.

    Checks for:
    - Blocks the grammar rejects - ERROR
    - Blocks missing a closing fence - WARNING
    - Empty blocks - INFO

    Args:
        text: Full Markdown document
        checker: Validity checker wrapping the grammar parser

    Returns:
        List of ValidationIssue objects
    """
    issues: list[ValidationIssue] = []
    blocks = [s for s in split_segments(text) if isinstance(s, DiagramBlock)]

    for index, block in enumerate(blocks):
        if not block.is_closed:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Diagram block is not closed",
                block_index=index
            ))
            continue

        if not block.content.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.INFO,
                message="Diagram block is empty",
                block_index=index
            ))
            continue

        if not await checker.check_block(block.content):
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Diagram block failed to parse",
                block_index=index
            ))

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """
    Create a summary of validation issues.

    Args:
        issues: List of validation issues

    Returns:
        Dictionary with counts by severity
    """
    return {
        "total": len(issues),
        "errors": len([i for i in issues if i.severity == IssueSeverity.ERROR]),
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": len([i for i in issues if i.severity == IssueSeverity.ERROR]) == 0
    }


# --- Concrete parsers ---

class MermaidCliParser:
    """Validate a block by rendering it with the `mmdc` CLI."""

    def __init__(self, mmdc_path: str = "mmdc", timeout: float = 30.0):
        self.mmdc_path = mmdc_path
        self.timeout = timeout

    def _render(self, content: str) -> bool:
        with tempfile.TemporaryDirectory() as tmp:
            source = Path(tmp) / "block.mmd"
            target = Path(tmp) / "block.svg"
            source.write_text(content, encoding="utf-8")
            cmd = [self.mmdc_path, "-i", str(source), "-o", str(target)]
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
            except FileNotFoundError as e:
                raise RuntimeError(f"mmdc not available at {self.mmdc_path}") from e
            if result.returncode != 0:
                logger.debug("mmdc failed (%s): %s", result.returncode, result.stderr.strip())
            return result.returncode == 0

    async def __call__(self, content: str) -> bool:
        return await asyncio.to_thread(self._render, content)


class HttpRendererParser:
    """Validate a block by posting it to a Kroki-compatible renderer."""

    def __init__(
        self,
        base_url: str = "https://kroki.io",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def __call__(self, content: str) -> bool:
        url = f"{self.base_url}/mermaid/svg"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                url,
                content=content.encode("utf-8"),
                headers={"Content-Type": "text/plain"},
            )
        if response.status_code >= 400:
            logger.debug("Renderer rejected block (%s): %s", response.status_code, response.text[:200])
            return False
        return True
