"""
Placeholder guard - Hide content from rewrite rules for one pass.

Protected content (table separator rows, escape sequences, bracketed
regions) is swapped for unique tokens before a pass and swapped back
afterwards. Restoration is an exact token lookup, so it does not care
whether lines were inserted or removed around a token in between.

Token format:
- Wrapped in private-use code points that no rule pattern matches
- Carries a per-registry nonce so tokens from two registries never collide
- Contains no dashes, quotes, brackets or pipes
"""

import re
import uuid
from dataclasses import dataclass, field
from typing import Callable

TOKEN_OPEN = "\ue000"
TOKEN_CLOSE = "\ue001"

TABLE_SEPARATOR_RE = re.compile(
    r"^\s*\|?(?:\s*:?\s*-+\s*:?\s*\|)+(?:\s*:?\s*-+\s*:?\s*)?\s*$"
)

# Backslash escapes (\" \[ ...) and diagram entity codes (#quot; #35;)
ESCAPE_RE = re.compile(r"\\.|#(?:\w+|\d+);")


@dataclass
class PlaceholderRegistry:
    """Side table mapping placeholder tokens to the text they replaced."""
    tag: str = "PH"
    nonce: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    spans: dict[str, str] = field(default_factory=dict)

    def add(self, original: str) -> str:
        """Register original text and return the token standing in for it."""
        token = f"{TOKEN_OPEN}{self.tag}_{self.nonce}_{len(self.spans)}{TOKEN_CLOSE}"
        self.spans[token] = original
        return token

    def __len__(self) -> int:
        return len(self.spans)


def is_table_separator(line: str) -> bool:
    """True for a Markdown table separator row such as `| --- | :-: |`."""
    return "|" in line and bool(TABLE_SEPARATOR_RE.match(line))


def protect_lines(
    text: str,
    predicate: Callable[[str], bool],
    tag: str = "LINE",
) -> tuple[str, PlaceholderRegistry]:
    """Replace every line matching predicate with a token."""
    registry = PlaceholderRegistry(tag=tag)
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if predicate(line):
            lines[i] = registry.add(line)
    return "\n".join(lines), registry


def protect_spans(
    text: str,
    pattern: re.Pattern | str,
    tag: str = "SPAN",
) -> tuple[str, PlaceholderRegistry]:
    """Replace every regex match in text with a token."""
    registry = PlaceholderRegistry(tag=tag)
    if isinstance(pattern, str):
        pattern = re.compile(pattern)
    protected = pattern.sub(lambda m: registry.add(m.group(0)), text)
    return protected, registry


def protect_escapes(text: str) -> tuple[str, PlaceholderRegistry]:
    """Hide escape sequences and entity codes."""
    return protect_spans(text, ESCAPE_RE, tag="ESC")


def restore(text: str, registry: PlaceholderRegistry) -> str:
    """Swap every token from registry back to its original text."""
    if not registry.spans:
        return text
    token_re = re.compile(
        re.escape(TOKEN_OPEN)
        + re.escape(registry.tag) + "_" + registry.nonce + r"_\d+"
        + re.escape(TOKEN_CLOSE)
    )
    return token_re.sub(lambda m: registry.spans.get(m.group(0), m.group(0)), text)
