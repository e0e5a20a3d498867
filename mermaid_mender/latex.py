"""
Math delimiter cleanup for generated Markdown.

- `\\(` and `\\)` become `$`
- Whitespace inside single-dollar inline math is trimmed
- `$$...$$` display math is left alone
- An escaped dollar `\\$` becomes a plain `$`
"""

import re

from .placeholders import protect_spans, restore

ESCAPED_DOLLAR_RE = re.compile(r"\\\$")
INLINE_MATH_RE = re.compile(r"\$\s*([^$]*?)\s*\$")


def cleanup_latex_delimiters(text: str) -> str:
    protected, registry = protect_spans(text, ESCAPED_DOLLAR_RE, tag="DOLLAR")
    protected = protected.replace("\\(", "$").replace("\\)", "$")

    def _trim(match: re.Match) -> str:
        whole = match.group(0)
        if whole.startswith("$$") and whole.endswith("$$"):
            return whole
        return f"${match.group(1).strip()}$"

    protected = INLINE_MATH_RE.sub(_trim, protected)
    # Escaped dollars come back unescaped
    for token in registry.spans:
        registry.spans[token] = "$"
    return restore(protected, registry)
