"""
Bracket scanning - Depth-tracking bracket matching for label regions.

Node labels may legitimately contain nested brackets (`A["x [y] z"]`), so
regexes alone cannot find where a label ends. These helpers walk the text
and track nesting depth instead. An opener without a balanced closer is
reported as -1 and every caller leaves such a region alone.
"""

from typing import Iterator

from .placeholders import PlaceholderRegistry


def find_closing_bracket(text: str, start: int, opener: str = "[", closer: str = "]") -> int:
    """
    Return the index of the bracket closing the opener at text[start].

    Args:
        text: Text to scan
        start: Index of the opening bracket
        opener: Opening bracket character
        closer: Closing bracket character

    Returns:
        Index of the matching closer, or -1 if it is never balanced
    """
    if start < 0 or start >= len(text) or text[start] != opener:
        return -1

    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == opener:
            depth += 1
        elif ch == closer:
            depth -= 1
            if depth == 0:
                return i
    return -1


def iter_bracket_regions(text: str, opener: str = "[", closer: str = "]") -> Iterator[tuple[int, int]]:
    """Yield (start, end) of each balanced top-level bracket region."""
    i = 0
    while i < len(text):
        if text[i] == opener:
            end = find_closing_bracket(text, i, opener, closer)
            if end == -1:
                # Unbalanced opener; keep looking after it
                i += 1
                continue
            yield i, end
            i = end + 1
        else:
            i += 1


def strip_inner_quotes(text: str) -> str:
    """
    Drop double quotes nested inside a quoted `["..."]` label.

    `A["x E["y"] z"]` becomes `A["x E[y] z"]`. The outer quotes of each label
    are kept. Regions whose brackets do not balance are left untouched.
    """
    out: list[str] = []
    i = 0
    while i < len(text):
        if text.startswith('["', i):
            end = find_closing_bracket(text, i)
            if end != -1 and end - i >= 3 and text[end - 1] == '"':
                inner = text[i + 2:end - 1]
                out.append('["' + inner.replace('"', "") + '"]')
                i = end + 1
                continue
        out.append(text[i])
        i += 1
    return "".join(out)


def protect_bracket_regions(text: str) -> tuple[str, PlaceholderRegistry]:
    """Hide every balanced `[...]` region behind a placeholder token."""
    registry = PlaceholderRegistry(tag="BR")
    out: list[str] = []
    last = 0
    for start, end in iter_bracket_regions(text):
        out.append(text[last:start])
        out.append(registry.add(text[start:end + 1]))
        last = end + 1
    out.append(text[last:])
    return "".join(out), registry
