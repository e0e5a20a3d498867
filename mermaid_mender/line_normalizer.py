"""
Line normalizer - Per-line cleanup applied while scanning a diagram block.

Steps, in order:
- Hash comments after an edge become the edge label
- Quote/bracket repair (skipped on subgraph lines)
- Pipe labels after an arrow are quoted
- Parentheses and braces are stripped from bracketed label text
- Tail cleanup of dangling `["`

Every step is a no-op on well-formed lines, so running the normalizer twice
gives the same result as running it once.
"""

import re

from .brackets import iter_bracket_regions
from .models import Line

MAX_PASSES = 4

HASH_COMMENT_RE = re.compile(r"^(\s*)(\w+)\s*-->\s*(\w+);\s*#(.*)$")
BROKEN_EDGE_LABEL_RE = re.compile(r'--\s*\["(.+?)\["\s*-->')
UNQUOTED_NESTED_LABEL_RE = re.compile(r"""([^\s\[]+)\s*\[(?!"|')((?:[^\[\]]|\[[^\[\]]*\])*)\]""")
SINGLE_NESTED_GROUP_RE = re.compile(r"\[[^\[\]]*\]")
PIPE_LABEL_RE = re.compile(r'(?P<arrow>-->|---|==>|-\.->)(?P<gap>\s*)\|(?P<label>[^"|][^"|]*?)\|')
DECORATION_RE = re.compile(r"[(){}]")

# Inner text starting with one of these marks a shape, not a label
SHAPE_MARKERS = ("(", "[", "/", "\\", "{")


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def merge_hash_comment(line: str) -> str:
    """`A --> B; # text` becomes `A -- "text" --> B;`."""
    match = HASH_COMMENT_RE.match(line)
    if not match:
        return line
    indent, src, dst, comment = match.groups()
    return f'{indent}{src} -- "{comment.strip()}" --> {dst};'


def bracket_quoted_labels(line: str) -> str:
    """
    Wrap a quoted label glued to an identifier in square brackets.

    `A"Text";` becomes `A["Text"];`. Only an opening quote (an even number of
    quotes precede it) outside any bracket region, right after an identifier
    character, and not followed by a space, `;` or `]` qualifies. Without a
    closing quote the line is returned unchanged.
    """
    out: list[str] = []
    quotes = 0
    depth = 0
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if (
            ch == '"'
            and quotes % 2 == 0
            and depth == 0
            and i > 0
            and _is_ident_char(line[i - 1])
            and i + 1 < n
            and line[i + 1] not in " ;]"
        ):
            close = line.find('"', i + 1)
            if close != -1:
                out.append('["' + line[i + 1:close] + '"]')
                quotes += 2
                i = close + 1
                continue
        if ch == '"':
            quotes += 1
        elif quotes % 2 == 0 and ch == "[":
            depth += 1
        elif quotes % 2 == 0 and ch == "]":
            depth = max(0, depth - 1)
        out.append(ch)
        i += 1
    return "".join(out)


def clean_label_tail(line: str) -> str:
    """`["` before a terminator or at end of line closes the label."""
    line = line.replace('[";', '"];')
    if line.endswith('["'):
        line = line[:-2] + '"]'
    return line


def fix_broken_edge_labels(line: str) -> str:
    """`A --["Text["--> B` becomes `A -- "Text" --> B`."""
    return BROKEN_EDGE_LABEL_RE.sub(r'-- "\1" -->', line)


def quote_nested_bracket_labels(line: str) -> str:
    """
    Quote unquoted labels that contain brackets or a pipe.

    `Id[a [b]]` becomes `Id["a [b]"]` and `Id[x|y]` becomes `Id["x|y"]`.
    Double quotes inside the label are dropped.
    """
    def _fix(match: re.Match) -> str:
        node_id, content = match.group(1), match.group(2)
        if not re.search(r"[\[\]|]", content):
            return match.group(0)
        if SINGLE_NESTED_GROUP_RE.fullmatch(content):
            # Id[[text]] is a subroutine shape
            return match.group(0)
        return f'{node_id}["{content.replace(chr(34), "")}"]'

    return UNQUOTED_NESTED_LABEL_RE.sub(_fix, line)


def quote_pipe_labels(line: str) -> str:
    """`A -->|Yes| B` becomes `A -->|"Yes"| B`."""
    return PIPE_LABEL_RE.sub(
        lambda m: f'{m.group("arrow")}{m.group("gap")}|"{m.group("label")}"|',
        line,
    )


def strip_label_decorations(line: str) -> str:
    """Remove `(){}` from the text of `Id[...]` label regions."""
    out: list[str] = []
    last = 0
    for start, end in iter_bracket_regions(line):
        if start == 0 or not _is_ident_char(line[start - 1]):
            continue
        inner = line[start + 1:end]
        if inner.startswith(SHAPE_MARKERS):
            continue
        out.append(line[last:start + 1])
        out.append(DECORATION_RE.sub("", inner))
        last = end
    out.append(line[last:])
    return "".join(out)


def normalize_line(line: str) -> str:
    """Apply every per-line fix to one line of a diagram block."""
    line = merge_hash_comment(line)

    if not Line(line).has_subgraph:
        for _ in range(MAX_PASSES):
            previous = line
            line = clean_label_tail(bracket_quoted_labels(line))
            if line == previous:
                break
        line = fix_broken_edge_labels(line)
        line = quote_nested_bracket_labels(line)

    line = quote_pipe_labels(line)
    line = strip_label_decorations(line)
    return clean_label_tail(line)
