"""
Repair rules - Heuristic rewrites for diagram blocks that fail to parse.

Each rule is a plain function:
- Line rules map one line to one line
- Block rules take the whole block text plus the per-call RepairContext

Rules never raise on input they do not understand; a rule that does not
match returns its input unchanged. Ordering lives in pipeline.py.
"""

import re
from typing import TYPE_CHECKING

from .brackets import protect_bracket_regions, strip_inner_quotes
from .line_normalizer import quote_pipe_labels as _quote_pipe_labels
from .placeholders import restore

if TYPE_CHECKING:
    from .pipeline import RepairContext

IDENT = r"[A-Za-z0-9_]+"

# Two dashes used as a label separator, never part of `---`, `-->` or `-.-`
SEPARATOR = r"(?<!-)--(?![->])"

# Quoted label, or an unquoted run without a double dash
LABEL = r'"[^"]*"|(?:[^"\-]|-(?!-))+?'


# --- Cleanup ---

PLACEHOLDER_ARTIFACT_RE = re.compile(r"___BRACKET_BLOCK_\d+___")
EMPTY_LABEL_RE = re.compile(r'\[""\]|(?<=[A-Za-z0-9_])\[\s*\]')

SMART_QUOTES = str.maketrans({
    "\u201c": '"', "\u201d": '"', "\u201e": '"', "\u201f": '"', "\u2033": '"',
    "\u2018": "'", "\u2019": "'",
})


def strip_placeholder_artifacts(line: str) -> str:
    """Remove leaked `___BRACKET_BLOCK_n___` tokens."""
    return PLACEHOLDER_ARTIFACT_RE.sub("", line)


def remove_empty_label_artifacts(line: str) -> str:
    """`A[""] --> B[]` becomes `A --> B`."""
    return EMPTY_LABEL_RE.sub("", line)


def normalize_smart_quotes(line: str) -> str:
    return line.translate(SMART_QUOTES)


def fix_nested_label_quotes(line: str) -> str:
    """`A["x E["y"] z"]` becomes `A["x E[y] z"]`."""
    return strip_inner_quotes(line)


# --- Comments ---

TRAILING_COMMENT_RE = re.compile(r"^(?P<body>.*?;)\s*[%#]+\s*(?P<comment>.+?)\s*$")
QUOTED_EDGE_LABEL_RE = re.compile(r'--\s*"(?P<label>[^"]*)"\s*-->')
UNQUOTED_EDGE_LABEL_RE = re.compile(rf'{SEPARATOR}\s*(?P<label>[^"\s\-](?:[^"\-]|-(?!-))*?)\s*-->')


def merge_trailing_comments(line: str) -> str:
    """
    Fold a comment after the terminator into the edge label.

    `A -- "L" --> B; % note` becomes `A -- "L(note)" --> B;`; an edge with no
    label gets the comment as its label.
    """
    match = TRAILING_COMMENT_RE.match(line)
    if not match or "-->" not in match.group("body"):
        return line

    body = match.group("body")
    comment = match.group("comment").replace('"', "'")

    def _append(m: re.Match) -> str:
        return f'-- "{m.group("label").strip()}({comment})" -->'

    if QUOTED_EDGE_LABEL_RE.search(body):
        return QUOTED_EDGE_LABEL_RE.sub(_append, body, count=1)
    if UNQUOTED_EDGE_LABEL_RE.search(body):
        return UNQUOTED_EDGE_LABEL_RE.sub(_append, body, count=1)
    return re.sub(r"\s*-->", f' -- "{comment}" -->', body, count=1)


# --- Arrows ---

INVALID_ARROW_RE = re.compile(r"--\|>|--\s+>(?!>)|[\u2014\u2013]>|-->>|\u2192")
REVERSED_EDGE_RE = re.compile(
    rf"^(?P<indent>\s*)(?P<left>{IDENT}(?:\[[^\]]*\])?)\s*<--(?!>)\s*"
    rf"(?P<right>{IDENT}(?:\[[^\]]*\])?)(?P<tail>\s*;?\s*)$"
)
MISPLACED_PIPE_RE = re.compile(
    r'^(?P<indent>\s*)>\|(?P<label>"(?:\\.|[^"\\])*"|[^|]+)\|\s*'
    r"(?P<src>\S+)\s+(?P<arrow>-->|---)\s+(?P<dst>.+?)\s*$"
)


def fix_invalid_arrows(content: str, ctx: "RepairContext") -> str:
    """`--|>`, `-- >`, dash-like `>` and `-->>` become `-->` in flowcharts."""
    if not ctx.is_flowchart:
        return content
    return INVALID_ARROW_RE.sub("-->", content)


def fix_reversed_edges(line: str) -> str:
    """`A <-- B;` becomes `B --> A;`."""
    match = REVERSED_EDGE_RE.match(line)
    if not match:
        return line
    return f"{match.group('indent')}{match.group('right')} --> {match.group('left')}{match.group('tail')}"


def fix_misplaced_pipes(line: str) -> str:
    """`>|"L"| A --> B` becomes `A -->|"L"| B`."""
    match = MISPLACED_PIPE_RE.match(line)
    if not match:
        return line
    g = match.groupdict()
    return f"{g['indent']}{g['src']} {g['arrow']}|{g['label']}| {g['dst']}"


def fix_malformed_arrow_labels(line: str) -> str:
    """
    Move quotes that swallowed an arrow back inside the label.

    `A -- "Feeds -->" B` becomes `A -- "Feeds" --> B`. Bracketed labels are
    hidden while rewriting so their text is never touched.
    """
    if "--" not in line:
        return line

    protected, registry = protect_bracket_regions(line)

    def _closing(m: re.Match) -> str:
        # Only a quote that closes a label (odd count before it)
        if protected.count('"', 0, m.start() + 4) % 2 == 1:
            return '" -->'
        return m.group(0)

    def _opening(m: re.Match) -> str:
        if protected.count('"', 0, m.start()) % 2 == 0:
            return '--" '
        return m.group(0)

    protected = re.sub(r' -->"', _closing, protected)
    protected = re.sub(r'"-- ', _opening, protected)
    return restore(protected, registry)


# --- Labels on edges ---

TRAILING_LABEL_RE = re.compile(
    r'^(?P<head>.*?)(?P<arrow>-->|---)\s*(?P<tail>[^;"]*;)\s*"(?P<label>[^"]*)"\s*$'
)
INLINE_GROUP_LABEL_RE = re.compile(
    rf'{SEPARATOR}\s*(?:subgraph\s+"?(?P<sub>[^"\-]+?)"?|[\[{{]\s*"?(?P<label>[^"\]}}]*?)"?\s*[\]}}])\s*-->'
)
DOUBLE_LABEL_RE = re.compile(
    rf"{SEPARATOR}\s*(?P<first>{LABEL})\s*{SEPARATOR}\s*(?P<second>{LABEL})\s*(?P<arrow>-->|---)(?!-)"
)
LABEL_THEN_PIPE_RE = re.compile(r'--\s*"(?P<first>[^"]*)"\s*-->\s*\|"?(?P<second>[^"|]*)"?\|')
TRAILING_DOUBLE_DASH_RE = re.compile(
    rf"{SEPARATOR}(?P<gap>\s*)(?P<dst>{IDENT}(?:\[[^\]]*\])?)(?P<end>\s*;\s*)$"
)
EDGE_LABEL_RE = re.compile(
    rf'(?P<sep>{SEPARATOR})\s*(?P<label>[^"\s\-](?:[^"\-]|-(?!-))*?)\s*(?P<arrow>-->|---)(?!-)'
)
NODE_REFERENCE_RE = re.compile(rf"{IDENT}\[[^\]]*\]")


def _unquote(label: str) -> str:
    label = label.strip()
    if len(label) >= 2 and label.startswith('"') and label.endswith('"'):
        return label[1:-1]
    return label


def relocate_trailing_labels(line: str) -> str:
    """`A --> B; "L"` becomes `A -- "L" --> B;`."""
    match = TRAILING_LABEL_RE.match(line)
    if not match:
        return line
    g = match.groupdict()
    return f'{g["head"].rstrip()} -- "{g["label"]}" {g["arrow"]} {g["tail"].strip()}'


def convert_inline_group_labels(line: str) -> str:
    """`A -- ["L"] --> B` and `A -- subgraph L --> B` become `A -- "L" --> B`."""
    def _fix(m: re.Match) -> str:
        label = m.group("sub") if m.group("sub") is not None else m.group("label")
        return f'-- "{label.strip()}" -->'

    return INLINE_GROUP_LABEL_RE.sub(_fix, line)


def merge_double_edge_labels(line: str) -> str:
    """
    Merge two label segments on one edge.

    `A -- L1 -- L2 --> B` becomes `A -- "L1<br>L2" --> B` and
    `A -- "L1" -->|"L2"| B` becomes `A -- "L1<br>(L2)" --> B`. A chain of
    undecorated links such as `A --- B --- C --> D` is left alone.
    """
    line = DOUBLE_LABEL_RE.sub(
        lambda m: f'-- "{_unquote(m.group("first"))}<br>{_unquote(m.group("second"))}" {m.group("arrow")}',
        line,
    )
    return LABEL_THEN_PIPE_RE.sub(
        lambda m: f'-- "{m.group("first")}<br>({m.group("second").strip()})" -->',
        line,
    )


def promote_trailing_double_dash(line: str) -> str:
    """`A -- B;` becomes `A --> B;`."""
    return TRAILING_DOUBLE_DASH_RE.sub(
        lambda m: f"-->{m.group('gap')}{m.group('dst')}{m.group('end')}",
        line,
    )


def quote_pipe_labels(line: str) -> str:
    return _quote_pipe_labels(line)


def quote_edge_labels(line: str) -> str:
    """Quote an unquoted `-- label -->` that contains punctuation."""
    def _fix(m: re.Match) -> str:
        label = m.group("label").strip()
        if not re.search(r"[^\w\s]", label) or NODE_REFERENCE_RE.fullmatch(label):
            return m.group(0)
        return f'-- "{label}" {m.group("arrow")}'

    return EDGE_LABEL_RE.sub(_fix, line)


# --- Directives ---

NOTE_OF_RE = re.compile(
    rf"^(?P<indent>\s*)note\s+(?:right|left|top|bottom|over)\s+of\s+(?P<id>{IDENT})\s*:\s*(?P<text>.*?)\s*$",
    re.IGNORECASE,
)
NOTE_FOR_RE = re.compile(
    rf'^(?P<indent>\s*)note\s+(?:(?:for|of)\s+)?(?P<id>{IDENT})\s*:?\s*"(?P<text>[^"]*)"\s*;?\s*$',
    re.IGNORECASE,
)
PLAIN_EDGE_RE = re.compile(
    rf"^(?P<indent>\s*)(?P<src>{IDENT})(?P<src_label>\[[^\]]*\])?\s*(?P<arrow>-->|---)(?!\|)\s*"
    rf"(?P<dst>{IDENT})(?P<rest>.*)$"
)


def _note_node(indent: str, node_id: str, text: str, ctx: "RepairContext") -> list[str]:
    name = ctx.next_note_name(node_id)
    return [f'{indent}{name}["{text}"]', f"{indent}{node_id} -.- {name}"]


def convert_note_directives(content: str, ctx: "RepairContext") -> str:
    """
    Replace inline note directives, which flowcharts do not support.

    `note right of X : text` becomes the label of the nearest preceding
    unlabeled edge leaving X (or, failing that, entering X). When there is
    no such edge, and for `note for X "text"`, a note node plus a dotted
    connector to X is synthesized instead. The directive line is removed.
    """
    if not ctx.is_flowchart:
        return content

    lines = content.split("\n")
    out: list[str] = []

    for line in lines:
        match = NOTE_OF_RE.match(line)
        if match:
            node_id = match.group("id")
            text = match.group("text").replace('"', "#quot;")
            if not _attach_to_edge(out, node_id, text):
                out.extend(_note_node(match.group("indent"), node_id, text, ctx))
            continue

        match = NOTE_FOR_RE.match(line)
        if match:
            out.extend(_note_node(match.group("indent"), match.group("id"), match.group("text"), ctx))
            continue

        out.append(line)

    return "\n".join(out)


def _attach_to_edge(lines: list[str], node_id: str, text: str) -> bool:
    """Label the nearest preceding unlabeled edge touching node_id."""
    for j in range(len(lines) - 1, -1, -1):
        match = PLAIN_EDGE_RE.match(lines[j])
        if not match:
            continue
        g = match.groupdict()
        if node_id not in (g["src"], g["dst"]):
            continue
        src_label = g["src_label"] or ""
        lines[j] = f'{g["indent"]}{g["src"]}{src_label} -- "{text}" {g["arrow"]} {g["dst"]}{g["rest"]}'
        return True
    return False


# --- Nodes ---

INTERMEDIATE_NODE_RE = re.compile(
    rf"^(?P<indent>\s*)(?P<src>.+?)\s+--\s+(?P<mid>{IDENT}\[[^\]]*\])\s+(?P<arrow>-->|---)\s+(?P<dst>.+?)\s*$"
)
CONCATENATED_TARGET_RE = re.compile(
    rf"(?P<arrow>(?:-->|---|==>|-\.->)(?:\s*\|[^|]*\|)?\s*)(?P<token>{IDENT})(?![A-Za-z0-9_])"
    r'(?P<rest>(?:[^\[\];\-"&]|-(?!-))*?)(?P<end>\s*;?\s*)$'
)
MISSING_BRACKET_RE = re.compile(
    r'(?P<arrow>(?:---|-->|--\s*"[^"]*"\s*-->)(?:\s*\|[^|]*\|)?\s*)'
    rf"(?P<id>{IDENT})(?![A-Za-z0-9_])(?P<content>(?:[^\[\];\n\-]|-(?!-))+)(?P<end>;)"
)
EXCESSIVE_OPEN_RE = re.compile(r'\[\[+"')
EXCESSIVE_CLOSE_RE = re.compile(r'"\]\]+')
DUPLICATE_LABELS_RE = re.compile(rf'(?P<id>{IDENT})(?P<labels>(?:\["[^"]*"\]){{2,}})')
LAST_LABEL_RE = re.compile(r'\["[^"]*"\]$')
UNQUOTED_LABEL_RE = re.compile(
    rf"(?<![A-Za-z0-9_])(?P<id>{IDENT})\[(?![\[\"(/\\])(?P<content>[^\[\]]*)\](?!\])"
)
UNSAFE_LABEL_CHARS_RE = re.compile(r"[\"'=*\u00b1;+]|(?:^|\s)-")

# Text after a node id that is not a label (`&` joins, `:::` classes, shapes)
NOT_A_LABEL = ("&", ":", "(", "{", ">", "@", "|")


def split_intermediate_nodes(line: str) -> str:
    """`A -- Mid["L"] --> B` becomes two edges through Mid."""
    match = INTERMEDIATE_NODE_RE.match(line)
    if not match:
        return line
    g = match.groupdict()
    return f"{g['indent']}{g['src']} --> {g['mid']}\n{g['indent']}{g['mid']} {g['arrow']} {g['dst']}"


def _doubled_prefix(token: str) -> str | None:
    """`SplitSplit` -> `Split`: shortest prefix repeated right after itself."""
    for k in range(2, len(token) // 2 + 1):
        if token[:k] == token[k:2 * k]:
            return token[:k]
    return None


def _plausible_boundary(prefix: str, remainder: str) -> bool:
    first = remainder[0]
    return (
        first.isupper()
        or first.isdigit()
        or not first.isascii()
        or prefix[-1].isdigit()
        or len(prefix) >= 3
    )


def split_concatenated_labels(content: str, ctx: "RepairContext") -> str:
    """
    Split an edge target whose label was glued onto its identifier.

    `--> SubdivideSubdivide into 8 Octants` becomes
    `--> Subdivide["Subdivide into 8 Octants"]` when `Subdivide` is a known
    identifier of the block; `--> BSupercapacitor;` becomes
    `--> B["Supercapacitor"];`. Without a known prefix, an identifier
    repeated against itself (`SplitSplit Sample`) is split at the repeat.
    """
    valid_ids = ctx.valid_ids

    def _split(match: re.Match) -> str:
        token, rest = match.group("token"), match.group("rest")
        if token in valid_ids.defined:
            return match.group(0)

        prefix = valid_ids.longest_prefix(token)
        if prefix is None or not _plausible_boundary(prefix, token[len(prefix):]):
            prefix = _doubled_prefix(token)
        if prefix is None:
            return match.group(0)

        remainder = token[len(prefix):]
        if not remainder:
            return match.group(0)

        if not rest.strip():
            # Nothing after the token: only split an obviously glued word
            occurrences = len(re.findall(rf"(?<![A-Za-z0-9_]){re.escape(token)}(?![A-Za-z0-9_])", content))
            glued = remainder[0].isupper() or not remainder[0].isascii()
            if not glued or len(remainder) < 2 or occurrences != 1 or remainder in valid_ids:
                return match.group(0)

        label = f"{remainder}{rest}".strip().replace('"', "")
        return f'{match.group("arrow")}{prefix}["{label}"]{match.group("end")}'

    lines = []
    for line in content.split("\n"):
        if "subgraph" in line:
            lines.append(line)
            continue
        lines.append(CONCATENATED_TARGET_RE.sub(_split, line, count=1))
    return "\n".join(lines)


def wrap_missing_brackets(line: str) -> str:
    """`--> Id some text;` becomes `--> Id["some text"];`."""
    def _wrap(m: re.Match) -> str:
        content = m.group("content")
        stripped = content.strip()
        if not stripped or "--" in content or stripped.startswith(NOT_A_LABEL):
            return m.group(0)
        return f'{m.group("arrow")}{m.group("id")}["{stripped.replace(chr(34), "")}"]{m.group("end")}'

    return MISSING_BRACKET_RE.sub(_wrap, line)


def fix_excessive_brackets(line: str) -> str:
    """`[["L"]]` becomes `["L"]`."""
    return EXCESSIVE_CLOSE_RE.sub('"]', EXCESSIVE_OPEN_RE.sub('["', line))


def collapse_duplicate_labels(line: str) -> str:
    """`Id["a"]["b"]` keeps only the last label: `Id["b"]`."""
    return DUPLICATE_LABELS_RE.sub(
        lambda m: m.group("id") + LAST_LABEL_RE.search(m.group("labels")).group(0),
        line,
    )


def quote_unsafe_node_labels(line: str) -> str:
    """
    Quote `Id[text]` labels holding characters the grammar rejects.

    Inner double quotes are dropped and a trailing `;` inside the bracket is
    moved outside it: `A[x = y;]` becomes `A["x = y"];`.
    """
    def _quote(m: re.Match) -> str:
        if line.count('"', 0, m.start()) % 2 == 1:
            return m.group(0)
        content = m.group("content")
        if not UNSAFE_LABEL_CHARS_RE.search(content):
            return m.group(0)
        terminator = ""
        if content.rstrip().endswith(";"):
            content = content.rstrip()[:-1]
            terminator = ";"
        return f'{m.group("id")}["{content.replace(chr(34), "").strip()}"]{terminator}'

    return UNQUOTED_LABEL_RE.sub(_quote, line)
