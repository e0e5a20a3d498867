"""
Repair pipeline - Ordered fold of repair rules over one diagram block.

The rule list is data: each RepairRule names a rule and how to apply it.
Order matters. Later rules rely on earlier ones having canonicalized arrows,
quotes and labels. Escape sequences and entity codes are hidden from every
rule for the duration of the pass.
"""

from dataclasses import dataclass, field
from typing import Callable

from . import rules
from .analysis import ValidIdSet, detect_diagram_type, harvest_valid_ids
from .models import DiagramType
from .placeholders import protect_escapes, restore


@dataclass
class RepairContext:
    """
    Per-call state shared by the rules of one pipeline run.

    Built fresh for every block and discarded afterwards; nothing in here
    survives across calls.
    """
    valid_ids: ValidIdSet
    diagram_type: DiagramType = DiagramType.UNKNOWN
    note_names: set[str] = field(default_factory=set)
    note_counter: int = 0

    @property
    def is_flowchart(self) -> bool:
        return self.diagram_type in (DiagramType.FLOWCHART, DiagramType.UNKNOWN)

    def next_note_name(self, node_id: str) -> str:
        """`Note{id}`, or `Note{id}_{n}` when that name is already taken."""
        name = f"Note{node_id}"
        while name in self.note_names or name in self.valid_ids:
            self.note_counter += 1
            name = f"Note{node_id}_{self.note_counter}"
        self.note_names.add(name)
        return name


@dataclass(frozen=True)
class RepairRule:
    """A named rewrite step of the pipeline."""
    name: str
    apply: Callable[[str, RepairContext], str]
    description: str = ""

    @classmethod
    def per_line(cls, fn: Callable[[str], str]) -> "RepairRule":
        """Wrap a line rule so it runs on every line of the block."""
        def _apply(content: str, ctx: RepairContext) -> str:
            return "\n".join(fn(line) for line in content.split("\n"))
        return cls(name=fn.__name__, apply=_apply, description=(fn.__doc__ or "").strip())

    @classmethod
    def per_block(cls, fn: Callable[[str, RepairContext], str]) -> "RepairRule":
        return cls(name=fn.__name__, apply=fn, description=(fn.__doc__ or "").strip())


REPAIR_RULES: list[RepairRule] = [
    # Cleanup
    RepairRule.per_line(rules.strip_placeholder_artifacts),
    RepairRule.per_line(rules.remove_empty_label_artifacts),
    RepairRule.per_line(rules.normalize_smart_quotes),
    RepairRule.per_line(rules.fix_nested_label_quotes),
    RepairRule.per_line(rules.merge_trailing_comments),
    # Arrows
    RepairRule.per_block(rules.fix_invalid_arrows),
    RepairRule.per_line(rules.fix_reversed_edges),
    RepairRule.per_line(rules.fix_misplaced_pipes),
    RepairRule.per_line(rules.fix_malformed_arrow_labels),
    # Edge labels
    RepairRule.per_line(rules.relocate_trailing_labels),
    RepairRule.per_line(rules.convert_inline_group_labels),
    RepairRule.per_line(rules.merge_double_edge_labels),
    RepairRule.per_line(rules.promote_trailing_double_dash),
    RepairRule.per_line(rules.quote_pipe_labels),
    RepairRule.per_line(rules.quote_edge_labels),
    # Directives
    RepairRule.per_block(rules.convert_note_directives),
    # Nodes
    RepairRule.per_line(rules.split_intermediate_nodes),
    RepairRule.per_block(rules.split_concatenated_labels),
    RepairRule.per_line(rules.wrap_missing_brackets),
    RepairRule.per_line(rules.fix_excessive_brackets),
    RepairRule.per_line(rules.collapse_duplicate_labels),
    RepairRule.per_line(rules.quote_unsafe_node_labels),
]


def rule_names() -> list[str]:
    return [rule.name for rule in REPAIR_RULES]


def build_context(content: str) -> RepairContext:
    return RepairContext(
        valid_ids=harvest_valid_ids(content),
        diagram_type=detect_diagram_type(content),
    )


def repair(content: str, rule_list: list[RepairRule] | None = None) -> str:
    """
    Run the repair rules over the inner text of one diagram block.

    Args:
        content: Block text between the fences
        rule_list: Rules to apply, defaults to REPAIR_RULES

    Returns:
        The rewritten block text
    """
    protected, registry = protect_escapes(content)
    ctx = build_context(protected)
    for rule in rule_list if rule_list is not None else REPAIR_RULES:
        protected = rule.apply(protected, ctx)
    return restore(protected, registry)
