"""
Graphviz DOT diagram generator for nodeform surveys.

Converts a Survey object into Graphviz DOT format for visualization.

Supports multiple modes:
    - SIMPLE: Basic node flow (titles only)
    - DETAILED: Node types, option labels and scores on branch edges
    - PATH: Like SIMPLE, with a respondent's visited path highlighted
"""

from enum import Enum
from typing import Dict, Optional, Sequence, Set, Tuple

from nodeform.model import ChoiceNode, Node, NodeType, RatingNode, SingleChoiceNode, Survey


class DotMode(Enum):
    """Visualization modes for DOT output."""
    SIMPLE = "simple"      # Just node flow
    DETAILED = "detailed"  # Include types, options, scores
    PATH = "path"          # Highlight a visited path


_NODE_STYLE: Dict[NodeType, Tuple[str, str]] = {
    NodeType.PRESENTATION: ("note", "lightyellow"),
    NodeType.SINGLE_CHOICE: ("diamond", "lightblue"),
    NodeType.MULTIPLE_CHOICE: ("box", "lightblue"),
    NodeType.RATING: ("hexagon", "plum"),
}

_MAX_LABEL = 40

_DOT_KEYWORDS = {"node", "edge", "graph", "digraph", "subgraph", "strict"}

_START_ID = "__start__"


def _escape_dot_string(s: str) -> str:
    """Escape special characters for DOT labels."""
    if not s:
        return '""'
    # Escape backslashes first, then quotes; keep explicit \n line breaks
    s = s.replace('\\', '\\\\')
    s = s.replace('"', '\\"')
    s = s.replace('\\\\n', '\\n')
    s = s.replace('\n', '\\n')
    return f'"{s}"'


def _escape_dot_id(identifier: str) -> str:
    """Escape/quote an identifier for DOT."""
    if identifier.lower() in _DOT_KEYWORDS:
        return f'"{identifier}"'
    if identifier and not identifier[0].isdigit() and identifier.replace('_', '').isalnum():
        return identifier
    return _escape_dot_string(identifier)


def _start_id(survey: Survey) -> str:
    """Id of the synthetic start marker, never one of the survey's node ids."""
    taken = {node.id for node in survey.nodes}
    start_id = _START_ID
    while start_id in taken:
        start_id = f"_{start_id}"
    return start_id


def _shorten(text: str) -> str:
    if len(text) > _MAX_LABEL:
        return text[:_MAX_LABEL - 3] + "..."
    return text


def _node_details(node: Node, scoring: bool) -> str:
    """Extra label lines for DETAILED mode."""
    info = [f"[{node.node_type.value}]"]
    if isinstance(node, ChoiceNode) and not isinstance(node, SingleChoiceNode):
        for option in node.options:
            suffix = f" ({option.score:+d})" if scoring else ""
            info.append(f"- {_shorten(option.label)}{suffix}")
    if isinstance(node, RatingNode):
        info.append(f"{node.min_value}..{node.max_value}")
    return "\\n".join(info)


def generate_dot(survey: Survey, mode: DotMode = DotMode.SIMPLE,
                 path: Optional[Sequence[str]] = None) -> str:
    """
    Generate Graphviz DOT format for a survey.

    Args:
        survey: Survey object to visualize
        mode: Visualization mode (SIMPLE, DETAILED, PATH)
        path: Visited node ids, used by PATH mode

    Returns:
        String containing DOT graph definition
    """
    lines = []

    lines.append("digraph survey {")
    lines.append("  rankdir=LR;")
    lines.append("  node [style=filled];")

    visited: Set[str] = set(path or []) if mode == DotMode.PATH else set()
    walked: Set[Tuple[str, str]] = set()
    if mode == DotMode.PATH and path:
        walked = set(zip(path, path[1:]))

    # =========================================================================
    # NODES
    # =========================================================================

    first = survey.first_node()
    start_id = _start_id(survey)
    if first is not None:
        lines.append(f'  {start_id} [shape=circle, fillcolor=lightgreen, label="START"];')

    for node in survey.nodes:
        node_id = _escape_dot_id(node.id)
        shape, color = _NODE_STYLE[node.node_type]
        label = _shorten(node.title or node.id)

        if mode == DotMode.DETAILED:
            label = f"{label}\\n{_node_details(node, survey.enable_scoring)}"

        attrs = [f"shape={shape}", f"label={_escape_dot_string(label)}"]
        if node.id in visited:
            attrs.append("fillcolor=orange")
            attrs.append("penwidth=2")
        else:
            attrs.append(f"fillcolor={color}")
        lines.append(f"  {node_id} [{', '.join(attrs)}];")

    # =========================================================================
    # EDGES
    # =========================================================================

    if first is not None:
        lines.append(f"  {start_id} -> {_escape_dot_id(first.id)};")

    for edge in survey.edges:
        from_id = _escape_dot_id(edge.source_node_id)
        to_id = _escape_dot_id(edge.target_node_id)
        attrs = []

        source = survey.find_node(edge.source_node_id)
        if mode == DotMode.DETAILED and isinstance(source, SingleChoiceNode):
            option = source.get_option(edge.source_handle or "")
            if option is None:
                attrs.append(f"label={_escape_dot_string('?' + (edge.source_handle or ''))}")
                attrs.append("color=red")
            else:
                label = _shorten(option.label)
                if survey.enable_scoring:
                    label = f"{label} ({option.score:+d})"
                attrs.append(f"label={_escape_dot_string(label)}")

        if (edge.source_node_id, edge.target_node_id) in walked:
            attrs.append("color=orange")
            attrs.append("penwidth=2")

        attr_str = f" [{', '.join(attrs)}]" if attrs else ""
        lines.append(f"  {from_id} -> {to_id}{attr_str};")

    lines.append("}")

    return "\n".join(lines)


def save_dot_file(survey: Survey, filename: str, mode: DotMode = DotMode.SIMPLE,
                  path: Optional[Sequence[str]] = None) -> None:
    """
    Generate DOT and save to file.

    Args:
        survey: Survey to visualize
        filename: Output file path (.dot extension recommended)
        mode: Visualization mode
        path: Visited node ids for PATH mode
    """
    dot = generate_dot(survey, mode=mode, path=path)
    with open(filename, 'w') as f:
        f.write(dot)


__all__ = ["DotMode", "generate_dot", "save_dot_file"]
