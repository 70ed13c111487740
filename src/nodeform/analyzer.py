"""
Survey Analyzer: integrity checks and inventory of survey graphs.

This module provides:
    - validate_survey: the pre-publish integrity check (list of issues)
    - analyze_survey: a read-only report (entry/exit points, reachability,
      cycles, attainable score, plus the issues)

IMPORTANT: Nothing here modifies the survey. The traversal engine does not
assume these checks ran; it fails closed on its own.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set

from nodeform.model import (
    ChoiceNode,
    MultipleChoiceNode,
    Node,
    RatingNode,
    SingleChoiceNode,
    Survey,
)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class IssueCode(Enum):
    """Kinds of integrity problems. ERROR codes block publishing."""

    EMPTY_SURVEY = "empty_survey"
    DUPLICATE_NODE_ID = "duplicate_node_id"
    DUPLICATE_EDGE_ID = "duplicate_edge_id"
    MISSING_TITLE = "missing_title"
    DUPLICATE_OPTION_ID = "duplicate_option_id"
    INVALID_RATING_RANGE = "invalid_rating_range"
    DANGLING_SOURCE = "dangling_source"
    DANGLING_TARGET = "dangling_target"
    UNKNOWN_OPTION_HANDLE = "unknown_option_handle"
    DUPLICATE_BRANCH = "duplicate_branch"
    NO_OPTIONS = "no_options"
    MULTIPLE_CONTINUATIONS = "multiple_continuations"
    UNREACHABLE_NODE = "unreachable_node"


_WARNING_CODES = {
    IssueCode.NO_OPTIONS,
    IssueCode.MULTIPLE_CONTINUATIONS,
    IssueCode.UNREACHABLE_NODE,
}


@dataclass(frozen=True)
class Issue:
    """A single integrity problem found in a survey."""

    code: IssueCode
    message: str
    node_id: Optional[str] = None
    edge_id: Optional[str] = None

    @property
    def severity(self) -> Severity:
        return Severity.WARNING if self.code in _WARNING_CODES else Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


def _find_cycles_dfs(graph: Dict[str, List[str]], start: str, visited: Set[str],
                     rec_stack: Set[str], path: List[str]) -> Optional[List[str]]:
    """DFS to find a cycle starting from a node."""
    visited.add(start)
    rec_stack.add(start)
    path.append(start)

    for neighbor in graph.get(start, []):
        if neighbor not in visited:
            cycle = _find_cycles_dfs(graph, neighbor, visited, rec_stack, path[:])
            if cycle:
                return cycle
        elif neighbor in rec_stack:
            cycle_start_idx = path.index(neighbor)
            return path[cycle_start_idx:] + [neighbor]

    rec_stack.remove(start)
    return None


def _adjacency(survey: Survey) -> Dict[str, List[str]]:
    """Outgoing neighbours per node, ignoring edges touching missing nodes."""
    node_ids = {node.id for node in survey.nodes}
    outgoing: Dict[str, List[str]] = defaultdict(list)
    for edge in survey.edges:
        if edge.source_node_id in node_ids and edge.target_node_id in node_ids:
            outgoing[edge.source_node_id].append(edge.target_node_id)
    return outgoing


def _reachable_from(outgoing: Dict[str, List[str]], start: str) -> Set[str]:
    reachable: Set[str] = set()
    stack = [start]
    while stack:
        node = stack.pop()
        if node in reachable:
            continue
        reachable.add(node)
        for neighbor in outgoing.get(node, []):
            if neighbor not in reachable:
                stack.append(neighbor)
    return reachable


def validate_survey(survey: Survey) -> List[Issue]:
    """
    Check a survey graph for integrity problems.

    Checks for:
    - Empty survey, duplicate node and edge ids, missing titles
    - Duplicate option ids, empty option lists, inverted rating ranges
    - Edges pointing at missing nodes
    - SingleChoice edges whose handle names no option, or repeat a branch
    - Non-branching nodes with more than one continuation
    - Nodes unreachable from the first node

    Returns issues in a stable order (graph walk order).
    """
    issues: List[Issue] = []

    if not survey.nodes:
        issues.append(Issue(IssueCode.EMPTY_SURVEY, f"Survey {survey.id!r} has no nodes"))
        return issues

    # =========================================================================
    # 1. NODES
    # =========================================================================

    seen_nodes: Set[str] = set()
    for node in survey.nodes:
        if node.id in seen_nodes:
            issues.append(Issue(IssueCode.DUPLICATE_NODE_ID, f"Duplicate node id {node.id!r}", node_id=node.id))
        seen_nodes.add(node.id)

        if not (node.title or "").strip():
            issues.append(Issue(IssueCode.MISSING_TITLE, f"Node {node.id!r} has no title", node_id=node.id))

        if isinstance(node, ChoiceNode):
            issues.extend(_check_options(node))

        if isinstance(node, RatingNode) and node.min_value > node.max_value:
            issues.append(Issue(
                IssueCode.INVALID_RATING_RANGE,
                f"Node {node.id!r} has minValue {node.min_value} > maxValue {node.max_value}",
                node_id=node.id,
            ))

    # =========================================================================
    # 2. EDGES
    # =========================================================================

    seen_edges: Set[str] = set()
    branches: Set[tuple] = set()
    continuations: Dict[str, int] = defaultdict(int)

    for edge in survey.edges:
        if edge.id in seen_edges:
            issues.append(Issue(IssueCode.DUPLICATE_EDGE_ID, f"Duplicate edge id {edge.id!r}", edge_id=edge.id))
        seen_edges.add(edge.id)

        source = survey.find_node(edge.source_node_id)
        if source is None:
            issues.append(Issue(
                IssueCode.DANGLING_SOURCE,
                f"Edge {edge.id!r} starts at missing node {edge.source_node_id!r}",
                edge_id=edge.id,
            ))
        if survey.find_node(edge.target_node_id) is None:
            issues.append(Issue(
                IssueCode.DANGLING_TARGET,
                f"Edge {edge.id!r} points at missing node {edge.target_node_id!r}",
                edge_id=edge.id,
            ))
        if source is None:
            continue

        if isinstance(source, SingleChoiceNode):
            if source.get_option(edge.source_handle or "") is None:
                issues.append(Issue(
                    IssueCode.UNKNOWN_OPTION_HANDLE,
                    f"Edge {edge.id!r} leaves {source.id!r} through unknown option {edge.source_handle!r}",
                    node_id=source.id,
                    edge_id=edge.id,
                ))
            elif (source.id, edge.source_handle) in branches:
                issues.append(Issue(
                    IssueCode.DUPLICATE_BRANCH,
                    f"Option {edge.source_handle!r} of {source.id!r} has more than one edge",
                    node_id=source.id,
                    edge_id=edge.id,
                ))
            branches.add((source.id, edge.source_handle))
        else:
            continuations[source.id] += 1

    for node_id, count in continuations.items():
        if count > 1:
            issues.append(Issue(
                IssueCode.MULTIPLE_CONTINUATIONS,
                f"Node {node_id!r} has {count} outgoing edges; only the first is followed",
                node_id=node_id,
            ))

    # =========================================================================
    # 3. REACHABILITY
    # =========================================================================

    first = survey.first_node()
    reachable = _reachable_from(_adjacency(survey), first.id)
    for node in survey.nodes:
        if node.id not in reachable:
            issues.append(Issue(
                IssueCode.UNREACHABLE_NODE,
                f"Node {node.id!r} cannot be reached from {first.id!r}",
                node_id=node.id,
            ))

    return issues


def _check_options(node: ChoiceNode) -> List[Issue]:
    issues = []
    if not node.options:
        issues.append(Issue(IssueCode.NO_OPTIONS, f"Node {node.id!r} has no options", node_id=node.id))
    seen: Set[str] = set()
    for option in node.options:
        if option.id in seen:
            issues.append(Issue(
                IssueCode.DUPLICATE_OPTION_ID,
                f"Node {node.id!r} repeats option id {option.id!r}",
                node_id=node.id,
            ))
        seen.add(option.id)
    return issues


def _max_node_score(node: Node) -> int:
    if isinstance(node, SingleChoiceNode):
        return max((o.score for o in node.options), default=0)
    if isinstance(node, MultipleChoiceNode):
        if not node.options:
            return 0
        # at least one option has to be picked
        positive = sum(o.score for o in node.options if o.score > 0)
        return positive if positive > 0 else max(o.score for o in node.options)
    if isinstance(node, RatingNode):
        return node.max_value
    return 0


def _max_path_score(survey: Survey, start: str, memo: Dict[str, int]) -> int:
    """Best score from ``start`` to the end of the run; graph must be acyclic."""
    if start in memo:
        return memo[start]
    node = survey.find_node(start)
    if node is None:
        return 0

    if isinstance(node, SingleChoiceNode):
        # Each option scores on its own branch; unmatched options end the run.
        best = None
        for option in node.options:
            targets = [
                e.target_node_id for e in survey.outgoing_edges(node.id)
                if e.source_handle == option.id
            ]
            rest = _max_path_score(survey, targets[0], memo) if targets else 0
            score = option.score + rest
            best = score if best is None else max(best, score)
        memo[start] = best if best is not None else 0
        return memo[start]

    targets = [e.target_node_id for e in survey.outgoing_edges(node.id)]
    rest = _max_path_score(survey, targets[0], memo) if targets else 0
    memo[start] = _max_node_score(node) + rest
    return memo[start]


@dataclass
class SurveyReport:
    """Comprehensive analysis report for a survey."""

    survey_id: str
    total_nodes: int = 0
    total_edges: int = 0
    nodes_by_type: Dict[str, int] = field(default_factory=dict)

    # Graph properties
    first_node: Optional[str] = None
    entry_points: List[str] = field(default_factory=list)  # Nodes with no incoming edges
    exit_points: List[str] = field(default_factory=list)   # Nodes with no outgoing edges
    unreachable_nodes: Set[str] = field(default_factory=set)
    has_cycles: bool = False
    cycle_example: Optional[List[str]] = None

    # Scoring
    max_score: Optional[int] = None

    issues: List[Issue] = field(default_factory=list)

    @property
    def errors(self) -> List[Issue]:
        return [issue for issue in self.issues if issue.is_error]

    @property
    def warnings(self) -> List[Issue]:
        return [issue for issue in self.issues if not issue.is_error]


def analyze_survey(survey: Survey) -> SurveyReport:
    """
    Perform a read-only analysis of a Survey.

    The maximum attainable score is only computed for acyclic graphs with
    scoring enabled; it stays None otherwise.
    """
    report = SurveyReport(survey_id=survey.id)
    report.total_nodes = len(survey.nodes)
    report.total_edges = len(survey.edges)
    report.issues = validate_survey(survey)

    by_type: Dict[str, int] = defaultdict(int)
    for node in survey.nodes:
        by_type[node.node_type.value] += 1
    report.nodes_by_type = dict(by_type)

    if not survey.nodes:
        return report

    outgoing = _adjacency(survey)
    incoming: Set[str] = {target for targets in outgoing.values() for target in targets}

    report.first_node = survey.first_node().id
    report.entry_points = [n.id for n in survey.nodes if n.id not in incoming]
    report.exit_points = [n.id for n in survey.nodes if not outgoing.get(n.id)]
    report.unreachable_nodes = {n.id for n in survey.nodes} - _reachable_from(outgoing, report.first_node)

    visited: Set[str] = set()
    for node in survey.nodes:
        if node.id not in visited:
            cycle = _find_cycles_dfs(outgoing, node.id, visited, set(), [])
            if cycle:
                report.has_cycles = True
                report.cycle_example = cycle
                break

    if survey.enable_scoring and not report.has_cycles:
        report.max_score = _max_path_score(survey, report.first_node, {})

    return report
