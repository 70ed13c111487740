"""
Authoring-side survey builder.

A mutable graph that an editor drives through command objects. The
traversal engine never sees this; it only receives the ``Survey``
produced by ``build()``.

Commands:
    AddNode, UpdateNode, RemoveNode, Connect, RemoveEdge
"""

import copy
import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Union

from nodeform.analyzer import validate_survey
from nodeform.errors import BuilderError, PublishError
from nodeform.model import Edge, Node, Survey, SurveyStatus

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New survey"


@dataclass
class AddNode:
    node: Node


@dataclass
class UpdateNode:
    """Replace some fields of a node. ``id`` and the node type are fixed."""

    node_id: str
    changes: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RemoveNode:
    """Delete a node together with every edge touching it."""

    node_id: str


@dataclass
class Connect:
    """
    Draw an edge between two nodes.

    For SingleChoice sources ``source_handle`` is the option id the edge
    stands for.
    """

    source: str
    target: str
    source_handle: Optional[str] = None


@dataclass
class RemoveEdge:
    edge_id: str


Command = Union[AddNode, UpdateNode, RemoveNode, Connect, RemoveEdge]


class SurveyBuilder:
    """
    Mutable survey under construction.

    Drafts may be invalid; ``publish()`` is where integrity is enforced.
    """

    def __init__(self, survey_id: str, title: str = DEFAULT_TITLE):
        self.survey_id = survey_id
        self.clear(title=title)

    def clear(self, title: str = DEFAULT_TITLE) -> None:
        self.title = title
        self.description = ""
        self.enable_scoring = True
        self.time_limit: Optional[int] = None
        self.prize: Optional[str] = None
        self.status = SurveyStatus.DRAFT
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []
        self._edge_counter = 0

    @classmethod
    def from_survey(cls, survey: Survey) -> "SurveyBuilder":
        """Start editing an existing survey (works on a copy)."""
        builder = cls(survey.id)
        builder.load(survey)
        return builder

    def load(self, survey: Survey) -> None:
        self.survey_id = survey.id
        self.title = survey.title
        self.description = survey.description
        self.enable_scoring = survey.enable_scoring
        self.time_limit = survey.time_limit
        self.prize = survey.prize
        self.status = survey.status
        self.nodes = copy.deepcopy(survey.nodes)
        self.edges = copy.deepcopy(survey.edges)
        self._edge_counter = len(self.edges)

    # =========================================================================
    # COMMANDS
    # =========================================================================

    def apply(self, command: Command) -> None:
        if isinstance(command, AddNode):
            self._add_node(command)
        elif isinstance(command, UpdateNode):
            self._update_node(command)
        elif isinstance(command, RemoveNode):
            self._remove_node(command)
        elif isinstance(command, Connect):
            self._connect(command)
        elif isinstance(command, RemoveEdge):
            self._remove_edge(command)
        else:
            raise BuilderError(f"Unsupported command: {type(command).__name__}")
        logger.debug("Applied %s to survey %s", type(command).__name__, self.survey_id)

    def apply_all(self, commands: List[Command]) -> None:
        for command in commands:
            self.apply(command)

    def _index_of(self, node_id: str) -> int:
        for index, node in enumerate(self.nodes):
            if node.id == node_id:
                return index
        raise BuilderError(f"No node with id {node_id!r}")

    def _add_node(self, command: AddNode) -> None:
        if any(node.id == command.node.id for node in self.nodes):
            raise BuilderError(f"Node id {command.node.id!r} already exists")
        self.nodes.append(command.node)

    def _update_node(self, command: UpdateNode) -> None:
        index = self._index_of(command.node_id)
        node = self.nodes[index]
        allowed = {f.name for f in fields(node)} - {"id"}
        unknown = set(command.changes) - allowed
        if unknown:
            raise BuilderError(
                f"Cannot change {sorted(unknown)} on {node.node_type.value} node {node.id!r}"
            )
        self.nodes[index] = replace(node, **command.changes)

    def _remove_node(self, command: RemoveNode) -> None:
        index = self._index_of(command.node_id)
        del self.nodes[index]
        self.edges = [
            e for e in self.edges
            if e.source_node_id != command.node_id and e.target_node_id != command.node_id
        ]

    def _connect(self, command: Connect) -> Edge:
        self._index_of(command.source)
        self._index_of(command.target)
        taken = {e.id for e in self.edges}
        edge_id = None
        while edge_id is None or edge_id in taken:
            self._edge_counter += 1
            edge_id = f"edge_{command.source}_{command.target}_{self._edge_counter}"
        edge = Edge(
            id=edge_id,
            source_node_id=command.source,
            target_node_id=command.target,
            source_handle=command.source_handle,
        )
        self.edges.append(edge)
        return edge

    def _remove_edge(self, command: RemoveEdge) -> None:
        remaining = [e for e in self.edges if e.id != command.edge_id]
        if len(remaining) == len(self.edges):
            raise BuilderError(f"No edge with id {command.edge_id!r}")
        self.edges = remaining

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def build(self) -> Survey:
        """Snapshot of the current draft; later edits do not leak into it."""
        return Survey(
            id=self.survey_id,
            title=self.title,
            description=self.description,
            nodes=copy.deepcopy(self.nodes),
            edges=copy.deepcopy(self.edges),
            enable_scoring=self.enable_scoring,
            time_limit=self.time_limit,
            prize=self.prize,
            status=self.status,
        )

    def publish(self) -> Survey:
        """
        Validate and mark the survey published.

        Raises:
            PublishError: the graph has ERROR-severity issues
        """
        errors = [issue for issue in validate_survey(self.build()) if issue.is_error]
        if errors:
            raise PublishError(errors)
        self.status = SurveyStatus.PUBLISHED
        logger.info("Published survey %s", self.survey_id)
        return self.build()
