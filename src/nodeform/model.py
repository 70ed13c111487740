"""
Core Survey Graph Objects

Defines the fundamental data structures of a nodeform survey.

These are plain data classes representing:
    - Options (choices inside a question)
    - Nodes (one question or screen each, four variants)
    - Edges (directed movement between nodes)
    - Surveys (root container)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about rendering, storage or sessions
        - Are never mutated by the traversal engine
        - Are fully serializable
        - Only offer pure lookups and branch resolution
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, ClassVar, Dict, List, Optional

from .answers import Answer, SingleChoiceAnswer

if TYPE_CHECKING:
    from .analyzer import Issue


class NodeType(Enum):
    """
    Closed set of node variants.

    The values are the type tags used on the wire by the web editor.
    """

    PRESENTATION = "presentation"
    SINGLE_CHOICE = "singleChoice"
    MULTIPLE_CHOICE = "multipleChoice"
    RATING = "rating"


class SurveyStatus(Enum):
    """Lifecycle of a survey document."""

    DRAFT = "draft"
    PUBLISHED = "published"
    FINISHED = "finished"
    ARCHIVED = "archived"


@dataclass
class Option:
    """
    One selectable choice of a SingleChoice or MultipleChoice node.

    Properties:
        id: Unique within its node. For SingleChoice nodes this id is
            also the edge handle selecting the branch.
        label: Text shown to the respondent
        score: Points added when selected (only if scoring is enabled)
    """

    id: str
    label: str
    score: int = 0


@dataclass
class RespondentField:
    """
    A respondent-data capture field on a presentation screen.

    Properties:
        label: Field label shown to the respondent (optional)
        required: Whether the field must be filled to continue
    """

    label: Optional[str] = None
    required: bool = False


@dataclass
class Node:
    """
    Base class for all survey nodes.

    Every node has a stable id and at least a title. The concrete
    subclass decides what kind of answer the node accepts.

    Properties:
        id: Unique identifier across the whole survey
        title: Question or screen title
        description: Rich-text description (stored as markup, never parsed)
    """

    node_type: ClassVar[NodeType]

    id: str
    title: str
    description: str = ""


@dataclass
class PresentationNode(Node):
    """
    An informational screen with a continue button.

    It may capture the respondent's name and/or e-mail. It never
    contributes to the score.
    """

    node_type: ClassVar[NodeType] = NodeType.PRESENTATION

    button_text: Optional[str] = None
    collect_name: Optional[RespondentField] = None
    collect_email: Optional[RespondentField] = None


@dataclass
class ChoiceNode(Node):
    """Shared structure of the two choice question variants."""

    options: List[Option] = field(default_factory=list)

    def get_option(self, option_id: str) -> Optional[Option]:
        """
        Retrieve an option by ID.

        Returns:
            Option object or None if not found
        """
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass
class SingleChoiceNode(ChoiceNode):
    """
    A question where exactly one option is picked.

    This is the only branching node type: each option may have its own
    outgoing edge, tagged with the option id as ``source_handle``.
    """

    node_type: ClassVar[NodeType] = NodeType.SINGLE_CHOICE


@dataclass
class MultipleChoiceNode(ChoiceNode):
    """A question where one or more options are picked. Never branches."""

    node_type: ClassVar[NodeType] = NodeType.MULTIPLE_CHOICE


@dataclass
class RatingNode(Node):
    """
    A numeric scale question.

    The selected value doubles as its own score.

    Properties:
        min_value: Lowest selectable value (inclusive)
        max_value: Highest selectable value (inclusive)
        min_label / max_label: Optional captions for the scale ends
    """

    node_type: ClassVar[NodeType] = NodeType.RATING

    min_value: int = 1
    max_value: int = 5
    min_label: Optional[str] = None
    max_label: Optional[str] = None


@dataclass
class Edge:
    """
    A directed transition from one node to another.

    Properties:
        id: Edge identifier
        source_node_id: ID of origin node
        target_node_id: ID of destination node
        source_handle:
            Option id selecting this branch. Only meaningful when the
            source is a SingleChoice node; other node types have a single
            unconditional continuation.
    """

    id: str
    source_node_id: str
    target_node_id: str
    source_handle: Optional[str] = None


@dataclass
class Survey:
    """
    Root container for a survey graph.

    Created by an authoring collaborator and consumed read-only by the
    traversal engine.

    INVARIANTS (checked by ``validate``, not enforced on construction):
        - Node ids are unique across the survey
        - Edges reference existing nodes
        - A SingleChoice node has at most one edge per option id
    """

    id: str
    title: str = ""
    description: str = ""
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    enable_scoring: bool = True
    time_limit: Optional[int] = None
    prize: Optional[str] = None
    status: SurveyStatus = SurveyStatus.DRAFT
    metadata: Dict[str, str] = field(default_factory=dict)

    def find_node(self, node_id: str) -> Optional[Node]:
        """
        Retrieve a node by ID.

        Args:
            node_id: Node identifier

        Returns:
            Node object or None if not found
        """
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing_edges(self, node_id: str) -> List[Edge]:
        """All edges leaving ``node_id``, in authoring order."""
        return [edge for edge in self.edges if edge.source_node_id == node_id]

    def incoming_edges(self, node_id: str) -> List[Edge]:
        """All edges entering ``node_id``, in authoring order."""
        return [edge for edge in self.edges if edge.target_node_id == node_id]

    def first_node(self) -> Optional[Node]:
        """
        The node a run starts on.

        The first node (authoring order) without incoming edges from an
        existing node. When every node has one (cyclic or malformed
        graph), the first node in authoring order. None for an empty
        survey.
        """
        if not self.nodes:
            return None
        node_ids = {node.id for node in self.nodes}
        targeted = {
            edge.target_node_id
            for edge in self.edges
            if edge.source_node_id in node_ids
        }
        for node in self.nodes:
            if node.id not in targeted:
                return node
        return self.nodes[0]

    def resolve_next(self, node_id: str, answer: Answer) -> Optional[str]:
        """
        Branch resolution: pick the node that follows ``node_id``.

        SingleChoice nodes follow the edge whose handle equals the selected
        option id; there is no fallback, an unmatched option ends the run.
        Every other node type follows its single outgoing edge. If several
        edges qualify (malformed graph) the first in authoring order wins.

        The returned id is not checked for existence; that is left to the
        caller.

        Returns:
            Target node id, or None when the run should end here
        """
        node = self.find_node(node_id)
        if node is None:
            return None

        edges = self.outgoing_edges(node_id)
        if isinstance(node, SingleChoiceNode):
            if not isinstance(answer, SingleChoiceAnswer):
                return None
            edges = [e for e in edges if e.source_handle == answer.selected_option_id]

        if not edges:
            return None
        return edges[0].target_node_id

    def validate(self) -> List["Issue"]:
        """Integrity check, see ``nodeform.analyzer.validate_survey``."""
        from .analyzer import validate_survey

        return validate_survey(self)
