"""
Per-node-type answer rules.

Three pure functions used by the traversal engine:
    - normalize_answer: tidy up respondent input (trim, drop uncollected data)
    - check_answer: reject answers of the wrong variant or with bad values
    - score_answer: points an accepted answer contributes

Dispatch is by node class, mirroring the closed set in ``NodeType``.
"""

import re
from dataclasses import replace
from typing import Dict, Optional, Type

from nodeform.answers import (
    Answer,
    MultipleChoiceAnswer,
    PresentationAnswer,
    RatingAnswer,
    SingleChoiceAnswer,
)
from nodeform.errors import InvalidAnswerError, TypeMismatchError
from nodeform.model import (
    MultipleChoiceNode,
    Node,
    NodeType,
    PresentationNode,
    RatingNode,
    RespondentField,
    SingleChoiceNode,
)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ANSWER_TYPES: Dict[NodeType, Type[Answer]] = {
    NodeType.PRESENTATION: PresentationAnswer,
    NodeType.SINGLE_CHOICE: SingleChoiceAnswer,
    NodeType.MULTIPLE_CHOICE: MultipleChoiceAnswer,
    NodeType.RATING: RatingAnswer,
}


def _is_selection(value) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)


def _clean_field(value: Optional[str], collected: Optional[RespondentField]) -> Optional[str]:
    if collected is None or value is None:
        return None
    if not isinstance(value, str):
        # left for check_answer to reject
        return value
    value = value.strip()
    return value or None


def normalize_answer(node: Node, answer: Answer) -> Answer:
    """
    Return a tidied copy of ``answer`` for ``node``.

    Respondent fields are trimmed and dropped when the presentation node
    does not collect them. Multiple selections become a tuple. Answers of
    the wrong variant are returned unchanged; ``check_answer`` rejects them.
    """
    if isinstance(node, PresentationNode) and isinstance(answer, PresentationAnswer):
        return replace(
            answer,
            respondent_name=_clean_field(answer.respondent_name, node.collect_name),
            respondent_email=_clean_field(answer.respondent_email, node.collect_email),
        )
    if (isinstance(node, MultipleChoiceNode) and isinstance(answer, MultipleChoiceAnswer)
            and _is_selection(answer.selected_option_ids)):
        return replace(answer, selected_option_ids=tuple(answer.selected_option_ids))
    return answer


def check_answer(node: Node, answer: Answer) -> None:
    """
    Validate an answer against the node it is submitted for.

    Raises:
        TypeMismatchError: answer variant or payload shape does not fit the node type
        InvalidAnswerError: right variant, unacceptable value
    """
    expected = ANSWER_TYPES[node.node_type]
    if type(answer) is not expected:
        raise TypeMismatchError(
            f"Node {node.id!r} is {node.node_type.value} and expects "
            f"{expected.__name__}, got {type(answer).__name__}"
        )

    if isinstance(node, PresentationNode):
        _check_presentation(node, answer)
    elif isinstance(node, SingleChoiceNode):
        if not isinstance(answer.selected_option_id, str):
            raise TypeMismatchError(
                f"Node {node.id!r} expects an option id, got {answer.selected_option_id!r}"
            )
        if node.get_option(answer.selected_option_id) is None:
            raise InvalidAnswerError(
                f"Unknown option {answer.selected_option_id!r} for node {node.id!r}"
            )
    elif isinstance(node, MultipleChoiceNode):
        _check_multiple(node, answer)
    elif isinstance(node, RatingNode):
        value = answer.rating_value
        # bool is an int subclass
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidAnswerError(f"Rating for node {node.id!r} must be an integer, got {value!r}")
        if not node.min_value <= value <= node.max_value:
            raise InvalidAnswerError(
                f"Rating {value} for node {node.id!r} is outside "
                f"[{node.min_value}, {node.max_value}]"
            )


def _check_presentation(node: PresentationNode, answer: PresentationAnswer) -> None:
    for value in (answer.respondent_name, answer.respondent_email):
        if value is not None and not isinstance(value, str):
            raise TypeMismatchError(f"Respondent fields for node {node.id!r} must be strings, got {value!r}")
    if node.collect_name and node.collect_name.required and not answer.respondent_name:
        raise InvalidAnswerError(f"Node {node.id!r} requires the respondent name")
    if node.collect_email and node.collect_email.required and not answer.respondent_email:
        raise InvalidAnswerError(f"Node {node.id!r} requires the respondent e-mail")
    if answer.respondent_email and not EMAIL_RE.match(answer.respondent_email):
        raise InvalidAnswerError(f"Invalid e-mail address: {answer.respondent_email!r}")


def _check_multiple(node: MultipleChoiceNode, answer: MultipleChoiceAnswer) -> None:
    if not _is_selection(answer.selected_option_ids):
        raise TypeMismatchError(
            f"Node {node.id!r} expects a list of option ids, got {answer.selected_option_ids!r}"
        )
    selected = list(answer.selected_option_ids)
    if not selected:
        raise InvalidAnswerError(f"Node {node.id!r} needs at least one selected option")
    if len(set(selected)) != len(selected):
        raise InvalidAnswerError(f"Duplicate options selected for node {node.id!r}")
    unknown = [option_id for option_id in selected if node.get_option(option_id) is None]
    if unknown:
        raise InvalidAnswerError(f"Unknown options {unknown} for node {node.id!r}")


def score_answer(node: Node, answer: Answer) -> int:
    """
    Points contributed by an accepted answer.

    SingleChoice: the chosen option's score. MultipleChoice: the sum of the
    chosen options' scores. Rating: the value itself. Presentation: 0.
    The caller decides whether scoring is enabled at all.
    """
    if isinstance(node, SingleChoiceNode):
        return node.get_option(answer.selected_option_id).score
    if isinstance(node, MultipleChoiceNode):
        return sum(node.get_option(option_id).score for option_id in answer.selected_option_ids)
    if isinstance(node, RatingNode):
        return answer.rating_value
    return 0
