"""
Serialization helpers for nodeform objects (Survey, Answer, Result).

Provides JSON/YAML conversion via an intermediate dict representation that
follows the web app's document shape (camelCase keys, react-flow style
``{id, type, data}`` nodes and ``{id, source, target, sourceHandle}`` edges).
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml

from nodeform.answers import (
    Answer,
    MultipleChoiceAnswer,
    PresentationAnswer,
    RatingAnswer,
    SingleChoiceAnswer,
)
from nodeform.engine import Result
from nodeform.errors import SurveyFormatError
from nodeform.model import (
    ChoiceNode,
    Edge,
    MultipleChoiceNode,
    Node,
    NodeType,
    Option,
    PresentationNode,
    RatingNode,
    RespondentField,
    SingleChoiceNode,
    Survey,
    SurveyStatus,
)

logger = logging.getLogger(__name__)


def _mapping(value: Any, what: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise SurveyFormatError(f"{what} must be a mapping, got {type(value).__name__}")
    return value


def _items(value: Any, what: str) -> List[Any]:
    if not isinstance(value, list):
        raise SurveyFormatError(f"{what} must be a list, got {type(value).__name__}")
    return value


def option_to_dict(o: Option) -> Dict[str, Any]:
    return {"id": o.id, "label": o.label, "score": o.score}


def option_from_dict(d: Dict[str, Any]) -> Option:
    d = _mapping(d, "Option")
    return Option(id=d["id"], label=d.get("label", ""), score=int(d.get("score") or 0))


def _field_to_dict(prefix: str, key: str, f: Optional[RespondentField]) -> Dict[str, Any]:
    if f is None:
        return {key: False}
    return {key: True, f"{prefix}Label": f.label, f"{prefix}Required": f.required}


def _field_from_dict(prefix: str, key: str, d: Dict[str, Any]) -> Optional[RespondentField]:
    if not d.get(key):
        return None
    return RespondentField(label=d.get(f"{prefix}Label"), required=bool(d.get(f"{prefix}Required", False)))


def node_to_dict(n: Node) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "type": n.node_type.value,
        "title": n.title,
        "description": n.description,
    }
    if isinstance(n, PresentationNode):
        data["buttonText"] = n.button_text
        data.update(_field_to_dict("name", "collectName", n.collect_name))
        data.update(_field_to_dict("email", "collectEmail", n.collect_email))
    elif isinstance(n, ChoiceNode):
        data["options"] = [option_to_dict(o) for o in n.options]
    elif isinstance(n, RatingNode):
        data.update({
            "minValue": n.min_value,
            "maxValue": n.max_value,
            "minLabel": n.min_label,
            "maxLabel": n.max_label,
        })
    return {"id": n.id, "type": n.node_type.value, "data": data}


def node_from_dict(d: Dict[str, Any]) -> Node:
    d = _mapping(d, "Node")
    data = _mapping(d.get("data") or {}, f"Data of node {d.get('id')!r}")
    tag = data.get("type") or d.get("type")
    try:
        node_type = NodeType(tag)
    except ValueError:
        raise SurveyFormatError(f"Unsupported node type {tag!r} for node {d.get('id')!r}")

    common = {
        "id": d["id"],
        "title": data.get("title", ""),
        "description": data.get("description") or "",
    }
    if node_type is NodeType.PRESENTATION:
        return PresentationNode(
            **common,
            button_text=data.get("buttonText"),
            collect_name=_field_from_dict("name", "collectName", data),
            collect_email=_field_from_dict("email", "collectEmail", data),
        )
    if node_type in (NodeType.SINGLE_CHOICE, NodeType.MULTIPLE_CHOICE):
        options = [option_from_dict(o) for o in _items(data.get("options", []), "options")]
        if node_type is NodeType.SINGLE_CHOICE:
            return SingleChoiceNode(**common, options=options)
        return MultipleChoiceNode(**common, options=options)
    return RatingNode(
        **common,
        min_value=int(data.get("minValue", 1)),
        max_value=int(data.get("maxValue", 5)),
        min_label=data.get("minLabel"),
        max_label=data.get("maxLabel"),
    )


def edge_to_dict(e: Edge) -> Dict[str, Any]:
    return {
        "id": e.id,
        "source": e.source_node_id,
        "target": e.target_node_id,
        "sourceHandle": e.source_handle,
    }


def edge_from_dict(d: Dict[str, Any]) -> Edge:
    d = _mapping(d, "Edge")
    # older documents only carry the option id in the edge data
    handle = d.get("sourceHandle") or _mapping(d.get("data") or {}, "Edge data").get("optionId")
    return Edge(id=d["id"], source_node_id=d["source"], target_node_id=d["target"], source_handle=handle)


def survey_to_dict(s: Survey) -> Dict[str, Any]:
    return {
        "id": s.id,
        "title": s.title,
        "description": s.description,
        "enableScoring": s.enable_scoring,
        "timeLimit": s.time_limit,
        "prize": s.prize,
        "status": s.status.value,
        "nodes": [node_to_dict(n) for n in s.nodes],
        "edges": [edge_to_dict(e) for e in s.edges],
        "metadata": s.metadata,
    }


def survey_from_dict(d: Dict[str, Any]) -> Survey:
    if not isinstance(d, dict):
        raise SurveyFormatError(f"Survey document must be a mapping, got {type(d).__name__}")
    try:
        s = Survey(id=d["id"])
        s.title = d.get("title", "")
        s.description = d.get("description") or ""
        s.enable_scoring = d.get("enableScoring", True)
        s.time_limit = d.get("timeLimit")
        s.prize = d.get("prize")
        s.status = SurveyStatus(d.get("status", "draft"))
        s.nodes = [node_from_dict(n) for n in _items(d.get("nodes", []), "nodes")]
        s.edges = [edge_from_dict(e) for e in _items(d.get("edges", []), "edges")]
        s.metadata = d.get("metadata") or {}
    except KeyError as e:
        raise SurveyFormatError(f"Missing required key {e} in survey document")
    except (TypeError, ValueError) as e:
        raise SurveyFormatError(f"Invalid survey document: {e}")
    logger.debug("Decoded survey %s with %d nodes and %d edges", s.id, len(s.nodes), len(s.edges))
    return s


def answer_to_dict(a: Answer) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "nodeId": a.node_id,
        "answeredAt": a.answered_at.isoformat() if a.answered_at else None,
    }
    if isinstance(a, SingleChoiceAnswer):
        d["selectedOptionId"] = a.selected_option_id
    elif isinstance(a, MultipleChoiceAnswer):
        d["selectedOptionIds"] = list(a.selected_option_ids)
    elif isinstance(a, RatingAnswer):
        d["ratingValue"] = a.rating_value
    elif isinstance(a, PresentationAnswer):
        if a.respondent_name is not None:
            d["respondentName"] = a.respondent_name
        if a.respondent_email is not None:
            d["respondentEmail"] = a.respondent_email
    else:
        raise TypeError(f"Unsupported Answer type: {type(a)}")
    return d


def answer_from_dict(d: Dict[str, Any]) -> Answer:
    """The populated value key decides the variant; no key means presentation."""
    answered_at = _parse_datetime(d.get("answeredAt"))
    node_id = d["nodeId"]
    if "selectedOptionId" in d:
        return SingleChoiceAnswer(node_id, selected_option_id=d["selectedOptionId"], answered_at=answered_at)
    if "selectedOptionIds" in d:
        return MultipleChoiceAnswer(
            node_id, selected_option_ids=tuple(d["selectedOptionIds"]), answered_at=answered_at
        )
    if "ratingValue" in d:
        return RatingAnswer(node_id, rating_value=d["ratingValue"], answered_at=answered_at)
    return PresentationAnswer(
        node_id,
        respondent_name=d.get("respondentName"),
        respondent_email=d.get("respondentEmail"),
        answered_at=answered_at,
    )


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise SurveyFormatError(f"Invalid answeredAt timestamp {value!r}")


def result_to_dict(r: Result) -> Dict[str, Any]:
    """The response record body the web app stores."""
    return {
        "surveyId": r.survey_id,
        "answers": [answer_to_dict(a) for a in r.answers],
        "totalScore": r.total_score,
        "path": list(r.path),
        "respondentName": r.respondent_name,
        "respondentEmail": r.respondent_email,
    }


def result_from_dict(d: Dict[str, Any]) -> Result:
    answers: List[Answer] = [answer_from_dict(a) for a in d.get("answers", [])]
    return Result(
        survey_id=d.get("surveyId", ""),
        answers=tuple(answers),
        path=tuple(d.get("path", [])),
        total_score=int(d.get("totalScore", 0)),
        respondent_name=d.get("respondentName"),
        respondent_email=d.get("respondentEmail"),
    )


def survey_to_json(s: Survey) -> str:
    return json.dumps(survey_to_dict(s), sort_keys=True)


def survey_from_json(s: str) -> Survey:
    try:
        d = json.loads(s)
    except json.JSONDecodeError as e:
        raise SurveyFormatError(f"Invalid JSON: {e}")
    return survey_from_dict(d)


def survey_to_yaml(s: Survey) -> str:
    return yaml.safe_dump(survey_to_dict(s), sort_keys=False)


def survey_from_yaml(s: str) -> Survey:
    try:
        d = yaml.safe_load(s)
    except yaml.YAMLError as e:
        raise SurveyFormatError(f"Invalid YAML: {e}")
    return survey_from_dict(d)


def result_to_json(r: Result) -> str:
    return json.dumps(result_to_dict(r), sort_keys=True)


def load_survey_file(path: str) -> Survey:
    """Read a survey from a .json, .yaml or .yml file."""
    with open(path, encoding="utf-8") as fh:
        text = fh.read()
    if path.endswith((".yaml", ".yml")):
        return survey_from_yaml(text)
    return survey_from_json(text)
