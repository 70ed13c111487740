"""
Answer values submitted by a respondent.

An answer is a tagged union keyed by node type: one frozen dataclass per
node variant, each carrying only the fields that make sense for it.
Answers are appended to a run and never mutated.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class Answer:
    """
    Base class for all answer variants.

    Properties:
        node_id: The node this answer belongs to
    """

    node_id: str


@dataclass(frozen=True)
class PresentationAnswer(Answer):
    """Continue on a presentation screen, optionally with respondent data."""

    respondent_name: Optional[str] = None
    respondent_email: Optional[str] = None
    answered_at: Optional[datetime] = None


@dataclass(frozen=True)
class SingleChoiceAnswer(Answer):
    selected_option_id: str = ""
    answered_at: Optional[datetime] = None


@dataclass(frozen=True)
class MultipleChoiceAnswer(Answer):
    selected_option_ids: Tuple[str, ...] = ()
    answered_at: Optional[datetime] = None


@dataclass(frozen=True)
class RatingAnswer(Answer):
    rating_value: int = 0
    answered_at: Optional[datetime] = None
