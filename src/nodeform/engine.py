"""
Traversal Engine: drives one respondent's run through a survey graph.

States:
    NOT_STARTED -> IN_PROGRESS -> COMPLETED

One ``SurveyRun`` instance belongs to exactly one respondent session. It
holds no external resources and never mutates the survey it reads. Every
transition is synchronous and in-memory.

Failure policy:
    - Caller mistakes (stale answer, wrong answer type, nothing to go back
      to) raise before any state changes.
    - Graph defects met mid-run (a node or edge target that vanished) are
      logged and end the run, so a respondent can never get stuck.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from nodeform.answers import Answer, PresentationAnswer
from nodeform.errors import EmptySurveyError, NoHistoryError, StaleAnswerError
from nodeform.model import Node, Survey
from nodeform.rules import check_answer, normalize_answer, score_answer

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RunStatus(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class RunnerOptions:
    """
    Behaviour switches for a run.

    Properties:
        reverse_score_on_back:
            When True (default), going back subtracts the score the
            discarded answer contributed, keeping ``total_score`` equal to
            the score of the answers still recorded. When False the
            original contribution stays in the total.
        clock:
            Source of ``answered_at`` timestamps for answers submitted
            without one.
    """

    reverse_score_on_back: bool = True
    clock: Callable[[], datetime] = _utcnow


@dataclass(frozen=True)
class Step:
    """What a rendering collaborator needs to draw the next screen."""

    current_node: Optional[Node]
    can_go_back: bool
    is_completed: bool
    total_score: int


@dataclass(frozen=True)
class Result:
    """
    Read-only snapshot of a completed run, handed to persistence.

    The respondent name/e-mail come from the first answer that has one.
    """

    survey_id: str
    answers: Tuple[Answer, ...]
    path: Tuple[str, ...]
    total_score: int
    respondent_name: Optional[str] = None
    respondent_email: Optional[str] = None


class SurveyRun:
    """
    One respondent's run through a survey.

    Typical use::

        run = SurveyRun()
        step = run.start(survey)
        while not step.is_completed:
            step = run.answer(make_answer(step.current_node))
        result = run.get_result()
    """

    def __init__(self, options: Optional[RunnerOptions] = None):
        self.options = options or RunnerOptions()
        self.reset()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def survey(self) -> Optional[Survey]:
        return self._survey

    @property
    def current_node_id(self) -> Optional[str]:
        return self._current_node_id

    @property
    def answers(self) -> Tuple[Answer, ...]:
        return tuple(self._answers)

    @property
    def visited_node_ids(self) -> Tuple[str, ...]:
        return tuple(self._visited)

    @property
    def total_score(self) -> int:
        return self._total_score

    @property
    def is_completed(self) -> bool:
        return self._completed

    @property
    def status(self) -> RunStatus:
        if self._completed:
            return RunStatus.COMPLETED
        if self._survey is None:
            return RunStatus.NOT_STARTED
        return RunStatus.IN_PROGRESS

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def start(self, survey: Survey) -> Step:
        """
        Begin a run on ``survey`` at its first node.

        Any previous run held by this instance is discarded.

        Raises:
            EmptySurveyError: survey has no nodes (state left untouched)
        """
        first = survey.first_node()
        if first is None:
            raise EmptySurveyError(f"Survey {survey.id!r} has no nodes")

        self.reset()
        self._survey = survey
        self._current_node_id = first.id
        self._visited.append(first.id)
        logger.debug("Run started on survey %s at node %s", survey.id, first.id)
        return self.snapshot()

    def answer(self, answer: Answer) -> Step:
        """
        Record an answer for the current node and advance.

        Raises:
            StaleAnswerError: run not in progress, or answer is for another node
            TypeMismatchError: answer variant does not fit the node type
            InvalidAnswerError: answer value not acceptable for the node
        """
        if self._survey is None:
            raise StaleAnswerError("Run has not been started")
        if self._completed:
            raise StaleAnswerError("Run is already completed")
        if answer.node_id != self._current_node_id:
            raise StaleAnswerError(
                f"Answer for node {answer.node_id!r} but current node is {self._current_node_id!r}"
            )

        node = self._survey.find_node(self._current_node_id)
        if node is None:
            logger.warning(
                "Current node %s no longer exists in survey %s; ending run",
                self._current_node_id,
                self._survey.id,
            )
            self._complete()
            return self.snapshot()

        answer = normalize_answer(node, answer)
        check_answer(node, answer)

        if answer.answered_at is None:
            answer = replace(answer, answered_at=self.options.clock())
        contribution = score_answer(node, answer) if self._survey.enable_scoring else 0

        self._answers.append(answer)
        self._contributions.append(contribution)
        self._total_score += contribution

        next_id = self._survey.resolve_next(node.id, answer)
        if next_id is not None and self._survey.find_node(next_id) is None:
            logger.warning("Edge from %s points at missing node %s; ending run", node.id, next_id)
            next_id = None

        if next_id is None:
            self._complete()
        else:
            self._current_node_id = next_id
            self._visited.append(next_id)
            logger.debug("Advanced %s -> %s (score %d)", node.id, next_id, self._total_score)
        return self.snapshot()

    def go_back(self) -> Step:
        """
        Return to the previous node and discard the answer given there.

        The most recent answer for the node returned to is removed, so
        answering it again starts from a clean slate and may follow a
        different branch.

        Raises:
            NoHistoryError: nothing to go back to, or the run is completed
        """
        if not self.can_go_back():
            raise NoHistoryError("Cannot go back from the current position")

        left = self._visited.pop()
        self._current_node_id = self._visited[-1]

        for index in range(len(self._answers) - 1, -1, -1):
            if self._answers[index].node_id == self._current_node_id:
                del self._answers[index]
                contribution = self._contributions.pop(index)
                if self.options.reverse_score_on_back:
                    self._total_score -= contribution
                break

        logger.debug("Went back %s -> %s (score %d)", left, self._current_node_id, self._total_score)
        return self.snapshot()

    def get_current_node(self) -> Optional[Node]:
        if self._survey is None or self._current_node_id is None:
            return None
        return self._survey.find_node(self._current_node_id)

    def can_go_back(self) -> bool:
        return len(self._visited) > 1 and not self._completed

    def get_result(self) -> Result:
        """
        Snapshot of the completed run.

        Raises:
            NoHistoryError: run is not completed
        """
        if not self._completed:
            raise NoHistoryError("Run is not completed")

        name = next((a.respondent_name for a in self._presentation_answers() if a.respondent_name), None)
        email = next((a.respondent_email for a in self._presentation_answers() if a.respondent_email), None)
        return Result(
            survey_id=self._survey.id,
            answers=tuple(self._answers),
            path=tuple(self._visited),
            total_score=self._total_score,
            respondent_name=name,
            respondent_email=email,
        )

    def reset(self) -> None:
        """Drop the run and go back to NOT_STARTED."""
        self._survey: Optional[Survey] = None
        self._current_node_id: Optional[str] = None
        self._answers: List[Answer] = []
        self._contributions: List[int] = []
        self._visited: List[str] = []
        self._total_score = 0
        self._completed = False

    def snapshot(self) -> Step:
        return Step(
            current_node=self.get_current_node(),
            can_go_back=self.can_go_back(),
            is_completed=self._completed,
            total_score=self._total_score,
        )

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _complete(self) -> None:
        self._current_node_id = None
        self._completed = True
        logger.debug("Run on survey %s completed with score %d", self._survey.id, self._total_score)

    def _presentation_answers(self) -> List[PresentationAnswer]:
        return [a for a in self._answers if isinstance(a, PresentationAnswer)]
