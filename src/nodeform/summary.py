"""Result screen classification for a finished run."""

from dataclasses import dataclass
from enum import Enum

from nodeform.engine import Result

EXCELLENT_THRESHOLD = 100
VERY_GOOD_THRESHOLD = 50


class ResultTier(Enum):
    COMPLETED = "completed"  # scoring disabled
    EXCELLENT = "excellent"
    VERY_GOOD = "very_good"
    THANKS = "thanks"


@dataclass(frozen=True)
class ResultSummary:
    tier: ResultTier
    title: str
    message: str
    total_score: int


_TEXTS = {
    ResultTier.COMPLETED: ("Completed!", "Thank you for completing the survey."),
    ResultTier.EXCELLENT: ("Excellent!", "You had an amazing score!"),
    ResultTier.VERY_GOOD: ("Very good!", "You did well."),
    ResultTier.THANKS: ("Thank you!", "Thank you for completing the survey."),
}


def classify_score(total_score: int, enable_scoring: bool = True) -> ResultTier:
    if not enable_scoring:
        return ResultTier.COMPLETED
    if total_score >= EXCELLENT_THRESHOLD:
        return ResultTier.EXCELLENT
    if total_score >= VERY_GOOD_THRESHOLD:
        return ResultTier.VERY_GOOD
    return ResultTier.THANKS


def summarize_result(result: Result, enable_scoring: bool = True) -> ResultSummary:
    tier = classify_score(result.total_score, enable_scoring)
    title, message = _TEXTS[tier]
    return ResultSummary(tier=tier, title=title, message=message, total_score=result.total_score)
