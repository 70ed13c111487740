"""
Tests for the result screen classification.
"""

import pytest

from nodeform.engine import Result
from nodeform.summary import ResultTier, classify_score, summarize_result


@pytest.mark.parametrize("score, tier", [
    (150, ResultTier.EXCELLENT),
    (100, ResultTier.EXCELLENT),
    (99, ResultTier.VERY_GOOD),
    (50, ResultTier.VERY_GOOD),
    (49, ResultTier.THANKS),
    (0, ResultTier.THANKS),
    (-10, ResultTier.THANKS),
])
def test_classify_score(score, tier):
    assert classify_score(score) == tier


def test_scoring_disabled_is_always_completed():
    assert classify_score(500, enable_scoring=False) == ResultTier.COMPLETED


def test_summarize_result():
    result = Result(survey_id="s", answers=(), path=("a",), total_score=60)
    summary = summarize_result(result)
    assert summary.tier == ResultTier.VERY_GOOD
    assert summary.title == "Very good!"
    assert summary.total_score == 60


def test_summarize_result_without_scoring():
    result = Result(survey_id="s", answers=(), path=("a",), total_score=0)
    summary = summarize_result(result, enable_scoring=False)
    assert summary.title == "Completed!"
    assert summary.message == "Thank you for completing the survey."
