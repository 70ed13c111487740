"""
Exception hierarchy for nodeform.

Every caller-facing error is raised before any state is touched, so the
caller can re-read the current step and retry.
"""

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from nodeform.analyzer import Issue


class SurveyError(Exception):
    """Base class for all nodeform errors."""
    pass


class EmptySurveyError(SurveyError):
    """Raised when a run is started on a survey without nodes."""
    pass


class StaleAnswerError(SurveyError):
    """Raised when an answer targets a node that is not the current one."""
    pass


class TypeMismatchError(SurveyError):
    """Raised when the answer variant does not match the node type."""
    pass


class InvalidAnswerError(SurveyError):
    """Raised when the answer has the right shape but an unacceptable value."""
    pass


class NoHistoryError(SurveyError):
    """Raised when going back or fetching a result is not possible."""
    pass


class SurveyFormatError(SurveyError):
    """Raised when a serialized survey document cannot be decoded."""
    pass


class BuilderError(SurveyError):
    """Raised when an authoring command cannot be applied."""
    pass


class PublishError(SurveyError):
    """Raised when a survey with blocking issues is published."""

    def __init__(self, issues: List["Issue"]):
        self.issues = issues
        summary = "; ".join(issue.message for issue in issues)
        super().__init__(f"Survey cannot be published: {summary}")
