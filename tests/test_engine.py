"""
Tests for the Traversal Engine (SurveyRun).

These tests verify:
    - Start position and first-node selection
    - Answer recording, scoring and branch resolution
    - Going back (history and both score policies)
    - Completion, result snapshot and reset
    - Fail-closed behaviour on broken graphs
"""

from datetime import datetime, timezone

import pytest

from nodeform.answers import (
    MultipleChoiceAnswer,
    PresentationAnswer,
    RatingAnswer,
    SingleChoiceAnswer,
)
from nodeform.engine import Result, RunnerOptions, RunStatus, SurveyRun
from nodeform.errors import (
    EmptySurveyError,
    InvalidAnswerError,
    NoHistoryError,
    StaleAnswerError,
    TypeMismatchError,
)
from nodeform.model import (
    Edge,
    MultipleChoiceNode,
    Option,
    PresentationNode,
    RatingNode,
    RespondentField,
    SingleChoiceNode,
    Survey,
)

FIXED = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def fixed_options(**kwargs) -> RunnerOptions:
    return RunnerOptions(clock=lambda: FIXED, **kwargs)


def build_p_s_survey(enable_scoring: bool = True) -> Survey:
    """P (presentation) -> S (single choice A=10, B=20, no branches)."""
    return Survey(
        id="ps",
        enable_scoring=enable_scoring,
        nodes=[
            PresentationNode(id="P", title="Hello"),
            SingleChoiceNode(id="S", title="Pick", options=[
                Option(id="A", label="A", score=10),
                Option(id="B", label="B", score=20),
            ]),
        ],
        edges=[Edge(id="e1", source_node_id="P", target_node_id="S")],
    )


def build_branching_survey() -> Survey:
    """Q (single choice) branches: x -> D1, y -> D2; D1 and D2 both continue to R (rating)."""
    return Survey(
        id="branch",
        nodes=[
            SingleChoiceNode(id="Q", title="Where to?", options=[
                Option(id="x", label="Left", score=1),
                Option(id="y", label="Right", score=2),
            ]),
            MultipleChoiceNode(id="D1", title="Left side", options=[
                Option(id="m1", label="one", score=3),
                Option(id="m2", label="two", score=4),
                Option(id="m3", label="three", score=0),
            ]),
            PresentationNode(id="D2", title="Right side"),
            RatingNode(id="R", title="Rate", min_value=1, max_value=10),
        ],
        edges=[
            Edge(id="e1", source_node_id="Q", target_node_id="D1", source_handle="x"),
            Edge(id="e2", source_node_id="Q", target_node_id="D2", source_handle="y"),
            Edge(id="e3", source_node_id="D1", target_node_id="R"),
            Edge(id="e4", source_node_id="D2", target_node_id="R"),
        ],
    )


class TestStart:
    """Test starting a run."""

    def test_start_selects_unique_root(self):
        """Should start at the only node without incoming edges."""
        survey = build_p_s_survey()
        survey.nodes.reverse()  # authoring order must not matter here
        run = SurveyRun()
        step = run.start(survey)
        assert run.current_node_id == "P"
        assert step.current_node.id == "P"
        assert step.is_completed is False
        assert run.status == RunStatus.IN_PROGRESS

    def test_start_initialises_state(self):
        """Should reset answers, path and score."""
        run = SurveyRun()
        run.start(build_p_s_survey())
        assert run.answers == ()
        assert run.visited_node_ids == ("P",)
        assert run.total_score == 0

    def test_start_falls_back_to_first_node_on_cycle(self):
        """Every node has an incoming edge: first node in authoring order."""
        survey = Survey(
            id="loop",
            nodes=[PresentationNode(id="A", title="A"), PresentationNode(id="B", title="B")],
            edges=[
                Edge(id="e1", source_node_id="A", target_node_id="B"),
                Edge(id="e2", source_node_id="B", target_node_id="A"),
            ],
        )
        run = SurveyRun()
        run.start(survey)
        assert run.current_node_id == "A"

    def test_start_with_several_roots_picks_first_authored(self):
        """Several roots: the first one in authoring order wins."""
        survey = Survey(
            id="roots",
            nodes=[
                PresentationNode(id="X", title="X"),
                PresentationNode(id="Y", title="Y"),
            ],
        )
        run = SurveyRun()
        run.start(survey)
        assert run.current_node_id == "X"

    def test_start_empty_survey_raises(self):
        """Should reject a survey without nodes and create no state."""
        run = SurveyRun()
        with pytest.raises(EmptySurveyError):
            run.start(Survey(id="empty"))
        assert run.status == RunStatus.NOT_STARTED
        assert run.current_node_id is None
        assert run.visited_node_ids == ()

    def test_restart_discards_previous_run(self):
        """Starting again throws away answers of the previous run."""
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        run.start(build_p_s_survey())
        assert run.answers == ()
        assert run.visited_node_ids == ("P",)


class TestAnswerScoring:
    """Score contributed by each node type."""

    def test_single_choice_adds_option_score(self):
        run = SurveyRun()
        run.start(build_branching_survey())
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        assert step.total_score == 2

    def test_multiple_choice_adds_sum_of_scores(self):
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        step = run.answer(MultipleChoiceAnswer("D1", selected_option_ids=("m1", "m2", "m3")))
        assert step.total_score == 1 + 3 + 4

    def test_rating_adds_its_value(self):
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        run.answer(PresentationAnswer("D2"))
        step = run.answer(RatingAnswer("R", rating_value=7))
        assert step.total_score == 2 + 7

    def test_presentation_adds_nothing(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        step = run.answer(PresentationAnswer("P"))
        assert step.total_score == 0

    def test_scoring_disabled_keeps_zero(self):
        """No score accumulates when the survey disables scoring."""
        run = SurveyRun()
        run.start(build_p_s_survey(enable_scoring=False))
        run.answer(PresentationAnswer("P"))
        step = run.answer(SingleChoiceAnswer("S", selected_option_id="B"))
        assert step.is_completed
        assert step.total_score == 0


class TestBranching:
    """Branch resolution during a run."""

    def test_option_routes_exclusively_to_its_branch(self):
        """Picking x goes to D1 and never to D2."""
        run = SurveyRun()
        run.start(build_branching_survey())
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        assert step.current_node.id == "D1"
        assert "D2" not in run.visited_node_ids

    def test_other_option_routes_to_other_branch(self):
        run = SurveyRun()
        run.start(build_branching_survey())
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        assert step.current_node.id == "D2"

    def test_unmatched_option_completes_run(self):
        """An option without an edge ends the run."""
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        step = run.answer(SingleChoiceAnswer("S", selected_option_id="A"))
        assert step.is_completed
        assert run.current_node_id is None
        assert step.current_node is None

    def test_duplicate_branches_follow_first_edge(self):
        """Malformed graph: first edge for the option wins, no error."""
        survey = build_branching_survey()
        survey.edges.insert(0, Edge(id="dup", source_node_id="Q", target_node_id="R", source_handle="x"))
        run = SurveyRun()
        run.start(survey)
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        assert step.current_node.id == "R"


class TestScenario:
    """End-to-end run P -> S(B) from the reference scenario."""

    def test_presentation_then_single_choice(self):
        run = SurveyRun(fixed_options())
        step = run.start(build_p_s_survey())
        assert step.current_node.id == "P"

        step = run.answer(PresentationAnswer("P"))
        assert step.current_node.id == "S"
        assert step.total_score == 0

        step = run.answer(SingleChoiceAnswer("S", selected_option_id="B"))
        assert step.is_completed
        assert step.total_score == 20

        result = run.get_result()
        assert isinstance(result, Result)
        assert result.path == ("P", "S")
        assert result.total_score == 20
        assert [a.node_id for a in result.answers] == ["P", "S"]
        assert run.status == RunStatus.COMPLETED


class TestAnswerRejection:
    """Rejected answers never change state."""

    def test_answer_for_other_node_is_stale(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        with pytest.raises(StaleAnswerError):
            run.answer(SingleChoiceAnswer("S", selected_option_id="A"))
        assert run.current_node_id == "P"
        assert run.answers == ()

    def test_duplicate_submission_is_stale(self):
        """Submitting the same answer twice: the second is rejected."""
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        with pytest.raises(StaleAnswerError):
            run.answer(PresentationAnswer("P"))
        assert len(run.answers) == 1

    def test_answer_before_start_is_stale(self):
        with pytest.raises(StaleAnswerError):
            SurveyRun().answer(PresentationAnswer("P"))

    def test_answer_after_completion_is_stale(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        run.answer(SingleChoiceAnswer("S", selected_option_id="B"))
        with pytest.raises(StaleAnswerError):
            run.answer(SingleChoiceAnswer("S", selected_option_id="A"))
        assert run.total_score == 20

    def test_wrong_answer_variant_is_type_mismatch(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        with pytest.raises(TypeMismatchError):
            run.answer(RatingAnswer("P", rating_value=3))
        assert run.current_node_id == "P"
        assert run.answers == ()

    def test_unknown_option_is_invalid(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        with pytest.raises(InvalidAnswerError):
            run.answer(SingleChoiceAnswer("S", selected_option_id="Z"))
        assert run.current_node_id == "S"
        assert run.total_score == 0

    @pytest.mark.parametrize("selection", [None, "m1", [["m1"]], [1, 2]])
    def test_malformed_selection_is_type_mismatch(self, selection):
        """A selection that is not a list of option ids is rejected, not crashed on."""
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        with pytest.raises(TypeMismatchError):
            run.answer(MultipleChoiceAnswer("D1", selected_option_ids=selection))
        assert run.current_node_id == "D1"
        assert run.total_score == 1


class TestGoBack:
    """Backward navigation."""

    def test_cannot_go_back_right_after_start(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        assert run.can_go_back() is False

    def test_can_go_back_after_one_answer(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        assert run.can_go_back() is True

    def test_go_back_at_first_node_is_rejected(self):
        """State is unchanged when there is no history."""
        run = SurveyRun()
        run.start(build_p_s_survey())
        with pytest.raises(NoHistoryError):
            run.go_back()
        assert run.current_node_id == "P"
        assert run.visited_node_ids == ("P",)

    def test_answer_then_back_round_trip(self):
        """Answer followed by go_back restores position and drops the answer."""
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        step = run.go_back()
        assert step.current_node.id == "Q"
        assert run.answers == ()
        assert run.visited_node_ids == ("Q",)

    def test_go_back_then_different_branch(self):
        """Re-answering after going back may follow another branch."""
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        run.go_back()
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        assert step.current_node.id == "D2"
        assert run.visited_node_ids == ("Q", "D2")
        assert [a.selected_option_id for a in run.answers] == ["y"]

    def test_go_back_reverses_score_by_default(self):
        """Default policy keeps total_score consistent with answers."""
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        assert run.total_score == 2
        step = run.go_back()
        assert step.total_score == 0
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        assert step.total_score == 1

    def test_go_back_can_keep_score(self):
        """With reversal disabled the discarded contribution stays."""
        run = SurveyRun(RunnerOptions(reverse_score_on_back=False))
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="y"))
        step = run.go_back()
        assert step.total_score == 2
        step = run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        assert step.total_score == 3

    def test_go_back_only_drops_answer_of_node_returned_to(self):
        """Earlier answers survive two steps back."""
        run = SurveyRun()
        run.start(build_branching_survey())
        run.answer(SingleChoiceAnswer("Q", selected_option_id="x"))
        run.answer(MultipleChoiceAnswer("D1", selected_option_ids=("m1",)))
        run.go_back()
        assert [a.node_id for a in run.answers] == ["Q"]
        assert run.current_node_id == "D1"
        assert run.total_score == 1

    def test_cannot_go_back_after_completion(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        run.answer(SingleChoiceAnswer("S", selected_option_id="A"))
        assert run.can_go_back() is False
        with pytest.raises(NoHistoryError):
            run.go_back()

    def test_go_back_inside_self_loop(self):
        """A node that loops to itself can be revisited and backed out of."""
        survey = Survey(
            id="loop",
            nodes=[SingleChoiceNode(id="L", title="Again?", options=[
                Option(id="again", label="Again", score=1),
                Option(id="stop", label="Stop", score=0),
            ])],
            edges=[Edge(id="e", source_node_id="L", target_node_id="L", source_handle="again")],
        )
        run = SurveyRun()
        run.start(survey)
        run.answer(SingleChoiceAnswer("L", selected_option_id="again"))
        run.answer(SingleChoiceAnswer("L", selected_option_id="again"))
        assert run.visited_node_ids == ("L", "L", "L")
        assert run.total_score == 2

        run.go_back()
        assert run.visited_node_ids == ("L", "L")
        assert len(run.answers) == 1
        assert run.total_score == 1

        step = run.answer(SingleChoiceAnswer("L", selected_option_id="stop"))
        assert step.is_completed
        assert run.get_result().path == ("L", "L")


class TestFailClosed:
    """Broken graphs end the run instead of raising."""

    def test_dangling_edge_target_completes(self):
        survey = build_p_s_survey()
        survey.edges = [Edge(id="ghost", source_node_id="P", target_node_id="missing")]
        run = SurveyRun()
        run.start(survey)
        step = run.answer(PresentationAnswer("P"))
        assert step.is_completed
        assert run.current_node_id is None
        assert run.get_result().path == ("P",)

    def test_current_node_removed_mid_run(self):
        """The graph lost the current node after the run reached it."""
        survey = build_p_s_survey()
        run = SurveyRun()
        run.start(survey)
        run.answer(PresentationAnswer("P"))
        survey.nodes = [n for n in survey.nodes if n.id != "S"]

        assert run.get_current_node() is None
        step = run.answer(SingleChoiceAnswer("S", selected_option_id="A"))
        assert step.is_completed
        assert [a.node_id for a in run.get_result().answers] == ["P"]


class TestResult:
    """Completed-run snapshot and reset."""

    def test_result_requires_completion(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        with pytest.raises(NoHistoryError):
            run.get_result()

    def test_answers_are_timestamped_by_clock(self):
        run = SurveyRun(fixed_options())
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        assert run.answers[0].answered_at == FIXED

    def test_given_timestamp_is_kept(self):
        earlier = datetime(2023, 1, 1, tzinfo=timezone.utc)
        run = SurveyRun(fixed_options())
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P", answered_at=earlier))
        assert run.answers[0].answered_at == earlier

    def test_result_carries_respondent_data(self):
        """Name and e-mail from the presentation screen end up on the result."""
        survey = build_p_s_survey()
        survey.nodes[0] = PresentationNode(
            id="P",
            title="Hello",
            collect_name=RespondentField(label="Name", required=True),
            collect_email=RespondentField(label="E-mail"),
        )
        run = SurveyRun()
        run.start(survey)
        run.answer(PresentationAnswer("P", respondent_name="  Ada ", respondent_email="ada@example.com"))
        run.answer(SingleChoiceAnswer("S", selected_option_id="A"))

        result = run.get_result()
        assert result.survey_id == "ps"
        assert result.respondent_name == "Ada"
        assert result.respondent_email == "ada@example.com"

    def test_reset_returns_to_not_started(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        run.answer(PresentationAnswer("P"))
        run.reset()
        assert run.status == RunStatus.NOT_STARTED
        assert run.survey is None
        assert run.current_node_id is None
        assert run.answers == ()
        assert run.visited_node_ids == ()
        assert run.total_score == 0
        assert run.is_completed is False
        assert run.get_current_node() is None

    def test_snapshot_reports_step_fields(self):
        run = SurveyRun()
        run.start(build_p_s_survey())
        step = run.answer(PresentationAnswer("P"))
        assert step == run.snapshot()
        assert step.can_go_back is True
        assert step.is_completed is False
