"""
Example survey builder used by the demo, the CLI docs and the tests.

Builds a small branching Python quiz covering every node type:

    welcome (presentation)
        -> experience (single choice)
            beginner -> basics (multiple choice) -> satisfaction (rating)
            expert   -> advanced (single choice)
                            gil      -> satisfaction (rating)
                            not_sure -> (end)
"""
from nodeform.model import (
    Edge,
    MultipleChoiceNode,
    Option,
    PresentationNode,
    RatingNode,
    RespondentField,
    SingleChoiceNode,
    Survey,
    SurveyStatus,
)


def build_example_quiz_survey(enable_scoring: bool = True) -> Survey:
    survey = Survey(
        id="python-quiz",
        title="How well do you know Python?",
        description="A short branching quiz.",
        enable_scoring=enable_scoring,
        prize="Sticker pack",
        status=SurveyStatus.PUBLISHED,
    )

    survey.nodes = [
        PresentationNode(
            id="welcome",
            title="Welcome!",
            description="<p>Five quick questions, no wrong answers.</p>",
            button_text="Start",
            collect_name=RespondentField(label="Your name"),
            collect_email=RespondentField(label="E-mail", required=False),
        ),
        SingleChoiceNode(
            id="experience",
            title="How long have you been writing Python?",
            options=[
                Option(id="beginner", label="Less than a year", score=0),
                Option(id="expert", label="Many years", score=10),
            ],
        ),
        MultipleChoiceNode(
            id="basics",
            title="Which of these are built-in types?",
            options=[
                Option(id="list", label="list", score=5),
                Option(id="dict", label="dict", score=5),
                Option(id="array", label="array", score=-5),
            ],
        ),
        SingleChoiceNode(
            id="advanced",
            title="What does the GIL protect?",
            options=[
                Option(id="gil", label="Interpreter internals", score=20),
                Option(id="not_sure", label="Not sure", score=0),
            ],
        ),
        RatingNode(
            id="satisfaction",
            title="Did you enjoy this quiz?",
            min_value=1,
            max_value=5,
            min_label="Not at all",
            max_label="Loved it",
        ),
    ]

    survey.edges = [
        Edge(id="e-welcome", source_node_id="welcome", target_node_id="experience"),
        Edge(id="e-beginner", source_node_id="experience", target_node_id="basics", source_handle="beginner"),
        Edge(id="e-expert", source_node_id="experience", target_node_id="advanced", source_handle="expert"),
        Edge(id="e-basics", source_node_id="basics", target_node_id="satisfaction"),
        Edge(id="e-gil", source_node_id="advanced", target_node_id="satisfaction", source_handle="gil"),
    ]

    return survey
