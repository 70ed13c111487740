#!/usr/bin/env python3
"""
Demo: Take the example quiz with scripted answers and print the result.

Shows branching, going back and re-answering, and the stored response.
"""

from nodeform.answers import PresentationAnswer, RatingAnswer, SingleChoiceAnswer
from nodeform.backends import DotMode, generate_dot
from nodeform.engine import SurveyRun
from nodeform.examples import build_example_quiz_survey
from nodeform.serialization import result_to_json
from nodeform.summary import summarize_result


def main():
    survey = build_example_quiz_survey()
    run = SurveyRun()

    print("=" * 70)
    print(f"RUN: {survey.title}")
    print("=" * 70)

    step = run.start(survey)
    print(f"Start at: {step.current_node.id}")

    step = run.answer(PresentationAnswer("welcome", respondent_name="Ada"))
    print(f"-> {step.current_node.id} (score {step.total_score})")

    step = run.answer(SingleChoiceAnswer("experience", selected_option_id="beginner"))
    print(f"-> {step.current_node.id} (score {step.total_score})")

    # Changed our mind
    step = run.go_back()
    print(f"<- back at {step.current_node.id} (score {step.total_score})")

    step = run.answer(SingleChoiceAnswer("experience", selected_option_id="expert"))
    print(f"-> {step.current_node.id} (score {step.total_score})")

    step = run.answer(SingleChoiceAnswer("advanced", selected_option_id="gil"))
    print(f"-> {step.current_node.id} (score {step.total_score})")

    step = run.answer(RatingAnswer("satisfaction", rating_value=5))
    print(f"Completed: {step.is_completed} (score {step.total_score})")

    result = run.get_result()
    summary = summarize_result(result, survey.enable_scoring)
    print()
    print(f"{summary.title} {summary.message}")
    print(result_to_json(result))

    print()
    print(generate_dot(survey, mode=DotMode.PATH, path=result.path))
    print("=" * 70)


if __name__ == "__main__":
    main()
