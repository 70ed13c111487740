"""
Command line entry point.

    nodeform validate survey.json
    nodeform analyze survey.yaml
    nodeform dot survey.json --mode detailed -o survey.dot
    nodeform play survey.json
"""

import argparse
import logging
import sys
from typing import Callable, List, Optional

from nodeform.analyzer import analyze_survey, validate_survey
from nodeform.answers import (
    Answer,
    MultipleChoiceAnswer,
    PresentationAnswer,
    RatingAnswer,
    SingleChoiceAnswer,
)
from nodeform.backends import DotMode, generate_dot
from nodeform.engine import RunnerOptions, SurveyRun
from nodeform.errors import SurveyError
from nodeform.model import (
    ChoiceNode,
    MultipleChoiceNode,
    Node,
    PresentationNode,
    RatingNode,
    SingleChoiceNode,
    Survey,
)
from nodeform.serialization import load_survey_file, result_to_json
from nodeform.summary import summarize_result

BACK = "back"


def _cmd_validate(args: argparse.Namespace) -> int:
    survey = load_survey_file(args.survey)
    issues = validate_survey(survey)
    if not issues:
        print(f"{survey.id}: OK")
        return 0
    for issue in issues:
        print(f"{issue.severity.value.upper():8} {issue.code.value:24} {issue.message}")
    return 1 if any(issue.is_error for issue in issues) else 0


def _cmd_analyze(args: argparse.Namespace) -> int:
    report = analyze_survey(load_survey_file(args.survey))
    print(f"Survey:        {report.survey_id}")
    print(f"Nodes:         {report.total_nodes} {report.nodes_by_type}")
    print(f"Edges:         {report.total_edges}")
    print(f"First node:    {report.first_node}")
    print(f"Entry points:  {', '.join(report.entry_points) or '(none)'}")
    print(f"Exit points:   {', '.join(report.exit_points) or '(none)'}")
    if report.unreachable_nodes:
        print(f"Unreachable:   {', '.join(sorted(report.unreachable_nodes))}")
    if report.has_cycles:
        print(f"Cycle:         {' -> '.join(report.cycle_example)}")
    if report.max_score is not None:
        print(f"Max score:     {report.max_score}")
    print(f"Issues:        {len(report.errors)} errors, {len(report.warnings)} warnings")
    return 1 if report.errors else 0


def _cmd_dot(args: argparse.Namespace) -> int:
    survey = load_survey_file(args.survey)
    path = args.path.split(",") if args.path else None
    dot = generate_dot(survey, mode=DotMode(args.mode), path=path)
    if args.output:
        with open(args.output, "w") as fh:
            fh.write(dot)
        print(f"Saved to: {args.output}")
    else:
        print(dot)
    return 0


def _describe(node: Node) -> List[str]:
    lines = [node.title]
    if node.description:
        lines.append(node.description)
    if isinstance(node, ChoiceNode):
        for index, option in enumerate(node.options, start=1):
            lines.append(f"  {index}) {option.label}")
    if isinstance(node, RatingNode):
        low = node.min_label or str(node.min_value)
        high = node.max_label or str(node.max_value)
        lines.append(f"  {node.min_value}..{node.max_value} ({low} .. {high})")
    return lines


def _pick(node: ChoiceNode, token: str) -> str:
    """Accept either an option number or an option id."""
    token = token.strip()
    if token.isdigit() and 1 <= int(token) <= len(node.options):
        return node.options[int(token) - 1].id
    return token


def _read_answer(node: Node, ask: Callable[[str], str]) -> Optional[Answer]:
    """Prompt for an answer; None means the respondent typed ``back``."""
    if isinstance(node, PresentationNode):
        name = ask("Name: ") if node.collect_name else None
        if name == BACK:
            return None
        email = ask("E-mail: ") if node.collect_email else None
        if email == BACK:
            return None
        ask(f"[{node.button_text or 'Continue'}] ")
        return PresentationAnswer(node.id, respondent_name=name, respondent_email=email)

    reply = ask("> ").strip()
    if reply == BACK:
        return None
    if isinstance(node, SingleChoiceNode):
        return SingleChoiceAnswer(node.id, selected_option_id=_pick(node, reply))
    if isinstance(node, MultipleChoiceNode):
        picked = tuple(_pick(node, token) for token in reply.split(",") if token.strip())
        return MultipleChoiceAnswer(node.id, selected_option_ids=picked)
    try:
        value = int(reply)
    except ValueError:
        value = reply
    return RatingAnswer(node.id, rating_value=value)


def play(survey: Survey, options: Optional[RunnerOptions] = None,
         ask: Optional[Callable[[str], str]] = None, out: Callable[[str], None] = print) -> SurveyRun:
    """Run a survey interactively in the terminal until it completes."""
    ask = ask or input
    run = SurveyRun(options)
    step = run.start(survey)
    while not step.is_completed:
        node = step.current_node
        for line in _describe(node):
            out(line)
        answer = _read_answer(node, ask)
        try:
            if answer is None:
                step = run.go_back()
            else:
                step = run.answer(answer)
        except SurveyError as e:
            out(f"! {e}")
            continue
        if survey.enable_scoring:
            out(f"Score: {step.total_score}")
    return run


def _cmd_play(args: argparse.Namespace) -> int:
    survey = load_survey_file(args.survey)
    options = RunnerOptions(reverse_score_on_back=not args.keep_score_on_back)
    try:
        run = play(survey, options)
    except (EOFError, KeyboardInterrupt):
        print("\nRun abandoned.", file=sys.stderr)
        return 130
    result = run.get_result()
    summary = summarize_result(result, survey.enable_scoring)
    print(f"{summary.title} {summary.message}")
    print(result_to_json(result))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nodeform", description="Branching survey graph tools")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("validate", help="Check survey integrity before publishing")
    p.add_argument("survey", help="Path to survey JSON/YAML")
    p.set_defaults(func=_cmd_validate)

    p = sub.add_parser("analyze", help="Print a structural report")
    p.add_argument("survey", help="Path to survey JSON/YAML")
    p.set_defaults(func=_cmd_analyze)

    p = sub.add_parser("dot", help="Export a Graphviz DOT diagram")
    p.add_argument("survey", help="Path to survey JSON/YAML")
    p.add_argument("--mode", choices=[m.value for m in DotMode], default=DotMode.SIMPLE.value)
    p.add_argument("--path", help="Comma separated visited node ids (path mode)")
    p.add_argument("-o", "--output", help="Write to file instead of stdout")
    p.set_defaults(func=_cmd_dot)

    p = sub.add_parser("play", help="Take the survey in the terminal (type 'back' to go back)")
    p.add_argument("survey", help="Path to survey JSON/YAML")
    p.add_argument("--keep-score-on-back", action="store_true",
                   help="Do not subtract the score of answers discarded by 'back'")
    p.set_defaults(func=_cmd_play)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (SurveyError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
