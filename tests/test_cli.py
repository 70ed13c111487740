"""
Tests for the nodeform command line and the terminal player.
"""

import json

import pytest

from nodeform.cli import main, play
from nodeform.engine import RunnerOptions
from nodeform.examples import build_example_quiz_survey
from nodeform.model import Edge
from nodeform.serialization import survey_to_json, survey_to_yaml


def scripted(replies):
    """Feed canned replies to play() in order."""
    replies = list(replies)

    def ask(prompt):
        return replies.pop(0)
    return ask


@pytest.fixture
def quiz_file(tmp_path):
    path = tmp_path / "quiz.json"
    path.write_text(survey_to_json(build_example_quiz_survey()))
    return str(path)


@pytest.fixture
def broken_file(tmp_path):
    survey = build_example_quiz_survey()
    survey.edges.append(Edge(id="bad", source_node_id="satisfaction", target_node_id="ghost"))
    path = tmp_path / "broken.yaml"
    path.write_text(survey_to_yaml(survey))
    return str(path)


class TestPlay:
    """Interactive runs with scripted input."""

    def test_best_route(self):
        out = []
        run = play(build_example_quiz_survey(), ask=scripted(["Ada", "", "", "2", "1", "5"]), out=out.append)
        result = run.get_result()
        assert result.total_score == 35
        assert result.respondent_name == "Ada"
        assert result.respondent_email is None
        assert "How long have you been writing Python?" in out
        assert "  2) Many years" in out
        assert out[-1] == "Score: 35"

    def test_back_and_change_answer(self):
        run = play(
            build_example_quiz_survey(),
            ask=scripted(["Ada", "", "", "2", "back", "1", "1,2", "3"]),
            out=lambda line: None,
        )
        result = run.get_result()
        assert result.path == ("welcome", "experience", "basics", "satisfaction")
        assert result.total_score == 13

    def test_back_keeping_score(self):
        run = play(
            build_example_quiz_survey(),
            options=RunnerOptions(reverse_score_on_back=False),
            ask=scripted(["Ada", "", "", "2", "back", "1", "1,2", "3"]),
            out=lambda line: None,
        )
        assert run.get_result().total_score == 23

    def test_option_id_accepted(self):
        run = play(
            build_example_quiz_survey(),
            ask=scripted(["Ada", "", "", "expert", "not_sure"]),
            out=lambda line: None,
        )
        assert run.get_result().total_score == 10

    def test_invalid_answer_is_asked_again(self):
        out = []
        run = play(
            build_example_quiz_survey(),
            ask=scripted(["Ada", "", "", "2", "1", "9", "five", "5"]),
            out=out.append,
        )
        assert run.is_completed
        assert len([line for line in out if line.startswith("! ")]) == 2

    def test_back_on_first_node_is_reported(self):
        out = []
        run = play(
            build_example_quiz_survey(),
            ask=scripted(["back", "Ada", "", "", "2", "2"]),
            out=out.append,
        )
        assert run.is_completed
        assert out[2].startswith("! ")

    def test_no_score_line_without_scoring(self):
        out = []
        play(
            build_example_quiz_survey(enable_scoring=False),
            ask=scripted(["Ada", "", "", "2", "2"]),
            out=out.append,
        )
        assert not [line for line in out if line.startswith("Score:")]


class TestMain:
    """Subcommands and exit codes."""

    def test_validate_ok(self, quiz_file, capsys):
        assert main(["validate", quiz_file]) == 0
        assert "python-quiz: OK" in capsys.readouterr().out

    def test_validate_errors(self, broken_file, capsys):
        assert main(["validate", broken_file]) == 1
        assert "dangling_target" in capsys.readouterr().out

    def test_analyze(self, quiz_file, capsys):
        assert main(["analyze", quiz_file]) == 0
        out = capsys.readouterr().out
        assert "First node:    welcome" in out
        assert "Max score:     35" in out

    def test_dot_to_stdout(self, quiz_file, capsys):
        assert main(["dot", quiz_file, "--mode", "path", "--path", "welcome,experience"]) == 0
        assert "welcome -> experience [color=orange, penwidth=2];" in capsys.readouterr().out

    def test_dot_to_file(self, quiz_file, tmp_path):
        out = tmp_path / "quiz.dot"
        assert main(["dot", quiz_file, "-o", str(out)]) == 0
        assert out.read_text().startswith("digraph survey {")

    def test_play(self, quiz_file, capsys, monkeypatch):
        replies = iter(["Ada", "", "", "2", "1", "5"])
        monkeypatch.setattr("builtins.input", lambda prompt: next(replies))
        assert main(["play", quiz_file]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines[-2] == "Thank you! Thank you for completing the survey."
        assert json.loads(lines[-1])["totalScore"] == 35

    def test_missing_file(self, tmp_path, capsys):
        assert main(["validate", str(tmp_path / "nope.json")]) == 2
        assert capsys.readouterr().err.startswith("error:")

    def test_bad_document(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text('{"title": "no id"}')
        assert main(["analyze", str(path)]) == 2
        assert "Missing required key" in capsys.readouterr().err

    def test_malformed_entry_is_reported(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text('{"id": "s", "nodes": [null]}')
        assert main(["validate", str(path)]) == 2
        assert capsys.readouterr().err.startswith("error:")

    @pytest.mark.parametrize("interruption", [EOFError, KeyboardInterrupt])
    def test_play_abandoned(self, quiz_file, capsys, monkeypatch, interruption):
        def stop(prompt):
            raise interruption()
        monkeypatch.setattr("builtins.input", stop)
        assert main(["play", quiz_file]) == 130
        assert "Run abandoned." in capsys.readouterr().err
