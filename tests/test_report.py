# tests/test_report.py
"""Tests for the text, JSON and DOT listings."""

import io
import json

import pytest

from ir_reachables.reachability import ReachableFunctions, compute_reachable
from ir_reachables.reader import parse_program
from ir_reachables.report import format_text, render, to_dict, use_color


@pytest.fixture
def result(sample_text):
    return ReachableFunctions(parse_program(sample_text)).analyze("main")


class TestText:

    def test_listing(self, result):
        lines = format_text(result).splitlines()
        assert lines[0] == "Functions reachable from main are"
        assert "+++main" in lines
        assert "+++inc  (indirect)" in lines
        assert lines[lines.index("Non reachable functions") + 1:] == ["---ping", "---pong"]

    def test_declarations_not_listed(self, result):
        assert "puts" not in format_text(result)

    def test_color(self, result):
        text = format_text(result, color=True)
        assert "\x1b[" in text
        assert "\x1b[" not in format_text(result, color=False)


class TestStructured:

    def test_to_dict(self, result):
        data = to_dict(result)
        assert data["program"] == "sample"
        assert data["entry"] == "main"
        assert data["unreachable"] == ["ping", "pong"]
        assert data["indirect_only"] == ["dec", "handle", "inc", "log_value", "on_event"]
        assert data["counts"] == {"defined": 10, "reachable": 8, "direct": 3}
        assert data["statistics"]["external_functions"] == 2
        assert data["statistics"]["indirect_only"] == 5

    def test_json_roundtrips(self, result):
        assert json.loads(render(result, "json")) == to_dict(result)

    def test_dot(self, result):
        dot = render(result, "dot")
        assert 'label="reachable from main"' in dot
        assert '"on_event" [label="on_event", style=filled, fillcolor="#ccffcc"];' in dot
        assert '"ping" [label="ping"' in dot

    def test_unknown_format(self, result):
        with pytest.raises(ValueError, match="unknown report format"):
            render(result, "xml")


class TestUseColor:

    def test_explicit_choice_wins(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert use_color(io.StringIO(), True) is True

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert use_color(io.StringIO()) is False

    def test_not_a_tty(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        assert use_color(io.StringIO()) is False


class TestMalformedUnreachableSite:

    def test_listings_skip_the_site(self, builder, caplog):
        builder.define("main")
        dead = builder.define("dead")
        dead.blocks[0].add_call()
        result = ReachableFunctions(builder.program).analyze("main")
        data = to_dict(result)
        assert data["reachable"] == ["main"]
        assert data["unreachable"] == ["dead"]
        assert data["statistics"]["unresolved_calls"] == 0
        assert "not annotated" in caplog.text
        assert '"dead" [label="dead"' in render(result, "dot")
