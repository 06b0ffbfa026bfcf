# tests/test_cli.py
"""End-to-end tests for the ``ir-reachables`` command line."""

import json

import pytest

from ir_reachables.main import EXIT_ERROR, EXIT_INFRA, EXIT_OK, main


@pytest.fixture
def model_file(tmp_path, sample_text):
    path = tmp_path / "sample.ir"
    path.write_text(sample_text, encoding="utf-8")
    return path


class TestCli:

    def test_text_report(self, model_file, capsys):
        assert main([str(model_file), "--no-color"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("Functions reachable from main are")
        assert "+++on_event  (indirect)" in out
        assert "---pong" in out

    def test_json_to_file(self, model_file, tmp_path):
        dest = tmp_path / "out" / "report.json"
        assert main([str(model_file), "-f", "json", "-o", str(dest)]) == EXIT_OK
        data = json.loads(dest.read_text(encoding="utf-8"))
        assert data["unreachable"] == ["ping", "pong"]

    def test_dot(self, model_file, capsys):
        assert main([str(model_file), "--format", "dot"]) == EXIT_OK
        assert capsys.readouterr().out.startswith("digraph CallGraph {")

    def test_entry_option(self, model_file, capsys):
        assert main([str(model_file), "-e", "ping", "-f", "json"]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["reachable"] == ["ping", "pong"]

    def test_scan_mode_matches(self, model_file, capsys):
        main([str(model_file), "-f", "json"])
        with_graph = json.loads(capsys.readouterr().out)
        main([str(model_file), "-f", "json", "--no-callgraph"])
        assert json.loads(capsys.readouterr().out) == with_graph

    def test_no_callbacks(self, model_file, capsys):
        assert main([str(model_file), "-f", "json", "--no-callbacks"]) == EXIT_OK
        reachable = json.loads(capsys.readouterr().out)["reachable"]
        assert "on_event" not in reachable
        assert "inc" in reachable

    def test_config_file(self, model_file, tmp_path, capsys):
        cfg = tmp_path / "cfg.json"
        cfg.write_text(json.dumps({"entry": "ping", "report_format": "json"}),
                       encoding="utf-8")
        assert main([str(model_file), "--config", str(cfg)]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["entry"] == "ping"

    def test_command_line_overrides_config(self, model_file, tmp_path, capsys):
        cfg = tmp_path / "cfg.json"
        cfg.write_text(json.dumps({"entry": "ping"}), encoding="utf-8")
        assert main([str(model_file), "--config", str(cfg),
                     "-e", "main", "-f", "json"]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["entry"] == "main"


class TestExitCodes:

    def test_missing_entry(self, model_file, capsys):
        assert main([str(model_file), "-e", "start"]) == EXIT_ERROR
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "No function start" in captured.err

    def test_malformed_model(self, tmp_path):
        path = tmp_path / "bad.ir"
        path.write_text("(program (define main (fn void) (block b (call x))))",
                        encoding="utf-8")
        assert main([str(path)]) == EXIT_ERROR

    def test_missing_model(self, tmp_path):
        assert main([str(tmp_path / "absent.ir")]) == EXIT_INFRA

    def test_bad_config(self, model_file, tmp_path):
        cfg = tmp_path / "cfg.json"
        cfg.write_text('{"report_format": "xml"}', encoding="utf-8")
        assert main([str(model_file), "--config", str(cfg)]) == EXIT_INFRA

    def test_unknown_format_rejected_by_parser(self, model_file):
        with pytest.raises(SystemExit) as exc_info:
            main([str(model_file), "-f", "xml"])
        assert exc_info.value.code == 2

    def test_model_not_utf8(self, tmp_path, capsys):
        path = tmp_path / "latin1.ir"
        path.write_bytes(b"(program (define main (fn void)))\n; \xff\xfe")
        assert main([str(path)]) == EXIT_ERROR
        assert "not UTF-8" in capsys.readouterr().err

    def test_json_carries_statistics(self, model_file, capsys):
        assert main([str(model_file), "-f", "json"]) == EXIT_OK
        stats = json.loads(capsys.readouterr().out)["statistics"]
        assert stats["functions"] == 10
        assert stats["unreachable"] == 2
