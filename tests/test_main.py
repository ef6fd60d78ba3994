"""
CLI tests
Tests: input loading, argument parsing, exit codes
"""

import json

from thr8fix.main import build_parser, load_scanned_files, load_threat_model, main


class TestLoaders:

    def test_scanned_files_list(self, tmp_path):
        path = tmp_path / "files.json"
        path.write_text(json.dumps([{"path": "a.js", "content": "x"}]))
        assert [f.path for f in load_scanned_files(path)] == ["a.js"]

    def test_scanned_files_wrapped(self, tmp_path):
        path = tmp_path / "files.json"
        path.write_text(json.dumps({"files": [{"path": "b.js"}]}))
        files = load_scanned_files(path)
        assert files[0].path == "b.js"
        assert files[0].content == ""

    def test_threat_model(self, tmp_path, threat_model_data):
        path = tmp_path / "tm.json"
        path.write_text(json.dumps(threat_model_data))
        assert len(load_threat_model(path).vulnerabilities()) == 2


class TestParser:

    def test_flags(self):
        args = build_parser().parse_args([
            "--threat-model", "tm.json", "--no-create-issues", "--auto-fix",
            "--pr-severity", "critical", "--fail-on-errors",
        ])
        assert args.create_issues is False
        assert args.auto_fix is True
        assert args.pr_severity == "critical"
        assert args.fail_on_errors is True

    def test_unset_toggles_are_none(self):
        args = build_parser().parse_args(["--threat-model", "tm.json"])
        assert args.create_issues is None
        assert args.auto_fix is None


class TestMain:

    def test_missing_threat_model_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert main(["--threat-model", str(tmp_path / "nope.json")]) == 2
