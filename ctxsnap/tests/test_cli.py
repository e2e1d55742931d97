"""
Tests for the ctxsnap command line entry point.
"""

import json

import pytest

from ctxsnap.snap import build_parser, main


@pytest.fixture
def project(make_tree):
    return make_tree(
        {
            "src/authController.ts": "export function login() {}",
            "src/index.ts": "export {}",
            ".env": "TOKEN=abc",
        }
    )


def _run(project, *args):
    return main([*args, "--dir", str(project), "--config", str(project / "missing.yaml")])


class TestCli:
    def test_extract_prints_block(self, project, capsys):
        assert _run(project, "extract") == 0
        out = capsys.readouterr().out
        assert '<dyad-file path="src/authController.ts">' in out
        assert "TOKEN=abc" not in out

    def test_extract_with_exclude(self, project, capsys):
        assert _run(project, "extract", "--exclude", "src/index.ts") == 0
        out = capsys.readouterr().out
        assert 'path="src/index.ts"' not in out

    def test_search_json(self, project, capsys):
        assert _run(project, "search", "auth", "--json") == 0
        payload = json.loads(capsys.readouterr().out)
        assert [r["path"] for r in payload] == ["src/authController.ts"]

    def test_minimal_json(self, project, capsys):
        assert _run(project, "minimal", "login", "--json", "--max-tokens", "1000") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["total_tokens"] <= 1000
        assert payload["reason"].startswith("Minimal context:")

    def test_context_json(self, project, capsys):
        assert _run(project, "context", "--json") == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["using_minimal_context"] is False

    def test_missing_directory(self, tmp_path):
        assert main(["extract", "--dir", str(tmp_path / "nope")]) == 2

    def test_bad_config_exit_code(self, project):
        bad = project / "bad.yaml"
        bad.write_text("- not a mapping\n", encoding="utf-8")
        assert main(["extract", "--dir", str(project), "--config", str(bad)]) == 2

    def test_subcommand_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])
