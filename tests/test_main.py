"""Tests for the command line interface."""

import json
from unittest.mock import patch

from click.testing import CliRunner

from chunklens import __version__
from chunklens.main import cli
from chunklens.model import ModelError


def _project(tmp_path):
    tmp_path.mkdir(parents=True, exist_ok=True)
    (tmp_path / "index.js").write_text("import { route } from './routes';\nfunction main() { route(); }\n")
    (tmp_path / "routes.js").write_text("export function route() { return 1; }\n")
    return tmp_path


def _forty_functions():
    blocks = []
    for i in range(40):
        head = f"function fn{i:02d}(a, b) {{\n"
        filler = 500 - len(head) - len("}\n") - len('  return "";\n')
        blocks.append(head + '  return "' + "x" * filler + '";\n' + "}\n")
    return "".join(blocks)


class TestAnalyzeCommand:
    def test_json_only(self, tmp_path):
        result = CliRunner().invoke(cli, ["analyze", str(_project(tmp_path)), "--json-only"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["analyzed_count"] == 2
        assert payload["internal_edges"] == {"index.js": ["routes.js"]}
        assert payload["architecture_files"] == ["index.js", "routes.js"]

    def test_options_become_overrides(self, tmp_path):
        project = _project(tmp_path)
        (project / "generated").mkdir()
        (project / "generated" / "out.js").write_text("const x = 1;\n")
        result = CliRunner().invoke(
            cli,
            ["analyze", str(project), "--json-only", "--chunk-size", "1234", "-x", "generated", "--no-adaptive", "-j", "2"],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        engine = payload["config"]["engine"]
        assert engine["analysis"]["chunk_size"] == 1234
        assert engine["analysis"]["adaptive"] is False
        assert engine["runtime"]["concurrency"] == 2
        assert "generated" in engine["walk"]["exclude"]
        assert "node_modules" in engine["walk"]["exclude"]
        assert payload["analyzed_count"] == 2

    def test_rich_output_and_file(self, tmp_path):
        project = _project(tmp_path / "shop")
        out = tmp_path / "reports" / "analysis.json"
        result = CliRunner().invoke(cli, ["analyze", str(project), "--output", str(out)])
        assert result.exit_code == 0, result.output
        assert "Project Analysis" in result.output
        assert "index.js" in result.output
        assert json.loads(out.read_text())["name"] == "shop"

    def test_missing_directory(self, tmp_path):
        result = CliRunner().invoke(cli, ["analyze", str(tmp_path / "nope")])
        assert result.exit_code != 0
        assert "Not a directory" in result.output

    def test_summarize_requires_ollama(self, tmp_path):
        with patch("chunklens.main.OllamaClient.ensure_ready", side_effect=ModelError("Cannot connect to Ollama")):
            result = CliRunner().invoke(cli, ["analyze", str(_project(tmp_path)), "--summarize"])
        assert result.exit_code != 0
        assert "Cannot connect to Ollama" in result.output

    def test_summarize(self, tmp_path):
        with patch("chunklens.main.OllamaClient.ensure_ready"), patch(
            "chunklens.main.OllamaClient.generate", return_value="Wires the routes."
        ):
            result = CliRunner().invoke(cli, ["analyze", str(_project(tmp_path)), "--summarize", "--json-only"])
        assert result.exit_code == 0, result.output
        summaries = json.loads(result.output)["summaries"]
        assert [s["path"] for s in summaries["summaries"]] == ["index.js", "routes.js"]
        assert summaries["errors"] == []


class TestChunksCommand:
    def test_shows_chunk_table(self, tmp_path):
        target = tmp_path / "big.js"
        target.write_text(_forty_functions())
        result = CliRunner().invoke(cli, ["chunks", str(target)])
        assert result.exit_code == 0, result.output
        assert "3 chunk(s)" in result.output
        assert "remaining-tail" in result.output

    def test_invalid_chunk_size(self, tmp_path):
        target = tmp_path / "a.js"
        target.write_text("x\n")
        result = CliRunner().invoke(cli, ["chunks", str(target), "--chunk-size", "0"])
        assert result.exit_code != 0


class TestVersion:
    def test_version_command(self):
        result = CliRunner().invoke(cli, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_version_option(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert __version__ in result.output
