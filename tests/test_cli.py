"""Tests for CLI commands (local checkouts and saved graphs, no network)."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from depgraph.cli import _parse_overrides, main
from depgraph.graph.serialize import load_graph, save_graph

_ENV = {"DEPGRAPH_LOG_LEVEL": "ERROR"}

_API_MOD = """module github.com/acme/api

go 1.21

require (
\tgithub.com/pkg/errors v0.9.1
\tgithub.com/google/uuid v1.0.0
)
"""

_WORKER_MOD = """module github.com/acme/worker

require github.com/pkg/errors v0.8.0
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def checkout(tmp_path):
    root = tmp_path / "acme"
    for name, text in (("api", _API_MOD), ("worker", _WORKER_MOD)):
        (root / name).mkdir(parents=True)
        (root / name / "go.mod").write_text(text)
    (root / "docs").mkdir()
    return root


@pytest.fixture
def graph_file(tmp_path, fleet_graph):
    path = tmp_path / "graph.json"
    save_graph(fleet_graph, path)
    return path


class TestParseOverrides:
    def test_pairs(self):
        assert _parse_overrides(("cache.maxAge=600", "scanner.maxInFlight = 4")) == {
            "cache.maxAge": "600",
            "scanner.maxInFlight": "4",
        }

    def test_missing_equals(self, runner):
        result = runner.invoke(main, ["--set", "cache.maxAge", "cache-clear"], env=_ENV)
        assert result.exit_code != 0

    def test_unknown_option(self, runner, graph_file):
        result = runner.invoke(
            main, ["--set", "cache.size=1", "stats", "--graph", str(graph_file)], env=_ENV
        )
        assert result.exit_code == 1
        assert "unknown configuration option" in result.output


class TestScan:
    def test_local_scan_table(self, runner, checkout):
        result = runner.invoke(main, ["scan", "acme", "--local", str(checkout)], env=_ENV)
        assert result.exit_code == 0, result.output
        assert "acme/api" in result.output
        assert "acme/docs" in result.output
        assert "not_found" in result.output

    def test_local_scan_json(self, runner, checkout):
        result = runner.invoke(
            main, ["-o", "json", "scan", "acme", "--local", str(checkout)], env=_ENV
        )
        assert result.exit_code == 0, result.output
        records = json.loads(result.output)
        assert [r["repository"] for r in records] == ["acme/api", "acme/docs", "acme/worker"]
        assert records[0]["module_path"] == "github.com/acme/api"
        assert len(records[0]["dependencies"]) == 2
        assert records[1]["error_kind"] == "not_found"

    def test_save_graph(self, runner, checkout, tmp_path):
        out = tmp_path / "out.json"
        result = runner.invoke(
            main, ["scan", "acme", "--local", str(checkout), "--save", str(out)], env=_ENV
        )
        assert result.exit_code == 0, result.output
        graph = load_graph(out)
        assert "acme/api" in graph
        assert [n.id for n in graph.dependents("github.com/pkg/errors")] == [
            "acme/api",
            "acme/worker",
        ]

    def test_save_to_missing_directory(self, runner, checkout, tmp_path):
        out = tmp_path / "no" / "such" / "dir" / "graph.json"
        result = runner.invoke(
            main, ["scan", "acme", "--local", str(checkout), "--save", str(out)], env=_ENV
        )
        assert result.exit_code == 1
        assert "cannot write graph" in result.output
        assert "Traceback" not in result.output
        assert not out.exists()

    def test_bad_log_level_is_a_usage_error(self, runner, checkout):
        env = {"DEPGRAPH_LOG_LEVEL": "CHATTY"}
        result = runner.invoke(main, ["scan", "acme", "--local", str(checkout)], env=env)
        assert result.exit_code == 1
        assert "unknown log level" in result.output

    def test_remote_scan_without_token(self, runner, tmp_path):
        env = {**_ENV, "GITHUB_TOKEN": "", "DEPGRAPH_CACHE_DIR": str(tmp_path)}
        result = runner.invoke(main, ["scan", "acme"], env=env)
        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output


class TestAnalysisCommands:
    def test_stats(self, runner, graph_file):
        result = runner.invoke(main, ["stats", "--graph", str(graph_file)], env=_ENV)
        assert result.exit_code == 0, result.output
        assert "Total Repositories:    3" in result.output
        assert "Version Conflicts:     1" in result.output

    def test_stats_json(self, runner, graph_file):
        result = runner.invoke(main, ["-o", "json", "stats", "--graph", str(graph_file)], env=_ENV)
        data = json.loads(result.output)
        assert data["total_modules"] == 2
        assert data["top_shared"][0] == "github.com/test/mod2"

    def test_conflicts(self, runner, graph_file):
        result = runner.invoke(main, ["conflicts", "--graph", str(graph_file)], env=_ENV)
        assert "github.com/test/mod2  (recommended: v2.0.0)" in result.output
        assert "v1.0.0: test-repo-1, test-repo-3" in result.output

    def test_critical(self, runner, graph_file):
        result = runner.invoke(
            main, ["-o", "json", "critical", "--graph", str(graph_file)], env=_ENV
        )
        data = json.loads(result.output)
        assert {d["module"] for d in data} == {"mod1", "mod2"}

    def test_updates(self, runner, graph_file):
        result = runner.invoke(main, ["updates", "--graph", str(graph_file)], env=_ENV)
        assert "mod2: test-repo-1, test-repo-3" in result.output

    def test_chains(self, runner, graph_file):
        result = runner.invoke(main, ["chains", "--graph", str(graph_file), "-l", "1"], env=_ENV)
        assert result.exit_code == 0, result.output
        assert "Chain 1 (Length: 2):" in result.output
        assert "Chain 2" not in result.output

    def test_cycles_none(self, runner, graph_file):
        result = runner.invoke(main, ["cycles", "--graph", str(graph_file)], env=_ENV)
        assert "No cycles." in result.output

    def test_impact(self, runner, graph_file):
        result = runner.invoke(
            main, ["impact", "--graph", str(graph_file), "-m", "mod2"], env=_ENV
        )
        assert result.exit_code == 0, result.output
        assert "Impact Score:             3.00" in result.output
        assert "Breaking Changes:         True" in result.output

    def test_impact_unknown_module(self, runner, graph_file):
        result = runner.invoke(
            main, ["impact", "--graph", str(graph_file), "-m", "repo1"], env=_ENV
        )
        assert result.exit_code == 1
        assert "invalid module ID" in result.output

    def test_risk_shows_disclaimer(self, runner, graph_file):
        result = runner.invoke(main, ["risk", "--graph", str(graph_file)], env=_ENV)
        assert result.exit_code == 0, result.output
        assert "no vulnerability database" in result.output
        assert "LOW" in result.output

    def test_risk_without_low(self, runner, graph_file):
        result = runner.invoke(
            main, ["-o", "json", "risk", "--graph", str(graph_file), "--no-low"], env=_ENV
        )
        data = json.loads(result.output)
        assert data["findings"] == []
        assert data["disclaimer"]

    def test_missing_graph_file(self, runner, tmp_path):
        result = runner.invoke(
            main, ["stats", "--graph", str(tmp_path / "absent.json")], env=_ENV
        )
        assert result.exit_code == 2

    def test_corrupt_graph_file(self, runner, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        result = runner.invoke(main, ["stats", "--graph", str(bad)], env=_ENV)
        assert result.exit_code == 1
        assert "cannot load graph" in result.output


class TestCacheClear:
    def test_clear(self, runner, tmp_path):
        (tmp_path / ("a" * 64 + ".json")).write_text("{}")
        result = runner.invoke(main, ["--set", f"cache.dir={tmp_path}", "cache-clear"], env=_ENV)
        assert result.exit_code == 0, result.output
        assert "Removed 1 cache entries" in result.output
