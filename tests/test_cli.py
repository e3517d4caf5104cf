"""Tests for the command line interface."""
import json

import pytest
from click.testing import CliRunner

from ccforest.cli import cli
from conftest import SESSION_ID, assistant_record, ts, user_record


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in ("CLAUDE_PROJECTS_DIR", "CCFOREST_STRICT", "CCFOREST_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, *args):
    return runner.invoke(cli, [str(a) for a in args], catch_exceptions=False)


def test_parse_json(runner, jsonl_file, simple_records):
    path = jsonl_file(simple_records + ["{oops\n"])
    result = invoke(runner, "parse", path, "--json")
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["summaries"] == 1
    assert data["userMessages"] == 2
    assert data["assistantMessages"] == 2
    assert data["sessionIds"] == [SESSION_ID]
    assert data["failures"][0]["reason"] == "invalid_json"
    assert data["failures"][0]["line"] == 6


def test_parse_text(runner, jsonl_file, simple_records):
    result = invoke(runner, "parse", jsonl_file(simple_records))
    assert result.exit_code == 0
    assert "User messages: 2" in result.output


def test_strict_mode_exits_on_failures(runner, jsonl_file, simple_records):
    path = jsonl_file(simple_records + ["{oops\n"])
    assert invoke(runner, "--strict", "parse", path).exit_code == 1


def test_validate_json(runner, jsonl_file):
    path = jsonl_file([user_record("X", "X", ts(0)), user_record("Y", "ghost", ts(1))])
    result = invoke(runner, "validate", path, "--json")
    assert result.exit_code == 0
    kinds = [f["kind"] for f in json.loads(result.output)]
    assert kinds == ["unresolved_parent", "cycle_broken"]


def test_validate_clean(runner, jsonl_file, simple_records):
    result = invoke(runner, "--strict", "validate", jsonl_file(simple_records))
    assert result.exit_code == 0
    assert "No findings" in result.output


def test_branch_follows_latest_summary(runner, jsonl_file):
    path = jsonl_file([
        {"type": "summary", "summary": "older path", "leafUuid": "B"},
        user_record("A", None, ts(1)),
        user_record("B", "A", ts(2)),
        user_record("C", "A", ts(3)),
    ])
    result = invoke(runner, "branch", path, "--json")
    assert json.loads(result.output) == ["A", "B"]

    result = invoke(runner, "branch", path, "--leaf", "C", "--json")
    assert json.loads(result.output) == ["A", "C"]


def test_branch_per_summary(runner, jsonl_file):
    path = jsonl_file([
        {"type": "summary", "summary": "b", "leafUuid": "B"},
        user_record("A", None, ts(1)),
        user_record("B", "A", ts(2)),
    ])
    result = invoke(runner, "branch", path, "--summaries", "--json")
    assert json.loads(result.output) == {"B": ["A", "B"]}


def test_stats_json_over_active_branch(runner, jsonl_file):
    path = jsonl_file([
        user_record("u1", None, ts(0)),
        assistant_record("a1", "u1", ts(1), costUSD=0.25, durationMs=100),
        assistant_record("a2", "u1", ts(2), costUSD=0.5, durationMs=300),
    ])
    everything = json.loads(invoke(runner, "stats", path, "--json").output)
    assert everything["totalCostUSD"] == pytest.approx(0.75)
    assert everything["messageCount"] == {"user": 1, "assistant": 2}

    branch = json.loads(invoke(runner, "stats", path, "--branch", "--json").output)
    assert branch["totalCostUSD"] == pytest.approx(0.5)
    assert branch["averageResponseTimeMs"] == pytest.approx(300)


def test_tree_renders(runner, jsonl_file, simple_records):
    result = invoke(runner, "tree", jsonl_file(simple_records))
    assert result.exit_code == 0
    assert "u1" in result.output
    assert "a2" in result.output


def test_session_lookup(runner, tmp_path, simple_records):
    project = tmp_path / "projects" / "-home-dev-project"
    project.mkdir(parents=True)
    (project / f"{SESSION_ID}.jsonl").write_text(
        "".join(json.dumps(r) + "\n" for r in simple_records), encoding="utf-8")

    result = invoke(runner, "--projects-dir", tmp_path / "projects", "parse", "-s", SESSION_ID[:8], "--json")
    assert result.exit_code == 0
    assert json.loads(result.output)["userMessages"] == 2

    listing = invoke(runner, "--projects-dir", tmp_path / "projects", "projects", "--json")
    assert json.loads(listing.output) == ["-home-dev-project"]

    sessions = invoke(runner, "--projects-dir", tmp_path / "projects", "sessions", "-p", "-home-dev-project", "--json")
    assert json.loads(sessions.output)[0]["session_id"] == SESSION_ID


def test_unknown_session_fails(runner, tmp_path):
    result = invoke(runner, "--projects-dir", tmp_path, "parse", "-s", "deadbeef")
    assert result.exit_code == 1


def test_missing_file_fails(runner, tmp_path):
    result = invoke(runner, "parse", tmp_path / "absent.jsonl")
    assert result.exit_code == 1


def test_source_is_required(runner):
    result = runner.invoke(cli, ["parse"])
    assert result.exit_code == 2
