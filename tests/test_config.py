"""Tests for configuration layering."""
from pathlib import Path

import pytest

from ccforest.config import Config


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for name in ("CLAUDE_PROJECTS_DIR", "CCFOREST_STRICT", "CCFOREST_VERBOSE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


def write_config(tmp_path, text):
    path = tmp_path / "custom.toml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults():
    config = Config()
    assert config.projects_dir == str(Path("~/.claude/projects").expanduser())
    assert config.strict is False
    assert config.verbose is False
    assert config.follow_summary_hint is True
    assert config.output_format == "text"


def test_file_values_merge_with_defaults(tmp_path):
    config = Config(config_file=write_config(tmp_path, '[processing]\nstrict = true\n'))
    assert config.strict is True
    assert config.follow_summary_hint is True
    assert config.get("paths.projects_dir") == config.projects_dir


def test_cwd_config_toml_is_picked_up(tmp_path):
    (tmp_path / "config.toml").write_text('[output]\nformat = "json"\n', encoding="utf-8")
    assert Config().output_format == "json"


def test_env_overrides_file(tmp_path, monkeypatch):
    path = write_config(tmp_path, '[paths]\nprojects_dir = "/from/file"\n[processing]\nstrict = true\n')
    monkeypatch.setenv("CLAUDE_PROJECTS_DIR", "/from/env")
    monkeypatch.setenv("CCFOREST_STRICT", "0")
    config = Config(config_file=path)
    assert config.projects_dir == "/from/env"
    assert config.strict is False


def test_arguments_override_env(monkeypatch):
    monkeypatch.setenv("CLAUDE_PROJECTS_DIR", "/from/env")
    monkeypatch.setenv("CCFOREST_STRICT", "false")
    config = Config(projects_dir="/from/cli", verbose=True, strict=True)
    assert config.projects_dir == "/from/cli"
    assert config.strict is True
    assert config.verbose is True


def test_broken_file_falls_back_to_defaults(tmp_path, caplog):
    config = Config(config_file=write_config(tmp_path, "this is = = not toml"))
    assert config.strict is False
    assert "Configuration file load error" in caplog.text


def test_defaults_are_not_shared(tmp_path):
    Config(config_file=write_config(tmp_path, '[processing]\nstrict = true\n'))
    assert Config().strict is False


def test_get_missing_key():
    assert Config().get("nope.deeper", "fallback") == "fallback"


def test_non_table_section_keeps_defaults(tmp_path, caplog):
    config = Config(config_file=write_config(tmp_path, 'processing = "x"\n'), strict=True)
    assert config.strict is True
    assert config.follow_summary_hint is True
    assert "expected a table" in caplog.text
