"""
test_stats_settings.py - 使用统计、SDK 设置与应用配置
"""

import json
from pathlib import Path

import pytest

from claudedeck.config import AppConfig, config_from_dict, load_config, save_config
from claudedeck.errors import NotFoundError, ParseFailureError
from claudedeck.settings import EXECUTABLE_KEY, get_executable_path, set_executable_path
from claudedeck.stats import load_stats

# =============================================================================
# Stats
# =============================================================================


class TestLoadStats:
    def test_merges_counts(self, cfg: AppConfig, claude_dir: Path, write_skill):
        cfg.stats_file.write_text(json.dumps({"totalSessions": 7}), encoding="utf-8")
        (claude_dir / "projects" / "-work-app").mkdir(parents=True)
        (claude_dir / "projects" / ".hidden").mkdir()
        (claude_dir / "projects" / "stray.json").write_text("{}", encoding="utf-8")
        (claude_dir / "agents").mkdir()
        (claude_dir / "agents" / "a.md").write_text("x", encoding="utf-8")
        (claude_dir / "agents" / "b.txt").write_text("x", encoding="utf-8")
        write_skill("skills/one", name="One")
        write_skill("plugins/marketplaces/acme/two", name="Two")

        data = load_stats(cfg)
        assert data == {"totalSessions": 7, "total_projects": 1, "total_agents": 1, "total_skills": 2}

    def test_missing_file(self, cfg: AppConfig):
        with pytest.raises(NotFoundError):
            load_stats(cfg)

    def test_invalid_file(self, cfg: AppConfig):
        cfg.stats_file.write_text("{oops", encoding="utf-8")
        with pytest.raises(ParseFailureError):
            load_stats(cfg)


# =============================================================================
# SDK settings
# =============================================================================


class TestSdkSettings:
    def test_default_is_empty(self, cfg: AppConfig):
        assert get_executable_path(cfg.sdk_config_file) == ""

    def test_set_keeps_other_keys(self, cfg: AppConfig):
        cfg.sdk_config_file.write_text(json.dumps({"other": 1}), encoding="utf-8")
        assert set_executable_path(cfg.sdk_config_file, " /usr/local/bin/claude ") == "/usr/local/bin/claude"

        data = json.loads(cfg.sdk_config_file.read_text(encoding="utf-8"))
        assert data == {"other": 1, EXECUTABLE_KEY: "/usr/local/bin/claude"}
        assert get_executable_path(cfg.sdk_config_file) == "/usr/local/bin/claude"

    def test_corrupt_file_reads_as_empty(self, cfg: AppConfig):
        cfg.sdk_config_file.write_text("nope", encoding="utf-8")
        assert get_executable_path(cfg.sdk_config_file) == ""


# =============================================================================
# AppConfig
# =============================================================================


class TestConfig:
    def test_derived_paths(self, cfg: AppConfig, claude_dir: Path):
        base = claude_dir.resolve()
        assert cfg.skills_dir == base / "skills"
        assert cfg.plugins_dir == base / "plugins" / "marketplaces"
        assert cfg.agents_dir == base / "agents"
        assert cfg.ide_dir == base / "ide"

    def test_bad_values_fall_back(self):
        cfg = config_from_dict({"claude_dir": "/x", "web": {"port": "nope"}, "log_level": "chatty"})
        assert cfg.claude_dir == "/x"
        assert cfg.web.host == "127.0.0.1"
        assert cfg.web.port == 8765
        assert cfg.log_level == "INFO"

    def test_save_and_load(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("CLAUDEDECK_CONFIG", str(tmp_path / "cfg" / "config.json"))
        cfg = config_from_dict({"claude_dir": str(tmp_path / "c"), "web": {"port": 9000}})
        path = save_config(cfg)

        assert path == tmp_path / "cfg" / "config.json"
        loaded = load_config()
        assert loaded.claude_dir == str(tmp_path / "c")
        assert loaded.web.port == 9000

    def test_missing_file_gives_defaults(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("CLAUDEDECK_CONFIG", str(tmp_path / "absent.json"))
        assert load_config().claude_dir.endswith(".claude")
