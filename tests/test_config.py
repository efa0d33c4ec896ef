"""Tests for config and glob matching."""

import json
from pathlib import Path

import pytest

from src.analysis_watcher.config import (
    ENV_DELAY_MS,
    ENV_MAX_CONCURRENT,
    WatcherConfig,
    load_config,
)
from src.analysis_watcher.exceptions import ConfigurationError
from src.analysis_watcher.globs import compile_pattern, matches_any, matches_pattern


class TestGlobs:
    """Tests for glob pattern matching."""

    def test_double_star_matches_zero_segments(self):
        assert matches_pattern("app.py", "**/*.py")

    def test_double_star_matches_many_segments(self):
        assert matches_pattern("/ws/src/pkg/app.py", "**/*.py")

    def test_single_star_stays_in_segment(self):
        assert matches_pattern("app.py", "*.py")
        assert not matches_pattern("src/app.py", "*.py")

    def test_question_mark(self):
        assert matches_pattern("a1.py", "a?.py")
        assert not matches_pattern("a12.py", "a?.py")
        assert not matches_pattern("a/.py", "a?.py")

    def test_brace_alternation(self):
        assert matches_pattern("src/app.ts", "**/*.{js,ts}")
        assert matches_pattern("src/app.js", "**/*.{js,ts}")
        assert not matches_pattern("src/app.py", "**/*.{js,ts}")

    def test_character_class(self):
        assert matches_pattern("a.py", "[ab].py")
        assert not matches_pattern("c.py", "[ab].py")
        assert matches_pattern("c.py", "[!ab].py")

    def test_trailing_double_star(self):
        assert matches_pattern("/ws/node_modules/lib/index.js", "**/node_modules/**")
        assert not matches_pattern("/ws/node_modules_backup/index.js", "**/node_modules/**")

    def test_match_is_anchored(self):
        assert not matches_pattern("app.pyc", "**/*.py")

    def test_match_is_case_sensitive(self):
        assert not matches_pattern("APP.PY", "**/*.py")

    def test_backslashes_are_normalized(self):
        assert matches_pattern("src\\app.py", "src/*.py")

    def test_path_objects(self):
        assert matches_pattern(Path("src") / "app.py", "**/*.py")

    @pytest.mark.parametrize("pattern", ["**/*.{js", "**/*.js}", "src/[ab.py"])
    def test_malformed_pattern_never_matches(self, pattern):
        assert compile_pattern(pattern) is None
        assert not matches_pattern("src/a.js", pattern)

    def test_matches_any(self):
        assert matches_any("a.go", ["**/*.py", "**/*.go"])
        assert not matches_any("a.md", ["**/*.py", "**/*.go"])
        assert not matches_any("a.md", [])


class TestWatcherConfig:
    """Tests for WatcherConfig class."""

    def test_defaults(self):
        config = WatcherConfig()

        assert config.enabled is True
        assert config.max_concurrent_analysis == 3
        assert config.analysis_delay_ms == 2000
        assert "**/*.ts" in config.patterns
        assert "**/node_modules/**" in config.exclude
        assert config.workspace_wide is True

    def test_default_lists_are_independent(self):
        a = WatcherConfig()
        b = WatcherConfig()
        a.patterns.append("**/*.md")
        assert "**/*.md" not in b.patterns

    def test_should_watch_source_file(self):
        config = WatcherConfig()
        assert config.should_watch("/ws/src/app.ts")
        assert config.should_watch(Path("/ws/main.go"))

    def test_should_not_watch_excluded_dir(self):
        config = WatcherConfig()
        assert not config.should_watch("/ws/node_modules/lodash/index.js")
        assert not config.should_watch("/ws/.git/hooks/pre-commit.py")
        assert not config.should_watch("/ws/build/out.js")

    def test_should_not_watch_unmatched_extension(self):
        config = WatcherConfig()
        assert not config.should_watch("/ws/README.md")

    def test_exclude_wins_over_include(self):
        config = WatcherConfig(patterns=["**/*.js"], exclude=["**/vendor/**"])
        assert not config.should_watch("/ws/vendor/a.js")
        assert config.should_watch("/ws/app/a.js")

    def test_empty_patterns_watch_nothing(self):
        config = WatcherConfig(patterns=[])
        assert not config.should_watch("/ws/src/app.ts")

    def test_malformed_include_is_ignored(self):
        config = WatcherConfig(patterns=["**/*.{ts", "**/*.py"])
        assert not config.should_watch("/ws/a.ts")
        assert config.should_watch("/ws/a.py")

    @pytest.mark.parametrize("overrides", [
        {"max_concurrent_analysis": 0},
        {"analysis_delay_ms": -1},
        {"patterns": "**/*.py"},
        {"exclude": [1, 2]},
    ])
    def test_validate_rejects_bad_values(self, overrides):
        with pytest.raises(ConfigurationError):
            WatcherConfig().merge(overrides)

    def test_merge_accepts_camel_case(self):
        config = WatcherConfig().merge({"maxConcurrentAnalysis": 5, "analysisDelay": 500})

        assert config.max_concurrent_analysis == 5
        assert config.analysis_delay_ms == 500

    def test_merge_returns_copy(self):
        original = WatcherConfig()
        original.merge({"enabled": False})
        assert original.enabled is True

    def test_from_dict_ignores_unknown_keys(self):
        config = WatcherConfig.from_dict({"realTimeAnalysis": False, "colour": "blue"})

        assert config.real_time_analysis is False

    def test_to_dict(self):
        data = WatcherConfig().to_dict()

        assert data["max_concurrent_analysis"] == 3
        assert data["smart_patterns"] is True


class TestLoadConfig:
    """Tests for load_config."""

    @pytest.fixture(autouse=True)
    def _clean_env(self, monkeypatch):
        monkeypatch.delenv(ENV_MAX_CONCURRENT, raising=False)
        monkeypatch.delenv(ENV_DELAY_MS, raising=False)

    def test_no_path_gives_defaults(self):
        assert load_config() == WatcherConfig()

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "settings.json") == WatcherConfig()

    def test_reads_file_watcher_section(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({
            "fileWatcher": {"maxConcurrentAnalysis": 1, "smartPatterns": False},
            "editor": {"tabSize": 2},
        }))

        config = load_config(path)

        assert config.max_concurrent_analysis == 1
        assert config.smart_patterns is False

    def test_reads_flat_document(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"analysisDelay": 750}))

        assert load_config(path).analysis_delay_ms == 750

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_non_object_document(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_bad_value_in_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"maxConcurrentAnalysis": 0}))

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"maxConcurrentAnalysis": 1}))
        monkeypatch.setenv(ENV_MAX_CONCURRENT, "7")
        monkeypatch.setenv(ENV_DELAY_MS, "100")

        config = load_config(path)

        assert config.max_concurrent_analysis == 7
        assert config.analysis_delay_ms == 100

    def test_env_not_integer(self, monkeypatch):
        monkeypatch.setenv(ENV_MAX_CONCURRENT, "many")

        with pytest.raises(ConfigurationError):
            load_config()
