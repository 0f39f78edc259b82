"""Tests for run configuration."""

from pathlib import Path

import pytest

from repotracker.config import EmptyRevisionPolicy, TrackerConfig, default_cache_root
from repotracker.errors import ConfigError


class TestTrackerConfig:
    """Test defaults, validation and environment overrides."""

    def test_defaults(self):
        config = TrackerConfig()

        assert config.cache_root == default_cache_root()
        assert config.max_concurrency == 20
        assert config.empty_revision_policy is EmptyRevisionPolicy.ALWAYS
        assert config.branch is None
        assert config.git_timeout is None
        assert config.report_dir == default_cache_root() / "reports"

    def test_output_dir_overrides_report_dir(self, tmp_path):
        assert TrackerConfig(output_dir=tmp_path).report_dir == tmp_path

    @pytest.mark.parametrize("kwargs", [
        {"max_concurrency": 0},
        {"max_commits": 0},
        {"report_format": "html"},
        {"empty_revision_policy": "sometimes"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigError):
            TrackerConfig(**kwargs)

    def test_policy_from_string(self):
        assert TrackerConfig(empty_revision_policy="skip").empty_revision_policy is EmptyRevisionPolicy.SKIP

    def test_from_env(self):
        config = TrackerConfig.from_env({
            "REPOTRACKER_CACHE_DIR": "/var/cache/repotracker",
            "REPOTRACKER_CONCURRENCY": "5",
            "REPOTRACKER_BRANCH": "main",
            "REPOTRACKER_GIT_TIMEOUT": "120",
        })

        assert config.cache_root == Path("/var/cache/repotracker")
        assert config.max_concurrency == 5
        assert config.branch == "main"
        assert config.git_timeout == 120.0

    def test_overrides_beat_environment(self):
        config = TrackerConfig.from_env({"REPOTRACKER_CONCURRENCY": "5"}, max_concurrency=2, branch=None)
        assert config.max_concurrency == 2
        assert config.branch is None

    def test_bad_number_in_environment(self):
        with pytest.raises(ConfigError):
            TrackerConfig.from_env({"REPOTRACKER_CONCURRENCY": "many"})
