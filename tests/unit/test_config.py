"""
Tests for layered configuration
"""
import pytest
from pydantic import ValidationError

from daybrief.utils.config import Config, ScoringConfig, SelectionConfig


class TestConfig:
    """Test defaults, environment and YAML overlays"""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BRIEF_RECENCY_WEIGHT", raising=False)
        config = Config()
        assert config.scoring.recency_weight == 0.4
        assert config.scoring.trending_thresholds["reddit"] == 100
        assert config.selection.slack_factor == 2.0
        assert config.engagement.retention_days == 30
        assert config.catalog.max_item_age_hours == 48

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BRIEF_RECENCY_WEIGHT", "0.7")
        monkeypatch.setenv("ENGAGEMENT_RETENTION_DAYS", "7")
        config = Config()
        assert config.scoring.recency_weight == 0.7
        assert config.engagement.retention_days == 7

    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "scoring:\n"
            "  follow_up_weight: 0.5\n"
            "  trending_thresholds:\n"
            "    reddit: 250\n"
            "modes:\n"
            "  rush_start_hour: 5\n"
            "  timezone: Europe/Berlin\n"
        )
        config = Config(str(path))
        assert config.scoring.follow_up_weight == 0.5
        assert config.scoring.trending_thresholds == {"reddit": 250}
        assert config.modes.rush_start_hour == 5
        assert config.modes.timezone == "Europe/Berlin"

    def test_missing_file_uses_defaults(self, tmp_path):
        config = Config(str(tmp_path / "absent.yaml"))
        assert config.selection.max_type_share == 0.6

    def test_file_must_hold_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            Config(str(path))

    def test_keyword_overrides(self):
        config = Config(selection={"slack_factor": 1.5})
        assert config.selection.slack_factor == 1.5

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            ScoringConfig(recency_half_life_hours=0)
        with pytest.raises(ValidationError):
            SelectionConfig(slack_factor=0.5)
        with pytest.raises(ValidationError):
            SelectionConfig(max_type_share=1.5)
