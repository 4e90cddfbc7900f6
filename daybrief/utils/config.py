"""
Configuration management for the daily brief engine using environment variables
"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field, field_validator
from dotenv import load_dotenv

from daybrief.utils.constants import (
    LoggingConstants,
    ScoringConstants,
    SelectionConstants,
    EngagementConstants,
    CatalogConstants,
    ModeConstants,
)


# Load environment variables from .env file
load_dotenv()


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class ScoringConfig(BaseModel):
    recency_weight: float = Field(default_factory=lambda: _env_float("BRIEF_RECENCY_WEIGHT", ScoringConstants.RECENCY_WEIGHT))
    interaction_weight: float = Field(default_factory=lambda: _env_float("BRIEF_INTERACTION_WEIGHT", ScoringConstants.INTERACTION_WEIGHT))
    follow_up_weight: float = Field(default_factory=lambda: _env_float("BRIEF_FOLLOW_UP_WEIGHT", ScoringConstants.FOLLOW_UP_WEIGHT))
    source_preference_weight: float = Field(default_factory=lambda: _env_float("BRIEF_SOURCE_PREFERENCE_WEIGHT", ScoringConstants.SOURCE_PREFERENCE_WEIGHT))
    engagement_weight: float = Field(default_factory=lambda: _env_float("BRIEF_ENGAGEMENT_WEIGHT", ScoringConstants.ENGAGEMENT_WEIGHT))
    engaged_time_seconds: float = Field(default_factory=lambda: _env_float("BRIEF_ENGAGED_TIME_SECONDS", ScoringConstants.ENGAGED_TIME_SECONDS))
    seen_penalty: float = Field(default_factory=lambda: _env_float("BRIEF_SEEN_PENALTY", ScoringConstants.SEEN_PENALTY))
    recency_half_life_hours: float = Field(default_factory=lambda: _env_float("BRIEF_RECENCY_HALF_LIFE_HOURS", ScoringConstants.RECENCY_HALF_LIFE_HOURS))
    trending_thresholds: Dict[str, int] = Field(default_factory=lambda: dict(ScoringConstants.TRENDING_THRESHOLDS))

    @field_validator('recency_half_life_hours')
    @classmethod
    def validate_half_life(cls, v):
        if v <= 0:
            raise ValueError("recency_half_life_hours must be positive")
        return v

    @field_validator('engaged_time_seconds')
    @classmethod
    def validate_engaged_time(cls, v):
        if v <= 0:
            raise ValueError("engaged_time_seconds must be positive")
        return v


class SelectionConfig(BaseModel):
    slack_factor: float = Field(default_factory=lambda: _env_float("BRIEF_READ_TIME_SLACK", SelectionConstants.READ_TIME_SLACK_FACTOR))
    max_type_share: float = Field(default_factory=lambda: _env_float("BRIEF_MAX_TYPE_SHARE", SelectionConstants.MAX_TYPE_SHARE))

    @field_validator('slack_factor')
    @classmethod
    def validate_slack(cls, v):
        if v < 1.0:
            raise ValueError("slack_factor must be at least 1.0")
        return v

    @field_validator('max_type_share')
    @classmethod
    def validate_share(cls, v):
        if not 0.0 < v <= 1.0:
            raise ValueError("max_type_share must be in (0, 1]")
        return v


class ModeConfig(BaseModel):
    """Policy for picking a brief mode when the caller does not name one"""
    rush_start_hour: int = Field(default_factory=lambda: _env_int("BRIEF_RUSH_START_HOUR", ModeConstants.RUSH_START_HOUR))
    rush_end_hour: int = Field(default_factory=lambda: _env_int("BRIEF_RUSH_END_HOUR", ModeConstants.RUSH_END_HOUR))
    weekend_days: List[int] = Field(default_factory=lambda: list(ModeConstants.WEEKEND_DAYS))
    timezone: Optional[str] = Field(default_factory=lambda: os.getenv("BRIEF_TIMEZONE"))

    @field_validator('rush_start_hour', 'rush_end_hour')
    @classmethod
    def validate_hour(cls, v):
        if not 0 <= v <= 24:
            raise ValueError("hours must be between 0 and 24")
        return v


class CatalogConfig(BaseModel):
    fetch_timeout_seconds: float = Field(default_factory=lambda: _env_float("CATALOG_FETCH_TIMEOUT", CatalogConstants.FETCH_TIMEOUT_SECONDS))
    max_item_age_hours: Optional[float] = Field(default_factory=lambda: _env_float("CATALOG_MAX_ITEM_AGE_HOURS", CatalogConstants.MAX_ITEM_AGE_HOURS))


class EngagementConfig(BaseModel):
    database_url: str = Field(default_factory=lambda: os.getenv("ENGAGEMENT_DATABASE_URL", "sqlite:///data/engagement.db"))
    retention_days: int = Field(default_factory=lambda: _env_int("ENGAGEMENT_RETENTION_DAYS", EngagementConstants.RETENTION_DAYS))
    max_records: int = Field(default_factory=lambda: _env_int("ENGAGEMENT_MAX_RECORDS", EngagementConstants.MAX_IN_MEMORY_RECORDS))


class OutputConfig(BaseModel):
    directory: str = Field(default_factory=lambda: os.getenv("OUTPUT_DIRECTORY", "output"))


class LoggingConfig(BaseModel):
    level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", LoggingConstants.DEFAULT_LEVEL))
    # Empty disables the file sink
    file: Optional[str] = Field(default_factory=lambda: os.getenv("LOG_FILE", LoggingConstants.DEFAULT_FILE))
    rotation: str = Field(default_factory=lambda: os.getenv("LOG_ROTATION", LoggingConstants.ROTATION))
    retention: str = Field(default_factory=lambda: os.getenv("LOG_RETENTION", LoggingConstants.RETENTION))

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        level = v.upper()
        if level not in LoggingConstants.LEVELS:
            raise ValueError(f"Unknown log level {v!r}")
        return level

    @field_validator('file')
    @classmethod
    def validate_file(cls, v):
        return v or None


class Config(BaseModel):
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    modes: ModeConfig = Field(default_factory=ModeConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    engagement: EngagementConfig = Field(default_factory=EngagementConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def __init__(self, config_path: Optional[str] = None, **overrides: Any):
        # Environment variables supply defaults (via Field factories);
        # an optional YAML file overrides individual sections.
        data: Dict[str, Any] = {}
        if config_path and Path(config_path).exists():
            data = Config._load_config(config_path)
        data.update(overrides)
        super().__init__(**data)

    @staticmethod
    def _load_config(config_path: str) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded
