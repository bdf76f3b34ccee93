"""Configuration loading and schema."""

from story_continuity.config.loader import load_config
from story_continuity.config.schema import AppConfig, AppConfigRoot, ContinuityConfig

__all__ = ["AppConfig", "AppConfigRoot", "ContinuityConfig", "load_config"]
