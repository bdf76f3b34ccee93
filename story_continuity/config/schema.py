from __future__ import annotations

from pathlib import Path
from string import Formatter

from pydantic import BaseModel, ConfigDict, Field, field_validator

from story_continuity.domain.models import NodeType

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output_dir: Path = Field(default=Path("./output"))
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(sorted(_LOG_LEVELS))}")
        return level


class ContinuityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    disabled_rules: list[str] = Field(default_factory=list)
    character_node_types: list[NodeType] = Field(default_factory=lambda: ["SCENE", "BEAT"])
    include_inherited_issues: bool = True
    location_key_template: str = "character.{entity_id}.location"

    @field_validator("disabled_rules")
    @classmethod
    def _normalize_codes(cls, value: list[str]) -> list[str]:
        codes = [code.strip().upper() for code in value if code.strip()]
        return sorted(set(codes))

    @field_validator("location_key_template")
    @classmethod
    def _template_has_entity(cls, value: str) -> str:
        fields = [field for _, field, _, _ in Formatter().parse(value) if field is not None]
        if "entity_id" not in fields:
            raise ValueError("location_key_template must contain '{entity_id}'")
        unexpected = sorted({field for field in fields if field != "entity_id"})
        if unexpected:
            raise ValueError(f"location_key_template only supports {{entity_id}}, got: {', '.join(unexpected)}")
        return value


class AppConfigRoot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    app: AppConfig = AppConfig()
    continuity: ContinuityConfig = ContinuityConfig()


def resolve_paths(config: AppConfigRoot, base_dir: Path) -> AppConfigRoot:
    def _resolve(path_value: Path) -> Path:
        return path_value if path_value.is_absolute() else (base_dir / path_value).resolve()

    config.app.output_dir = _resolve(config.app.output_dir)
    return config
