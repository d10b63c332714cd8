from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from placekit.defaults import DEFAULT_BASE_URL, DEFAULT_MAP_DIR
from placekit.loaders import load_pattern
from placekit.models import PatternSet, PrioritizedTarget, Tier


def env_base_url() -> str:
    return os.environ.get("PLACEKIT_BASE_URL", DEFAULT_BASE_URL)


def env_map_dir() -> Path:
    return Path(os.environ.get("PLACEKIT_MAP_DIR", DEFAULT_MAP_DIR))


class TargetSpec(BaseModel):
    x: int
    y: int
    pattern_path: Path


class AgentConfig(BaseModel):
    access_token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)
    base_url: str = Field(default_factory=env_base_url)
    map_dir: Path = Field(default_factory=env_map_dir)
    write_artifacts: bool = True
    targets: Dict[Tier, TargetSpec]

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return value.rstrip("/")

    @model_validator(mode="after")
    def require_primary(self) -> "AgentConfig":
        if Tier.DEFENSIVE_PRIMARY not in self.targets:
            raise ValueError("A defensive-primary target is required")
        return self

    def load_pattern_set(self) -> PatternSet:
        """Load every configured pattern file; raises PatternFormatError on the first bad one."""
        return PatternSet(
            PrioritizedTarget(pattern=load_pattern(spec.pattern_path, (spec.x, spec.y)), tier=tier)
            for tier, spec in self.targets.items()
        )


def target_from_parts(
    label: str,
    x: Optional[int],
    y: Optional[int],
    pattern_path: Optional[str],
) -> Optional[TargetSpec]:
    """Build a target from its three CLI parts; all absent means no target."""
    parts = (x, y, pattern_path)
    if all(p is None for p in parts):
        return None
    if any(p is None for p in parts):
        raise ValueError(f"Target {label} needs x, y and pattern together")
    return TargetSpec(x=x, y=y, pattern_path=Path(pattern_path))
