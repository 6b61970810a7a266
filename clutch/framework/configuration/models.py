"""
Configuration data models with validation.
"""

import math
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...domain.models import Metric, TimeUnit


class Rope(BaseModel):
    """
    Region of practical equivalence around zero error.

    ``lower`` and ``upper`` are signed error bounds with
    ``lower <= 0 <= upper``. Errors inside the closed band are treated as
    zero by the control loop.
    """
    model_config = ConfigDict(frozen=True)

    lower: float = 0.0
    upper: float = 0.0

    @field_validator('lower', 'upper')
    @classmethod
    def validate_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("rope bounds must be finite")
        return v

    @model_validator(mode='after')
    def validate_band(self):
        if self.lower > 0.0:
            raise ValueError(f"rope lower bound must be <= 0, got {self.lower}")
        if self.upper < 0.0:
            raise ValueError(f"rope upper bound must be >= 0, got {self.upper}")
        return self

    @classmethod
    def of(cls, below: float, above: float) -> "Rope":
        """
        Build a rope from distances below and above the set point.

        The distance below may be written signed or unsigned, so
        ``Rope.of(0.25, 0.0)`` and ``Rope.of(-0.25, 0.0)`` are the same band.
        """
        return cls(lower=-abs(below), upper=above)

    def contains(self, error: float) -> bool:
        return self.lower <= error <= self.upper


class ClutchConfiguration(BaseModel):
    """Immutable parameters of one control loop."""
    model_config = ConfigDict(frozen=True)

    metric: Metric
    set_point: float
    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0
    min_size: int = Field(ge=0)
    max_size: int = Field(ge=0)
    rope: Rope = Field(default_factory=Rope)
    cooldown_interval: float = Field(default=0.0, ge=0.0)
    cooldown_unit: TimeUnit = TimeUnit.SECONDS

    @field_validator('metric', mode='before')
    @classmethod
    def parse_metric(cls, v):
        return Metric.parse(v)

    @field_validator('cooldown_unit', mode='before')
    @classmethod
    def parse_cooldown_unit(cls, v):
        if isinstance(v, str):
            return TimeUnit(v.strip().lower())
        return v

    @field_validator('rope', mode='before')
    @classmethod
    def parse_rope(cls, v):
        """Accept a ``(below, above)`` pair as well as a Rope or mapping."""
        if isinstance(v, (tuple, list)):
            if len(v) != 2:
                raise ValueError("rope must be a (below, above) pair")
            return Rope.of(float(v[0]), float(v[1]))
        return v

    @field_validator('set_point', 'kp', 'ki', 'kd')
    @classmethod
    def validate_finite(cls, v):
        if not math.isfinite(v):
            raise ValueError("value must be finite")
        return v

    @model_validator(mode='after')
    def validate_bounds(self):
        if self.min_size > self.max_size:
            raise ValueError(f"min_size ({self.min_size}) must not exceed max_size ({self.max_size})")
        return self

    @property
    def cooldown_seconds(self) -> float:
        return self.cooldown_unit.to_seconds(self.cooldown_interval)


class LoggingConfiguration(BaseModel):
    """Logging system configuration with validation."""
    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = Field(default="json", pattern="^(json|text)$")
    output: str = Field(default="console", pattern="^(console|file|both)$")
    file_path: Optional[str] = None

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @model_validator(mode='after')
    def validate_file_path(self):
        if self.output in ('file', 'both') and not self.file_path:
            raise ValueError("file_path is required when output is 'file' or 'both'")
        return self


class ClutchSettings(BaseModel):
    """Everything a process running control loops is configured with."""
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)
    loops: Dict[str, ClutchConfiguration] = Field(default_factory=dict)

    @field_validator('loops')
    @classmethod
    def validate_loop_names(cls, v):
        for name in v:
            if not name.replace('_', '').replace('-', '').isalnum():
                raise ValueError(f"loop name must contain only alphanumeric characters, hyphens, and underscores: {name!r}")
        return v
