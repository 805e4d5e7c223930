"""Configuration models for Keyforge."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from keyforge.core.curves.models import Interpolation, SoftFalloff


class SmoothingConfig(BaseModel):
    """Constrained and kernel smoothing settings."""

    epsilon: float = Field(
        default=1e-9, gt=0.0, description="Minimum value change that produces a patch"
    )

    pivot_epsilon: float = Field(
        default=1e-12, gt=0.0, description="Tridiagonal pivots below this are skipped"
    )

    min_track_keys: int = Field(
        default=3, ge=1, description="Tracks with fewer keys are not smoothed"
    )

    tension_base: float = Field(
        default=0.5, gt=0.0, description="Spring bounce tension at radius 0"
    )

    friction_base: float = Field(
        default=0.6, gt=0.0, description="Spring bounce friction at radius 0"
    )


class SimplifyConfig(BaseModel):
    """Adaptive simplification settings."""

    error_threshold: float = Field(
        default=0.01, ge=0.0, description="Maximum deviation before a segment is split"
    )

    fit_strength: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Blend from linear handles (0) to least-squares handles (1)",
    )

    variance_threshold: float = Field(
        default=1e-9, ge=0.0, description="Sample variance below which a segment is flat"
    )

    determinant_threshold: float = Field(
        default=1e-9, ge=0.0, description="Normal-equation determinant treated as singular"
    )

    sample_step: float = Field(default=1.0, gt=0.0, description="Dense sampling step in frames")

    min_samples: int = Field(
        default=50, ge=2, description="Minimum sampling intervals for short spans"
    )


class SoftSelectionConfig(BaseModel):
    """Soft selection settings."""

    radius: float = Field(default=10.0, ge=0.0, description="Falloff radius in frames")
    falloff: SoftFalloff = Field(default=SoftFalloff.LINEAR, description="Falloff shape")


class TangentConfig(BaseModel):
    """Handle maintenance settings."""

    drag_max_reach: float = Field(
        default=1.0,
        gt=0.0,
        le=1.0,
        description="Dragged handle reach as a fraction of the gap to the neighbour",
    )


class EulerConfig(BaseModel):
    """Angle track detection."""

    angle_track_patterns: list[str] = Field(
        default_factory=list,
        description="Regexes marking untagged tracks as angle tracks (case-insensitive)",
    )


class BakeConfig(BaseModel):
    """Resampling settings."""

    step: float = Field(default=1.0, gt=0.0, description="Bake interval in frames")
    interpolation: Interpolation = Field(
        default=Interpolation.LINEAR, description="Interpolation of baked keys"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    structured: bool = Field(default=False, description="Emit JSON log lines")
    filename: str | None = Field(default=None, description="Log file; stdout when unset")


class EngineConfig(BaseModel):
    """Root configuration of the curve engine."""

    model_config = ConfigDict(extra="ignore")  # Forward compatibility

    smoothing: SmoothingConfig = SmoothingConfig()
    simplify: SimplifyConfig = SimplifyConfig()
    soft_selection: SoftSelectionConfig = SoftSelectionConfig()
    tangents: TangentConfig = TangentConfig()
    euler: EulerConfig = EulerConfig()
    bake: BakeConfig = BakeConfig()
    logging: LoggingConfig = LoggingConfig()
