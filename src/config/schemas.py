"""Configuration schemas for the basketball event fusion pipeline."""

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field


class TeamConfig(BaseModel):
    """Team color clustering and assignment configuration."""

    n_iterations: int = Field(default=10, ge=1)  # Fixed k-means iterations
    min_centroid_distance: float = Field(default=50.0, ge=0.0)  # RGB units
    separation_step: float = Field(default=50.0, gt=0.0)
    torso_fraction: float = Field(default=0.6, gt=0.0, le=1.0)  # Upper part of bbox sampled
    max_sample_frames: int = Field(default=30, ge=1)
    seed: int | None = None  # None keeps k-means seeding non-deterministic
    clustering_timeout: float = Field(default=30.0, gt=0.0)  # seconds
    fallback_frame_width: int = Field(default=1920, gt=0)


class IdentityConfig(BaseModel):
    """Player identity tracking configuration."""

    enabled: bool = True
    ocr_min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    ocr_gpu: bool = False
    reid_window: float = 5.0  # seconds since a track was last seen
    reid_threshold: float = 0.6
    color_weight: float = 0.7
    height_weight: float = 0.3
    color_normalizer: float = 255.0
    height_normalizer: float = 100.0  # pixels
    reid_confidence: float = 0.5
    unknown_confidence: float = 0.3
    max_age: float = 10.0  # seconds before a track is dropped
    cleanup_interval: int = Field(default=30, ge=1)  # processed frames
    merge_distance: float = 50.0  # pixels between bbox centers


class FusionConfig(BaseModel):
    """Event fusion configuration."""

    sampling_fps: float = Field(default=30.0, gt=0.0)  # used when inputs omit fps
    shot_window: float = 1.0  # seconds
    ball_proximity: float = 150.0  # pixels
    min_arm_elevation: float = 0.05  # fraction of bbox height
    min_upward_motion: float = 8.0  # pixels between sampled frames
    max_ball_gap: float | None = Field(default=None, gt=0.0)  # seconds; None compares every sample pair
    ball_only_max_confidence: float = Field(default=0.75, le=0.75)
    score_attribution_window: float = 0.5
    missed_shot_window: float = 2.0
    rebound_window: float = 2.0
    visual_score_window: float = 2.0
    min_ocr_confidence: float = 0.5
    min_event_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    dedup_window: float | None = None  # None disables cross-source deduplication
    detect_actions: bool = True
    estimate_three_pointers: bool = True
    max_fallback_events: int = Field(default=8, ge=1, le=8)
    fallback_spacing: float = Field(default=20.0, gt=0.0)  # seconds of video per fallback event
    fallback_confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    ball_detection_timeout: float = Field(default=20.0, gt=0.0)  # seconds


class HighlightConfig(BaseModel):
    """Highlight clip synthesis configuration."""

    before_buffer: float = Field(default=3.0, ge=0.0)  # seconds before the event
    after_buffer: float = Field(default=2.0, ge=0.0)  # seconds after the event
    min_duration: float = Field(default=10.0, gt=0.0)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    merge_overlapping: bool = False
    merge_gap: float = Field(default=1.0, ge=0.0)
    top_n: int | None = None


class ExportConfig(BaseModel):
    """Export format configuration."""

    events_format: Literal["jsonl", "csv", "parquet"] = "jsonl"
    save_teams: bool = True
    save_tracks: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: str | None = None
    show_path: bool = False


class PipelineConfig(BaseModel):
    """Main pipeline configuration."""

    team: TeamConfig = Field(default_factory=TeamConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
    fusion: FusionConfig = Field(default_factory=FusionConfig)
    highlights: HighlightConfig = Field(default_factory=HighlightConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    output_dir: str = "runs"

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "PipelineConfig":
        """Load configuration from YAML file."""
        with open(yaml_path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, yaml_path: str | Path) -> None:
        """Save configuration to YAML file."""
        with open(yaml_path, "w") as f:
            yaml.safe_dump(self.model_dump(), f, default_flow_style=False)
