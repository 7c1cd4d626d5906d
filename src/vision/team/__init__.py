"""Team identification and jersey color analysis."""

from src.vision.team.colors import (
    ColorSample,
    collect_color_samples,
    color_distance,
    color_name,
    is_jersey_color,
    rgb_to_hex,
    rgb_to_hsv,
    sample_torso_colors,
)
from src.vision.team.clustering import (
    DEFAULT_TEAM_COLORS,
    TEAM_IDS,
    TeamAssigner,
    TeamCluster,
    TeamClusterer,
    default_team_clusters,
    resolve_centroid_collision,
)

__all__ = [
    "ColorSample",
    "collect_color_samples",
    "color_distance",
    "color_name",
    "is_jersey_color",
    "rgb_to_hex",
    "rgb_to_hsv",
    "sample_torso_colors",
    "DEFAULT_TEAM_COLORS",
    "TEAM_IDS",
    "TeamAssigner",
    "TeamCluster",
    "TeamClusterer",
    "default_team_clusters",
    "resolve_centroid_collision",
]
