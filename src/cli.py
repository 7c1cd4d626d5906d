"""Command-line interface for basketball event fusion and highlights."""

import logging
from pathlib import Path
from typing import Any, Callable

import click
from rich.console import Console
from rich.table import Table

from src.config.log import setup_logging
from src.config.schemas import PipelineConfig
from src.events.fusion import EventFusionEngine
from src.events.scoring import detect_hoop_region
from src.highlights.synthesizer import HighlightSynthesizer
from src.pipeline.base import Pipeline, PipelineStage, save_json, save_records
from src.pipeline.inputs import DetectionBundle
from src.pipeline.timeouts import StageTimeoutError, call_with_timeout
from src.video.reader import VideoReader
from src.vision.detect.types import BallFrame, HoopDetection
from src.vision.identity.ocr import EasyOCRDigitRecognizer, JerseyNumberReader
from src.vision.identity.tracker import PlayerIdentityTracker, merge_identity_detections
from src.vision.team.clustering import TeamAssigner, TeamClusterer, default_team_clusters
from src.vision.team.colors import collect_color_samples

logger = logging.getLogger(__name__)


class IngestStage(PipelineStage):
    """Stage A: Load detection streams and, when given, the video."""

    def __init__(self, config: PipelineConfig):
        super().__init__("ingest", config)

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """Validate the detection bundle and read the frames it references."""
        bundle = DetectionBundle.from_json(context["detections_path"])
        context["degraded"] = []
        context["frames"] = None

        video_path = context.get("video_path")
        if video_path:
            with VideoReader(video_path) as reader:
                metadata = reader.metadata
                bundle.video.width = bundle.video.width or metadata.width
                bundle.video.height = bundle.video.height or metadata.height
                bundle.video.fps = bundle.video.fps or metadata.fps or None
                if bundle.video.duration <= 0:
                    bundle.video.duration = metadata.duration

                frame_indices = [f.frame_index for f in bundle.person_frames]
                context["frames"] = reader.read_frames(frame_indices)
                context["video_metadata"] = metadata.to_dict()

            self.console.print(f"Video: {Path(video_path).name}")
            self.console.print(f"  FPS: {metadata.fps:.2f}")
            self.console.print(f"  Resolution: {metadata.width}x{metadata.height}")
            self.console.print(f"  Frames loaded: {len(context['frames'])}")
        else:
            self.console.print("No video given; pixel-based steps will be skipped")

        self.console.print(f"  Duration: {bundle.video.duration:.2f}s")
        self.console.print(f"  Person frames: {len(bundle.person_frames)}")
        self.console.print(f"  Ball frames: {len(bundle.ball_frames)}")
        self.console.print(f"  Pose frames: {len(bundle.pose_frames)}")

        context["bundle"] = bundle
        context["person_frames"] = bundle.person_frame_sets()
        return context


class TeamAssignmentStage(PipelineStage):
    """Stage B: Team identification from jersey colors."""

    def __init__(self, config: PipelineConfig):
        super().__init__("team_assignment", config)

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """Cluster torso colors and assign every person detection to a team."""
        team_config = self.config.team
        person_frames = context["person_frames"]
        frames = context.get("frames") or {}
        with_pixels = [f for f in person_frames if f.frame_index in frames]
        without_pixels = [f for f in person_frames if f.frame_index not in frames]

        clusters = []
        if with_pixels:
            samples = collect_color_samples(
                with_pixels,
                frames,
                max_frames=team_config.max_sample_frames,
                torso_fraction=team_config.torso_fraction,
            )
            self.console.print(f"Collected {len(samples)} jersey color samples")

            clusterer = TeamClusterer(
                n_iterations=team_config.n_iterations,
                min_centroid_distance=team_config.min_centroid_distance,
                separation_step=team_config.separation_step,
                seed=team_config.seed,
            )
            try:
                clusters = call_with_timeout(
                    clusterer.fit, team_config.clustering_timeout, samples, stage="team clustering"
                )
            except StageTimeoutError:
                context["degraded"].append("team_clustering_timeout")

        if not clusters:
            logger.warning("Team clustering unavailable; assigning teams by court position")
            context["degraded"].append("positional_team_assignment")

        assigner = TeamAssigner(
            clusters,
            torso_fraction=team_config.torso_fraction,
            fallback_frame_width=team_config.fallback_frame_width,
        )
        assigned = assigner.assign(with_pixels, frames) + assigner.assign(without_pixels)
        self.console.print(f"Assigned teams to {assigned} detections")

        reported = clusters or default_team_clusters()
        team_info = {
            "method": "color" if clusters else "position",
            "teams": [cluster.to_dict() for cluster in reported],
        }
        if self.config.export.save_teams:
            output_path = save_json(team_info, Path(context["output_dir"]) / "teams.json")
            context["outputs"]["teams"] = str(output_path)
            self.console.print(f"Saved team assignments to: {output_path}")

        context["team_info"] = team_info
        return context


class IdentityStage(PipelineStage):
    """Stage C: Player identity from jersey numbers and appearance."""

    def __init__(self, config: PipelineConfig, jersey_reader: JerseyNumberReader | None = None):
        super().__init__("identity", config)
        self.jersey_reader = jersey_reader

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """Resolve player ids and merge them into the person detections."""
        identity_config = self.config.identity
        frames = context.get("frames") or {}
        if not identity_config.enabled or not frames:
            self.console.print("Skipping identity tracking (disabled or no video)")
            return context

        jersey_reader = self.jersey_reader or JerseyNumberReader(
            EasyOCRDigitRecognizer(gpu=identity_config.ocr_gpu),
            min_confidence=identity_config.ocr_min_confidence,
        )
        tracker = PlayerIdentityTracker(jersey_reader, identity_config)

        person_frames = context["person_frames"]
        with_pixels = [f for f in person_frames if f.frame_index in frames]
        identity_frames = tracker.process(with_pixels, frames)
        context["person_frames"] = merge_identity_detections(
            person_frames, identity_frames, max_distance=identity_config.merge_distance
        )

        tracks = tracker.tracked_players()
        self.console.print(f"Tracked {len(tracks)} players")
        if self.config.export.save_tracks:
            output_path = save_json(
                [track.to_dict() for track in tracks], Path(context["output_dir"]) / "tracks.json"
            )
            context["outputs"]["tracks"] = str(output_path)
            self.console.print(f"Saved player tracks to: {output_path}")

        return context


class FusionStage(PipelineStage):
    """Stage D: Fuse detection streams into game events."""

    def __init__(
        self,
        config: PipelineConfig,
        ball_detector: Callable[[], list[BallFrame]] | None = None,
    ):
        """
        Initialize fusion stage.

        Args:
            config: Pipeline configuration
            ball_detector: Source of ball detections, run under the ball detection
                timeout (default: the bundle's ball frames)
        """
        super().__init__("fusion", config)
        self.ball_detector = ball_detector

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """Run the fusion engine and export events."""
        fusion_config = self.config.fusion
        bundle: DetectionBundle = context["bundle"]
        inputs = bundle.to_fusion_inputs(context["person_frames"])

        ball_detector = self.ball_detector or (lambda: inputs.ball_frames)
        try:
            inputs.ball_frames = call_with_timeout(
                ball_detector, fusion_config.ball_detection_timeout, stage="ball detection"
            )
        except StageTimeoutError:
            context["degraded"].append("ball_detection_timeout")
            inputs.ball_frames = []

        frames = context.get("frames") or {}
        if not inputs.hoop_detections and frames:
            inputs.hoop_detections = self._scan_hoops(context["person_frames"], frames)

        engine = EventFusionEngine(fusion_config)
        events = engine.fuse(inputs)

        fallback_count = sum(1 for e in events if e.is_fallback)
        if fallback_count:
            context["degraded"].append("fallback_events")

        output_path = save_records(
            [e.to_dict() for e in events],
            Path(context["output_dir"]) / "events",
            self.config.export.events_format,
        )
        context["outputs"]["events"] = str(output_path)
        self.console.print(f"Detected {len(events)} events ({fallback_count} fallback)")
        self.console.print(f"Saved events to: {output_path}")

        context["events"] = events
        context["fusion_stage_counts"] = dict(engine.stage_counts)
        return context

    def _scan_hoops(self, person_frames, frames) -> list[HoopDetection]:
        """Hoop regions from the first sampled frames."""
        detections = []
        for frame_set in person_frames[: self.config.team.max_sample_frames]:
            frame = frames.get(frame_set.frame_index)
            if frame is None:
                continue
            detections.append(
                HoopDetection(
                    frame_index=frame_set.frame_index,
                    timestamp=frame_set.timestamp,
                    region=detect_hoop_region(frame),
                )
            )
        return detections


class HighlightStage(PipelineStage):
    """Stage E: Highlight clips around significant events."""

    def __init__(self, config: PipelineConfig):
        super().__init__("highlights", config)

    def run(self, context: dict[str, Any]) -> dict[str, Any]:
        """Build and save highlight clips."""
        bundle: DetectionBundle = context["bundle"]
        synthesizer = HighlightSynthesizer(self.config.highlights)
        clips = synthesizer.synthesize(context["events"], bundle.video.duration)

        output_path = save_json(
            [clip.to_dict() for clip in clips], Path(context["output_dir"]) / "highlights.json"
        )
        context["outputs"]["highlights"] = str(output_path)
        self.console.print(f"Saved {len(clips)} highlight clips to: {output_path}")

        context["highlights"] = clips
        return context


def build_pipeline(config: PipelineConfig) -> Pipeline:
    """Pipeline with the standard stages."""
    pipeline = Pipeline(config)
    pipeline.add_stage(IngestStage(config))
    pipeline.add_stage(TeamAssignmentStage(config))
    pipeline.add_stage(IdentityStage(config))
    pipeline.add_stage(FusionStage(config))
    pipeline.add_stage(HighlightStage(config))
    return pipeline


def print_summary(console: Console, result: dict[str, Any]) -> None:
    """Print event counts per type and team."""
    table = Table(title="Events")
    table.add_column("Type")
    table.add_column("teamA", justify="right")
    table.add_column("teamB", justify="right")
    table.add_column("unknown", justify="right")

    counts: dict[str, dict[str, int]] = {}
    for event in result.get("events", []):
        row = counts.setdefault(event.event_type, {})
        row[event.team_id] = row.get(event.team_id, 0) + 1

    for event_type, row in sorted(counts.items()):
        table.add_row(
            event_type,
            str(row.get("teamA", 0)),
            str(row.get("teamB", 0)),
            str(row.get("unknown", 0)),
        )
    console.print(table)

    if result.get("degraded"):
        console.print(f"[yellow]Degraded: {', '.join(result['degraded'])}[/yellow]")


@click.command()
@click.option(
    "--detections",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Path to the JSON detection bundle",
)
@click.option(
    "--video",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to the input video (enables color, OCR and hoop steps)",
)
@click.option(
    "--output",
    type=click.Path(file_okay=False),
    default=None,
    help="Output directory for results (default: config output_dir)",
)
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to configuration YAML file",
)
@click.option("--seed", type=int, default=None, help="Seed for team color clustering")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
def main(
    detections: str,
    video: str | None,
    output: str | None,
    config: str | None,
    seed: int | None,
    log_level: str | None,
):
    """Fuse basketball detections into game events and highlight clips."""
    console = Console()
    console.print("[bold green]Basketball Event Fusion[/bold green]\n")

    if config:
        pipeline_config = PipelineConfig.from_yaml(config)
        console.print(f"Loaded config from: {config}\n")
    else:
        pipeline_config = PipelineConfig()
        console.print("Using default configuration\n")

    if seed is not None:
        pipeline_config.team.seed = seed
    if log_level:
        pipeline_config.logging.level = log_level.upper()
    setup_logging(pipeline_config.logging)

    pipeline = build_pipeline(pipeline_config)
    output_dir = output or pipeline_config.output_dir

    try:
        result = pipeline.run(
            {"detections_path": detections, "video_path": video},
            output_dir=output_dir,
        )
    except Exception as e:
        console.print(f"\n[bold red]Error: {e}[/bold red]\n")
        raise

    print_summary(console, result)
    console.print(f"Output directory: {output_dir}")


if __name__ == "__main__":
    main()
