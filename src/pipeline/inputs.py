"""Detection bundle schema: JSON detection streams for one video."""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from src.events.fusion import FusionInputs
from src.vision.detect.types import (
    BallDetection,
    BallFrame,
    FrameDetectionSet,
    HoopDetection,
    HoopRegion,
    Keypoint,
    PersonDetection,
    Pose,
    PoseFrame,
    ScoreboardRead,
    ShotCandidate,
)

logger = logging.getLogger(__name__)

BBoxModel = tuple[float, float, float, float]


def _valid_bbox(bbox: BBoxModel) -> bool:
    return bbox[2] > 0 and bbox[3] > 0


class VideoInfo(BaseModel):
    """Video properties needed by the core."""

    duration: float = Field(ge=0.0)  # seconds
    fps: float | None = Field(default=None, gt=0.0)  # frame rate of frame_index values
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)


class PersonModel(BaseModel):
    bbox: BBoxModel
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    team_id: str | None = None
    player_id: str | None = None


class PersonFrameModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    detections: list[PersonModel] = Field(default_factory=list)


class BallModel(BaseModel):
    bbox: BBoxModel
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class BallFrameModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    detections: list[BallModel] = Field(default_factory=list)


class PoseModel(BaseModel):
    keypoints: list[tuple[float, float, float]]  # (x, y, confidence) in COCO order
    bbox: BBoxModel
    team_id: str | None = None
    player_id: str | None = None


class PoseFrameModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    poses: list[PoseModel] = Field(default_factory=list)


class ShotCandidateModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    bbox: BBoxModel
    confidence: float = Field(ge=0.0, le=1.0)
    team_id: str | None = None
    player_id: str | None = None


class ScoreboardReadModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    text: str
    confidence: float = Field(ge=0.0, le=1.0)


class HoopRegionModel(BaseModel):
    x: float
    y: float
    width: float = Field(gt=0.0)
    height: float = Field(gt=0.0)
    confidence: float = Field(ge=0.0, le=1.0)


class HoopDetectionModel(BaseModel):
    frame_index: int = Field(ge=0)
    timestamp: float = Field(ge=0.0)
    region: HoopRegionModel | None = None


class DetectionBundle(BaseModel):
    """All upstream detection streams for one video. Every stream is optional."""

    video: VideoInfo
    person_frames: list[PersonFrameModel] = Field(default_factory=list)
    ball_frames: list[BallFrameModel] = Field(default_factory=list)
    pose_frames: list[PoseFrameModel] = Field(default_factory=list)
    shot_candidates: list[ShotCandidateModel] = Field(default_factory=list)
    scoreboard_reads: list[ScoreboardReadModel] = Field(default_factory=list)
    hoop_detections: list[HoopDetectionModel] = Field(default_factory=list)

    @classmethod
    def from_json(cls, json_path: str | Path) -> "DetectionBundle":
        """Load and validate a bundle from a JSON file."""
        with open(json_path, "r") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def person_frame_sets(self) -> list[FrameDetectionSet]:
        """Person frames as detection sets; zero-size boxes are skipped."""
        frame_sets = []
        skipped = 0
        for frame in self.person_frames:
            detections = []
            for person in frame.detections:
                if not _valid_bbox(person.bbox):
                    skipped += 1
                    continue
                detections.append(
                    PersonDetection(
                        bbox=person.bbox,
                        confidence=person.confidence,
                        team_id=person.team_id,
                        player_id=person.player_id,
                    )
                )
            frame_sets.append(
                FrameDetectionSet(
                    frame_index=frame.frame_index,
                    timestamp=frame.timestamp,
                    detections=detections,
                    width=self.video.width,
                    height=self.video.height,
                )
            )

        if skipped:
            logger.warning("Skipped %d person detections with empty boxes", skipped)
        return frame_sets

    def to_fusion_inputs(self, person_frames: list[FrameDetectionSet] | None = None) -> FusionInputs:
        """
        Convert the bundle to fusion inputs.

        Args:
            person_frames: Enriched person frames to use instead of the bundle's own

        Returns:
            FusionInputs for the event fusion engine
        """
        return FusionInputs(
            duration=self.video.duration,
            person_frames=person_frames if person_frames is not None else self.person_frame_sets(),
            ball_frames=[
                BallFrame(
                    frame_index=f.frame_index,
                    timestamp=f.timestamp,
                    detections=[
                        BallDetection(bbox=b.bbox, confidence=b.confidence)
                        for b in f.detections
                        if _valid_bbox(b.bbox)
                    ],
                )
                for f in self.ball_frames
            ],
            pose_frames=[
                PoseFrame(
                    frame_index=f.frame_index,
                    timestamp=f.timestamp,
                    poses=[
                        Pose(
                            keypoints=[Keypoint(x=x, y=y, confidence=c) for x, y, c in p.keypoints],
                            bbox=p.bbox,
                            team_id=p.team_id,
                            player_id=p.player_id,
                        )
                        for p in f.poses
                        if _valid_bbox(p.bbox)
                    ],
                    width=self.video.width,
                    height=self.video.height,
                )
                for f in self.pose_frames
            ],
            shot_candidates=[ShotCandidate(**c.model_dump()) for c in self.shot_candidates],
            scoreboard_reads=[ScoreboardRead(**r.model_dump()) for r in self.scoreboard_reads],
            hoop_detections=[
                HoopDetection(
                    frame_index=h.frame_index,
                    timestamp=h.timestamp,
                    region=HoopRegion(**h.region.model_dump()) if h.region else None,
                )
                for h in self.hoop_detections
            ],
            frame_width=self.video.width,
            frame_height=self.video.height,
            fps=self.video.fps,
        )
