# darts_pose_engine/throw_engine/common/models.py
import uuid
import numpy as np
from datetime import date, datetime, timedelta
from pathlib import Path
from pydantic import BaseModel, Field
from typing import Optional, Tuple, Dict
from .enums import CameraPosition, CoordinateOrigin, JointName, PoseState
from ..processing.geometry import compute_angle

JOINT_CONFIDENCE_THRESHOLD = 0.3

# Extraction order for every observation.
TRACKED_JOINTS: Tuple[JointName, ...] = tuple(JointName)

ARM_JOINTS = {
    True: (JointName.RIGHT_SHOULDER, JointName.RIGHT_ELBOW, JointName.RIGHT_WRIST),
    False: (JointName.LEFT_SHOULDER, JointName.LEFT_ELBOW, JointName.LEFT_WRIST),
}

class FrameMetadata(BaseModel):
    """Metadata associated with a single camera or playback frame."""
    frame_id: int
    timestamp: float
    source_resolution: Tuple[int, int]
    camera_position: Optional[CameraPosition] = None

class JointPoint(BaseModel):
    """A raw joint reading as reported by a pose backend."""
    x: float
    y: float
    confidence: float

class BodyObservation(BaseModel):
    """Raw single-person output of a pose backend, before filtering."""
    points: Dict[JointName, JointPoint] = Field(default_factory=dict)
    confidence: float = 0.0
    origin: CoordinateOrigin = CoordinateOrigin.BOTTOM_LEFT

    def recognized_point(self, joint: JointName) -> Optional[JointPoint]:
        return self.points.get(joint)

class PoseModel(BaseModel):
    """
    One frame's detected joints in top-left-origin normalized coordinates.

    A joint missing from `joints` is unknown. It is never defaulted to a coordinate.
    """
    joints: Dict[JointName, Tuple[float, float]] = Field(default_factory=dict)
    confidence: float = 0.0

    class Config:
        frozen = True

    @classmethod
    def from_observation(cls, observation: BodyObservation,
                         threshold: float = JOINT_CONFIDENCE_THRESHOLD) -> "PoseModel":
        joints = {}
        for joint in TRACKED_JOINTS:
            point = observation.recognized_point(joint)
            if point is None or point.confidence <= threshold:
                continue
            y = 1.0 - point.y if observation.origin == CoordinateOrigin.BOTTOM_LEFT else point.y
            joints[joint] = (point.x, y)
        return cls(joints=joints, confidence=observation.confidence)

    def point(self, joint: JointName) -> Optional[Tuple[float, float]]:
        return self.joints.get(joint)

    def active_arm_angle(self, is_right_handed: bool = True) -> Optional[float]:
        """Elbow angle of the throwing arm, or None if any of its joints is unknown."""
        shoulder, elbow, wrist = (self.joints.get(j) for j in ARM_JOINTS[bool(is_right_handed)])
        if shoulder is None or elbow is None or wrist is None:
            return None
        return compute_angle(shoulder, elbow, wrist)

class PoseResult(BaseModel):
    """Encapsulates the complete result of a single frame's pose processing."""
    timestamp: float
    frame_id: int
    processing_time_ms: float
    status: PoseState
    pose: Optional[PoseModel] = None
    landmarks: Optional[np.ndarray] = None

    class Config:
        arbitrary_types_allowed = True

def generate_title(recorded_at: datetime) -> str:
    """'Practice - Feb 5, 3:05 PM' style title for an unnamed session."""
    hour = recorded_at.hour % 12 or 12
    meridiem = "AM" if recorded_at.hour < 12 else "PM"
    return (f"Practice - {recorded_at.strftime('%b')} {recorded_at.day}, "
            f"{hour}:{recorded_at.minute:02d} {meridiem}")

class RecordingSession(BaseModel):
    """A completed practice recording and the metrics gathered while it was armed."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str = ""
    recorded_at: datetime = Field(default_factory=datetime.now)
    duration: float = Field(default=0.0, ge=0)
    video_file_name: str
    throw_count: int = Field(default=0, ge=0)
    average_elbow_angle: Optional[float] = None
    best_accuracy: Optional[float] = None
    notes: Optional[str] = None
    thumbnail_data: Optional[bytes] = None
    is_analyzed: bool = False
    analysis_summary: Optional[str] = None

    def __init__(self, **data):
        if data.get("recorded_at") is None:
            data["recorded_at"] = datetime.now()
        if not data.get("title"):
            data["title"] = generate_title(data["recorded_at"])
        super().__init__(**data)

    def video_path(self, storage_root) -> Path:
        return Path(storage_root) / self.video_file_name

    @property
    def formatted_duration(self) -> str:
        seconds = int(self.duration)
        return f"{seconds // 60}:{seconds % 60:02d}"

    def formatted_date(self, today: Optional[date] = None) -> str:
        today = today or date.today()
        day = self.recorded_at.date()
        if day == today:
            return "Today"
        if day == today - timedelta(days=1):
            return "Yesterday"
        return f"{self.recorded_at.strftime('%b')} {self.recorded_at.day}"
