# darts_pose_engine/throw_engine/processing/pose_processor.py
import cv2
import time
import logging
import numpy as np
from typing import Optional
from ..common.models import BodyObservation, FrameMetadata, JointPoint, PoseModel, PoseResult
from ..common.enums import CoordinateOrigin, JointName, PoseState
from ..common.errors import InferenceError

logger = logging.getLogger(__name__)

# MediaPipe Pose landmark indices for the joints it reports directly.
MEDIAPIPE_JOINTS = {
    JointName.NOSE: 0,
    JointName.LEFT_EYE: 2,
    JointName.RIGHT_EYE: 5,
    JointName.LEFT_EAR: 7,
    JointName.RIGHT_EAR: 8,
    JointName.LEFT_SHOULDER: 11,
    JointName.RIGHT_SHOULDER: 12,
    JointName.LEFT_ELBOW: 13,
    JointName.RIGHT_ELBOW: 14,
    JointName.LEFT_WRIST: 15,
    JointName.RIGHT_WRIST: 16,
    JointName.LEFT_HIP: 23,
    JointName.RIGHT_HIP: 24,
    JointName.LEFT_KNEE: 25,
    JointName.RIGHT_KNEE: 26,
    JointName.LEFT_ANKLE: 27,
    JointName.RIGHT_ANKLE: 28,
}

# Joints MediaPipe lacks, synthesized as the midpoint of a landmark pair.
MIDPOINT_JOINTS = {
    JointName.NECK: (JointName.LEFT_SHOULDER, JointName.RIGHT_SHOULDER),
    JointName.ROOT: (JointName.LEFT_HIP, JointName.RIGHT_HIP),
}

def landmarks_to_observation(landmarks: np.ndarray) -> BodyObservation:
    """
    Builds a BodyObservation from an (N, 4) array of MediaPipe landmarks
    (x, y, z, visibility). MediaPipe already uses a top-left origin.
    """
    points = {}
    for joint, idx in MEDIAPIPE_JOINTS.items():
        x, y, _, visibility = landmarks[idx]
        points[joint] = JointPoint(x=float(x), y=float(y), confidence=float(visibility))

    for joint, (a, b) in MIDPOINT_JOINTS.items():
        pa, pb = points[a], points[b]
        points[joint] = JointPoint(
            x=(pa.x + pb.x) / 2,
            y=(pa.y + pb.y) / 2,
            confidence=min(pa.confidence, pb.confidence),
        )

    return BodyObservation(
        points=points,
        confidence=float(np.mean(landmarks[:, 3])),
        origin=CoordinateOrigin.TOP_LEFT,
    )

class PoseProcessor:
    """Runs MediaPipe pose estimation on a single BGR frame and filters the joints."""

    def __init__(self, config: dict, static_image_mode: bool = False):
        self.config = config
        self.threshold = config.get('joint_confidence_threshold', 0.3)

        try:
            import mediapipe as mp
        except ImportError as e:
            raise RuntimeError("MediaPipe is required for pose estimation.") from e

        self.mp_pose = mp.solutions.pose
        self.pose = self.mp_pose.Pose(
            static_image_mode=static_image_mode,
            model_complexity=config['model_complexity'],
            smooth_landmarks=not static_image_mode,
            enable_segmentation=False,
            min_detection_confidence=config['min_detection_confidence'],
            min_tracking_confidence=config['min_tracking_confidence']
        )
        logger.info("MediaPipe Pose ready (complexity=%d, static=%s).",
                    config['model_complexity'], static_image_mode)

    def detect(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Returns the raw (33, 4) landmark array, or None when no body is found."""
        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        frame_rgb.flags.writeable = False # Performance optimization
        try:
            results = self.pose.process(frame_rgb)
        except Exception as e:
            raise InferenceError(f"Pose estimation failed: {e}") from e

        if not results.pose_landmarks:
            return None
        return np.array([[lm.x, lm.y, lm.z, lm.visibility] for lm in results.pose_landmarks.landmark])

    def process_frame(self, frame: np.ndarray, metadata: FrameMetadata) -> PoseResult:
        """Processes a single frame into a PoseResult carrying the filtered PoseModel."""
        start_time = time.perf_counter()
        landmarks = self.detect(frame)
        processing_time_ms = (time.perf_counter() - start_time) * 1000

        if landmarks is None:
            return PoseResult(
                timestamp=metadata.timestamp,
                frame_id=metadata.frame_id,
                processing_time_ms=processing_time_ms,
                status=PoseState.SEARCHING,
            )

        observation = landmarks_to_observation(landmarks)
        return PoseResult(
            timestamp=metadata.timestamp,
            frame_id=metadata.frame_id,
            processing_time_ms=processing_time_ms,
            status=PoseState.TRACKING,
            pose=PoseModel.from_observation(observation, self.threshold),
            landmarks=landmarks,
        )

    def close(self):
        self.pose.close()
