# darts_pose_engine/throw_engine/common/enums.py
from enum import Enum

class PoseState(str, Enum):
    """Defines the outcome of a single pose processing pass."""
    SEARCHING = "SEARCHING"
    TRACKING = "TRACKING"
    ERROR = "ERROR"

class RecorderState(str, Enum):
    """Lifecycle of the Recorder. Only ARMED accepts frames."""
    IDLE = "IDLE"
    ARMED = "ARMED"
    FINALIZING = "FINALIZING"

class CameraPosition(str, Enum):
    USER_FACING = "user_facing"
    WORLD_FACING = "world_facing"

    @property
    def other(self) -> "CameraPosition":
        if self is CameraPosition.USER_FACING:
            return CameraPosition.WORLD_FACING
        return CameraPosition.USER_FACING

class CoordinateOrigin(str, Enum):
    """Where (0, 0) sits in a backend's normalized coordinate space."""
    BOTTOM_LEFT = "BOTTOM_LEFT"
    TOP_LEFT = "TOP_LEFT"

class AngleQuality(str, Enum):
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"

class JointName(str, Enum):
    """The body joints tracked for each frame, in extraction order."""
    NOSE = "nose"
    NECK = "neck"
    ROOT = "root"
    RIGHT_SHOULDER = "right_shoulder"
    RIGHT_ELBOW = "right_elbow"
    RIGHT_WRIST = "right_wrist"
    LEFT_SHOULDER = "left_shoulder"
    LEFT_ELBOW = "left_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_HIP = "right_hip"
    RIGHT_KNEE = "right_knee"
    RIGHT_ANKLE = "right_ankle"
    LEFT_HIP = "left_hip"
    LEFT_KNEE = "left_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_EYE = "right_eye"
    LEFT_EYE = "left_eye"
    RIGHT_EAR = "right_ear"
    LEFT_EAR = "left_ear"

class LogLevel(str, Enum):
    """Defines logging levels accepted by configure_logging."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
