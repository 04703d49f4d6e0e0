# darts_pose_engine/throw_engine/visualization/visualizer.py
import cv2
import numpy as np
from typing import Optional, Tuple
from ..common.enums import AngleQuality, JointName
from ..common.models import ARM_JOINTS, PoseModel
from ..processing.angle_sampler import angle_quality

J = JointName

SKELETON_CONNECTIONS: Tuple[Tuple[JointName, JointName], ...] = (
    # Torso
    (J.NECK, J.ROOT),
    (J.NECK, J.RIGHT_SHOULDER),
    (J.NECK, J.LEFT_SHOULDER),
    # Arms
    (J.RIGHT_SHOULDER, J.RIGHT_ELBOW),
    (J.RIGHT_ELBOW, J.RIGHT_WRIST),
    (J.LEFT_SHOULDER, J.LEFT_ELBOW),
    (J.LEFT_ELBOW, J.LEFT_WRIST),
    # Legs
    (J.ROOT, J.RIGHT_HIP),
    (J.RIGHT_HIP, J.RIGHT_KNEE),
    (J.RIGHT_KNEE, J.RIGHT_ANKLE),
    (J.ROOT, J.LEFT_HIP),
    (J.LEFT_HIP, J.LEFT_KNEE),
    (J.LEFT_KNEE, J.LEFT_ANKLE),
    # Head
    (J.NOSE, J.NECK),
    (J.NOSE, J.RIGHT_EYE),
    (J.NOSE, J.LEFT_EYE),
    (J.RIGHT_EYE, J.RIGHT_EAR),
    (J.LEFT_EYE, J.LEFT_EAR),
)

KEY_JOINTS = {J.RIGHT_SHOULDER, J.RIGHT_ELBOW, J.RIGHT_WRIST,
              J.LEFT_SHOULDER, J.LEFT_ELBOW, J.LEFT_WRIST}

# BGR
RED = (60, 60, 230)
GREEN = (110, 200, 60)
AMBER = (40, 180, 250)
GREY = (170, 170, 170)
WHITE = (240, 240, 240)

QUALITY_COLORS = {AngleQuality.GOOD: GREEN, AngleQuality.FAIR: AMBER, AngleQuality.POOR: RED}

def format_elapsed(seconds: float) -> str:
    seconds = int(seconds)
    return f"{seconds // 60}:{seconds % 60:02d}"

class Visualizer:
    """Draws the skeleton overlay and the practice HUD onto BGR frames."""

    def __init__(self, config: dict):
        self.config = config
        self.font = cv2.FONT_HERSHEY_SIMPLEX

    def render(self, frame: np.ndarray, pose: Optional[PoseModel], is_right_handed: bool = True,
               hud: Optional[dict] = None) -> np.ndarray:
        """Renders the pose and an optional HUD onto a copy of the frame."""
        output_frame = frame.copy()

        if pose is not None and self.config.get('draw_landmarks', True):
            self._draw_skeleton(output_frame, pose, is_right_handed)
            self._draw_joints(output_frame, pose, is_right_handed)

        if hud is not None and self.config.get('draw_hud', True):
            self._draw_hud(output_frame, pose, is_right_handed, hud)

        return output_frame

    @staticmethod
    def _to_pixels(point, shape) -> Tuple[int, int]:
        h, w = shape[:2]
        return int(point[0] * w), int(point[1] * h)

    def _draw_skeleton(self, frame: np.ndarray, pose: PoseModel, is_right_handed: bool):
        arm = set(ARM_JOINTS[is_right_handed])
        for a, b in SKELETON_CONNECTIONS:
            start, end = pose.point(a), pose.point(b)
            if start is None or end is None:
                continue
            color = RED if a in arm and b in arm else GREEN
            cv2.line(frame, self._to_pixels(start, frame.shape), self._to_pixels(end, frame.shape),
                     color, 3, cv2.LINE_AA)

    def _draw_joints(self, frame: np.ndarray, pose: PoseModel, is_right_handed: bool):
        arm = set(ARM_JOINTS[is_right_handed])
        for joint, point in pose.joints.items():
            center = self._to_pixels(point, frame.shape)
            radius = 8 if joint in KEY_JOINTS else 5
            color = RED if joint in arm else GREEN
            if joint in KEY_JOINTS:
                overlay = frame.copy()
                cv2.circle(overlay, center, radius + 4, color, -1, cv2.LINE_AA)
                cv2.addWeighted(overlay, 0.3, frame, 0.7, 0, dst=frame)
            cv2.circle(frame, center, radius, color, -1, cv2.LINE_AA)
            cv2.circle(frame, center, max(1, radius // 2), WHITE, -1, cv2.LINE_AA)

    def _draw_hud(self, frame: np.ndarray, pose: Optional[PoseModel], is_right_handed: bool, hud: dict):
        """Draws the angle, confidence and recording state in the top-left corner."""
        angle = pose.active_arm_angle(is_right_handed) if pose is not None else None
        angle_text = f"Elbow: {int(angle)} deg" if angle is not None else "Elbow: -- deg"
        angle_color = QUALITY_COLORS[angle_quality(angle)] if angle is not None else GREY
        confidence_text = f"Confidence: {int(pose.confidence * 100)}%" if pose is not None else "Confidence: --%"

        hud_elements = [
            (angle_text, angle_color),
            (confidence_text, WHITE),
            (f"Hand: {'Right' if is_right_handed else 'Left'}", WHITE),
        ]
        if 'throws' in hud:
            hud_elements.append((f"Throws: {hud['throws']}", WHITE))
        if 'camera' in hud:
            hud_elements.append((f"Camera: {hud['camera']}", GREY))
        if 'position' in hud and 'duration' in hud:
            hud_elements.append((f"{format_elapsed(hud['position'])} / {format_elapsed(hud['duration'])}", WHITE))

        for i, (text, color) in enumerate(hud_elements):
            cv2.putText(frame, text, (10, 30 + i * 30), self.font, 0.7, color, 2, cv2.LINE_AA)

        if hud.get('recording'):
            h, w = frame.shape[:2]
            cv2.circle(frame, (w - 120, 28), 9, RED, -1, cv2.LINE_AA)
            cv2.putText(frame, format_elapsed(hud.get('elapsed', 0.0)), (w - 100, 36),
                        self.font, 0.7, RED, 2, cv2.LINE_AA)
