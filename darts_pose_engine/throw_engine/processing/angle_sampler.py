# darts_pose_engine/throw_engine/processing/angle_sampler.py
from typing import Optional
from ..common.enums import AngleQuality
from ..common.models import PoseModel

def angle_quality(angle: float) -> AngleQuality:
    if 85 <= angle <= 115:
        return AngleQuality.GOOD
    if 70 <= angle <= 130:
        return AngleQuality.FAIR
    return AngleQuality.POOR

class AngleSampler:
    """Running mean of throwing-arm angles, counted only while a recording is armed."""

    def __init__(self, is_right_handed: bool = True):
        self.is_right_handed = is_right_handed
        self.latest_angle: Optional[float] = None
        self._total = 0.0
        self._count = 0

    def reset(self):
        self._total = 0.0
        self._count = 0

    def add_pose(self, pose: Optional[PoseModel], armed: bool) -> Optional[float]:
        angle = pose.active_arm_angle(self.is_right_handed) if pose is not None else None
        self.latest_angle = angle
        if armed and angle is not None:
            self.add_sample(angle)
        return angle

    def add_sample(self, angle: float):
        self._total += angle
        self._count += 1

    @property
    def count(self) -> int:
        return self._count

    def average(self) -> Optional[float]:
        if self._count == 0:
            return None
        return self._total / self._count
