# darts_pose_engine/throw_engine/processing/geometry.py
import numpy as np
from typing import Optional, Sequence

def compute_angle(shoulder: Sequence[float], elbow: Sequence[float], wrist: Sequence[float]) -> Optional[float]:
    """
    Returns the angle at the elbow, in degrees, between the upper arm and forearm.

    Points may be normalized or in pixels; the result is scale-invariant.
    Returns None when the elbow coincides with the shoulder or the wrist.
    """
    e = np.asarray(elbow, dtype=float)
    v1 = np.asarray(shoulder, dtype=float) - e
    v2 = np.asarray(wrist, dtype=float) - e

    mag1 = np.linalg.norm(v1)
    mag2 = np.linalg.norm(v2)
    if mag1 == 0 or mag2 == 0:
        return None

    cos_angle = np.clip(np.dot(v1, v2) / (mag1 * mag2), -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_angle)))
