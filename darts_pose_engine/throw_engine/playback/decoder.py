# darts_pose_engine/throw_engine/playback/decoder.py
import cv2
import logging
import threading
import numpy as np
from typing import Callable, Optional, Tuple
from ..common.models import FrameMetadata

logger = logging.getLogger(__name__)

class FrameDecoder:
    """Random-access frame reader over a stored recording, addressed by playback position in seconds."""

    def __init__(self, video_path, capture_factory: Callable = cv2.VideoCapture):
        self.video_path = str(video_path)
        self._cap = capture_factory(self.video_path)
        if not self._cap.isOpened():
            raise IOError(f"Cannot open video: {self.video_path}")

        self.fps = self._cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.frame_count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._lock = threading.Lock()
        self._next_index = 0
        self._last_index: Optional[int] = None
        self._last_frame: Optional[np.ndarray] = None

    @property
    def duration(self) -> float:
        return self.frame_count / self.fps if self.fps > 0 else 0.0

    def frame_index(self, position: float) -> int:
        idx = int(position * self.fps + 1e-6)
        return min(max(idx, 0), max(self.frame_count - 1, 0))

    def has_new_frame(self, position: float) -> bool:
        """True if the frame displayed at `position` has not been handed out yet."""
        return self.frame_count > 0 and self.frame_index(position) != self._last_index

    def copy_frame(self, position: float) -> Tuple[Optional[np.ndarray], Optional[FrameMetadata]]:
        """Decodes the exact frame for `position`, seeking only when playback is not sequential."""
        idx = self.frame_index(position)
        with self._lock:
            if idx != self._next_index:
                self._cap.set(cv2.CAP_PROP_POS_FRAMES, idx)
            ok, frame = self._cap.read()
            if not ok or frame is None:
                self._next_index = -1 # Force a seek on the next read
                return None, None
            self._next_index = idx + 1
            self._last_index = idx
            self._last_frame = frame

        metadata = FrameMetadata(
            frame_id=idx,
            timestamp=idx / self.fps,
            source_resolution=(frame.shape[1], frame.shape[0]),
        )
        return frame.copy(), metadata

    def frame_at(self, position: float) -> Optional[np.ndarray]:
        """Frame for display: reuses the last decoded frame while the index is unchanged."""
        if not self.has_new_frame(position) and self._last_frame is not None:
            return self._last_frame
        frame, _ = self.copy_frame(position)
        return frame if frame is not None else self._last_frame

    def close(self):
        self._cap.release()
