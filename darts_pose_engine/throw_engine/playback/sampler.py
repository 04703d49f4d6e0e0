# darts_pose_engine/throw_engine/playback/sampler.py
import logging
from typing import Optional
from ..common.models import PoseModel

logger = logging.getLogger(__name__)

class PlaybackFrameSampler:
    """
    Feeds frames of a stored recording to a pose estimator as playback advances.

    Only every Nth clock tick attempts an extraction, and only when the decoder
    has a frame that has not been handed out and no inference is outstanding.
    A failed inference clears the overlay instead of interrupting playback.
    """

    def __init__(self, decoder, estimator, every_nth_tick: int = 3):
        self.decoder = decoder
        self.estimator = estimator
        self.every_nth_tick = max(1, int(every_nth_tick))
        self.enabled = True
        self.current_pose: Optional[PoseModel] = None
        self.extractions = 0
        self._tick_count = 0
        estimator.add_pose_listener(self._on_pose)
        estimator.add_failure_listener(self._on_failure)

    def on_tick(self, position: float) -> bool:
        """Playback clock callback. Returns True if a frame was handed to the estimator."""
        self._tick_count += 1
        if not self.enabled or self._tick_count % self.every_nth_tick != 0:
            return False
        if self.estimator.is_processing:
            return False
        if not self.decoder.has_new_frame(position):
            return False

        frame, metadata = self.decoder.copy_frame(position)
        if frame is None:
            return False
        self.extractions += 1
        return self.estimator.submit_frame(frame, metadata)

    def set_enabled(self, enabled: bool):
        self.enabled = enabled
        if not enabled:
            self.current_pose = None

    def reset(self):
        self._tick_count = 0
        self.current_pose = None

    def _on_pose(self, pose: Optional[PoseModel]):
        self.current_pose = pose if self.enabled else None

    def _on_failure(self, error: Exception):
        logger.debug("Playback inference failed, clearing overlay: %s", error)
        self.current_pose = None
