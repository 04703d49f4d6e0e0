# darts_pose_engine/throw_engine/playback/review.py
import logging
import numpy as np
from typing import Optional
from ..common.models import PoseModel
from ..processing.pose_estimator import PoseEstimator
from .clock import PlaybackClock
from .decoder import FrameDecoder
from .sampler import PlaybackFrameSampler

logger = logging.getLogger(__name__)

class PlaybackReview:
    """Plays back a stored recording and keeps a pose overlay in sync with playback time."""

    def __init__(self, video_path, config: dict, processor, dispatcher=None, autoplay: bool = True):
        self.config = config
        self.skip_seconds = config.get('skip_seconds', 10)
        # Separate readers so display decoding never consumes the sampler's frames.
        self.display = FrameDecoder(video_path)
        self._sample_decoder = FrameDecoder(video_path)
        self.estimator = PoseEstimator(processor, every_nth_frame=1, dispatcher=dispatcher, name="playback")
        self.sampler = PlaybackFrameSampler(self._sample_decoder, self.estimator,
                                            config.get('sample_every_nth_tick', 3))
        self.clock = PlaybackClock(self.display.duration, config.get('clock_hz', 30))
        self.clock.add_periodic_observer(self.sampler.on_tick)
        self.clock.start()
        if autoplay:
            self.clock.play()
        logger.info("Reviewing %s (%.1fs).", video_path, self.display.duration)

    @property
    def duration(self) -> float:
        return self.display.duration

    @property
    def position(self) -> float:
        return self.clock.position

    @property
    def current_pose(self) -> Optional[PoseModel]:
        return self.sampler.current_pose

    @property
    def overlay_enabled(self) -> bool:
        return self.sampler.enabled

    def current_frame(self) -> Optional[np.ndarray]:
        return self.display.frame_at(self.clock.position)

    def toggle_playback(self):
        self.clock.toggle()

    def toggle_overlay(self):
        self.sampler.set_enabled(not self.sampler.enabled)

    def skip_forward(self):
        self.clock.seek_by(self.skip_seconds)

    def skip_backward(self):
        self.clock.seek_by(-self.skip_seconds)

    def seek_to_progress(self, progress: float):
        if self.duration > 0:
            self.clock.seek(self.duration * progress)

    def close(self):
        """Stops the clock before releasing the estimator and decoders."""
        self.clock.stop()
        self.estimator.close()
        self._sample_decoder.close()
        self.display.close()
