# darts_pose_engine/throw_engine/session/tracker.py
import logging
from datetime import datetime
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
from ..common.errors import RecordingError, ThrowEngineError, WritingFailed
from ..common.models import PoseModel, RecordingSession
from ..processing.angle_sampler import AngleSampler
from ..recording.thumbnail import generate_thumbnail_async

logger = logging.getLogger(__name__)

class LiveTrackingSession:
    """
    Live practice loop: the camera feeds both the pose estimator and the
    recorder, arm angles are sampled while recording, and a finished
    recording becomes a saved RecordingSession.
    """

    def __init__(self, camera, estimator, recorder, store, dispatcher,
                 config: Optional[dict] = None, is_right_handed: bool = True):
        config = config or {}
        self.camera = camera
        self.estimator = estimator
        self.recorder = recorder
        self.store = store
        self.dispatcher = dispatcher
        self.angles = AngleSampler(is_right_handed)
        self.throw_count = 0
        self.elapsed = 0.0
        self.last_error: Optional[Exception] = None
        self.last_saved: Optional[RecordingSession] = None

        self.on_session_saved: Optional[Callable[[RecordingSession], None]] = None
        self.on_recording_failed: Optional[Callable[[Exception], None]] = None

        self._thumbnail_size = config.get('thumbnail_size', 300)
        self._thumbnail_quality = config.get('thumbnail_quality', 70)
        self._thumbnail_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="thumbnail")

        estimator.add_pose_listener(self._on_pose)
        recorder.on_duration_update = self._on_duration
        recorder.on_recording_finished = self._on_finished
        recorder.on_recording_failed = self._on_failed
        camera.add_consumer(estimator.submit_frame)
        camera.add_consumer(recorder.submit_frame)

    # --- Commands ---

    def start(self):
        return self.camera.start()

    def switch_camera(self):
        return self.camera.switch_camera()

    @property
    def is_right_handed(self) -> bool:
        return self.angles.is_right_handed

    def set_handedness(self, is_right_handed: bool):
        self.angles.is_right_handed = is_right_handed

    def toggle_handedness(self):
        self.set_handedness(not self.is_right_handed)

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording

    def start_recording(self) -> bool:
        try:
            self.recorder.arm()
        except RecordingError as e:
            self._on_failed(e)
            return False
        self.throw_count = 0
        self.elapsed = 0.0
        self.angles.reset()
        return True

    def stop_recording(self) -> bool:
        return self.recorder.disarm()

    def toggle_recording(self) -> bool:
        if self.recorder.is_recording:
            return self.stop_recording()
        return self.start_recording()

    def record_throw(self):
        if self.recorder.is_recording:
            self.throw_count += 1

    @property
    def current_pose(self) -> Optional[PoseModel]:
        return self.estimator.current_pose

    @property
    def current_angle(self) -> Optional[float]:
        return self.angles.latest_angle

    # --- Callbacks ---

    def _on_pose(self, pose: Optional[PoseModel]):
        self.angles.add_pose(pose, armed=self.recorder.is_recording)

    def _on_duration(self, duration: float):
        self.elapsed = duration

    def _on_finished(self, path: Path):
        duration = self.recorder.duration
        throws = self.throw_count
        average = self.angles.average()
        future = generate_thumbnail_async(self._thumbnail_pool, path,
                                          self._thumbnail_size, self._thumbnail_quality)
        future.add_done_callback(
            lambda f: self.dispatcher.dispatch(self._save_session, path, duration, throws, average,
                                               self._thumbnail_or_none(f, path))
        )

    @staticmethod
    def _thumbnail_or_none(future, path: Path) -> Optional[bytes]:
        error = future.exception()
        if error is not None:
            logger.warning("Thumbnail for %s failed: %s", path.name, error)
            return None
        return future.result()

    def _save_session(self, path: Path, duration: float, throws: int,
                      average: Optional[float], thumbnail: Optional[bytes]):
        session = RecordingSession(
            recorded_at=datetime.now(),
            duration=duration,
            video_file_name=path.name,
            throw_count=throws,
            average_elbow_angle=average,
            thumbnail_data=thumbnail,
        )
        try:
            self.store.save(session)
        except (OSError, ThrowEngineError) as e:
            path.unlink(missing_ok=True)
            self._on_failed(WritingFailed(f"could not store session: {e}"))
            return
        self.last_saved = session
        if self.on_session_saved:
            self.on_session_saved(session)

    def _on_failed(self, error: Exception):
        self.last_error = error
        logger.error("Recording failed: %s", error)
        if self.on_recording_failed:
            self.on_recording_failed(error)

    def close(self):
        """Stops capture first, then finalizes any recording and flushes pending callbacks."""
        self.camera.remove_consumer(self.estimator.submit_frame)
        self.camera.remove_consumer(self.recorder.submit_frame)
        self.camera.close()
        self.recorder.close()
        self.estimator.close()
        drain = getattr(self.dispatcher, 'drain', None)
        if drain:
            drain()
        self._thumbnail_pool.shutdown(wait=True)
        if drain:
            drain()
