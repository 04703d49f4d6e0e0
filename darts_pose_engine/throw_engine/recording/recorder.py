# darts_pose_engine/throw_engine/recording/recorder.py
import uuid
import logging
import threading
import numpy as np
from pathlib import Path
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
from ..common.dispatch import InlineDispatcher
from ..common.enums import RecorderState
from ..common.errors import EncoderNotReady, InvalidOutputPath, RecordingError, WritingFailed
from ..common.models import FrameMetadata
from .encoder import VideoEncoder

logger = logging.getLogger(__name__)

class Recorder:
    """
    Encodes the armed frame stream into one video artifact.

    IDLE -> ARMED -> FINALIZING -> IDLE. Only ARMED accepts frames. Disarming
    rejects frames immediately and closes the encoder on a background worker;
    the outcome arrives through on_recording_finished or on_recording_failed,
    delivered by the dispatcher.
    """

    def __init__(self, config: dict, storage_root, dispatcher=None,
                 encoder_factory: Callable = VideoEncoder):
        self.config = config
        self.storage_root = Path(storage_root)
        self.dispatcher = dispatcher or InlineDispatcher()
        self._encoder_factory = encoder_factory
        self._tick_interval = config.get('tick_interval', 0.1)

        self.on_duration_update: Optional[Callable[[float], None]] = None
        self.on_recording_finished: Optional[Callable[[Path], None]] = None
        self.on_recording_failed: Optional[Callable[[Exception], None]] = None

        self._lock = threading.Lock()
        self._state = RecorderState.IDLE
        self._idle = threading.Event()
        self._idle.set()
        self._encoder: Optional[VideoEncoder] = None
        self._output_path: Optional[Path] = None
        self._start_ts: Optional[float] = None
        self._last_ts: Optional[float] = None
        self._ticker: Optional[threading.Thread] = None
        self._ticker_stop = threading.Event()
        self._finalizer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recorder-finalize")
        self.frames_accepted = 0
        self.frames_dropped = 0

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == RecorderState.ARMED

    @property
    def duration(self) -> float:
        """Media time between the first accepted frame and the latest one."""
        if self._start_ts is None or self._last_ts is None:
            return 0.0
        return self._last_ts - self._start_ts

    @property
    def current_file_name(self) -> Optional[str]:
        return self._output_path.name if self._output_path else None

    @property
    def is_ready_for_more_data(self) -> bool:
        encoder = self._encoder
        return encoder is not None and encoder.is_ready_for_more_data()

    def arm(self) -> Path:
        """Opens a new artifact and starts accepting frames. Returns the artifact path."""
        with self._lock:
            if self._state == RecorderState.ARMED:
                return self._output_path
            if self._state == RecorderState.FINALIZING:
                raise EncoderNotReady("previous recording is still being finalized")

            try:
                self.storage_root.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise InvalidOutputPath(str(e)) from e
            path = self.storage_root / f"session_{uuid.uuid4().hex}.mp4"
            path.unlink(missing_ok=True)

            try:
                encoder = self._encoder_factory(path, self.config)
            except RecordingError:
                raise
            except Exception as e:
                raise EncoderNotReady(str(e)) from e

            self._encoder = encoder
            self._output_path = path
            self._start_ts = None
            self._last_ts = None
            self.frames_accepted = 0
            self.frames_dropped = 0
            self._state = RecorderState.ARMED
            self._idle.clear()

        self._start_ticker()
        logger.info("Recording armed: %s", path.name)
        return path

    def submit_frame(self, frame: np.ndarray, metadata: FrameMetadata) -> bool:
        """Offers a frame to the encoder. Returns True if it was accepted."""
        with self._lock:
            encoder = self._encoder
            if self._state != RecorderState.ARMED or encoder is None:
                return False
            if not encoder.is_ready_for_more_data():
                self.frames_dropped += 1
                logger.debug("Encoder busy, dropped frame %d.", metadata.frame_id)
                return False

            if self._start_ts is None:
                self._start_ts = metadata.timestamp
                encoder.start_session(metadata.timestamp)
            if not encoder.append(frame, metadata.timestamp):
                self.frames_dropped += 1
                return False
            self._last_ts = metadata.timestamp
            self.frames_accepted += 1
            return True

    def disarm(self) -> bool:
        """Stops accepting frames and finalizes in the background. Returns False if not armed."""
        with self._lock:
            if self._state != RecorderState.ARMED:
                return False
            self._state = RecorderState.FINALIZING
            encoder = self._encoder
            duration = self.duration

        self._stop_ticker()
        self.dispatcher.dispatch(self._report_duration, duration)
        logger.info("Recording stopped after %.2fs (%d frames, %d dropped), finalizing.",
                    duration, self.frames_accepted, self.frames_dropped)
        self._finalizer.submit(self._finalize, encoder)
        return True

    def _finalize(self, encoder: VideoEncoder):
        try:
            path = encoder.finish()
        except Exception as e:
            error = e if isinstance(e, RecordingError) else WritingFailed(str(e))
            logger.error("Recording failed: %s", error)
            encoder.discard()
            self.dispatcher.dispatch(self._complete, None, error)
            return
        logger.info("Recording saved: %s", path.name)
        self.dispatcher.dispatch(self._complete, path, None)

    def _complete(self, path: Optional[Path], error: Optional[Exception]):
        with self._lock:
            self._state = RecorderState.IDLE
            self._encoder = None
            self._output_path = None
        self._idle.set()

        if error is not None:
            if self.on_recording_failed:
                self.on_recording_failed(error)
        elif self.on_recording_finished:
            self.on_recording_finished(path)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        return self._idle.wait(timeout)

    # --- Duration ticker ---

    def _start_ticker(self):
        self._ticker_stop.clear()
        self._ticker = threading.Thread(target=self._tick, name="recorder-ticker", daemon=True)
        self._ticker.start()

    def _stop_ticker(self):
        self._ticker_stop.set()
        if self._ticker is not None and self._ticker is not threading.current_thread():
            self._ticker.join()
        self._ticker = None

    def _tick(self):
        while not self._ticker_stop.wait(self._tick_interval):
            self.dispatcher.dispatch(self._report_duration, self.duration)

    def _report_duration(self, duration: float):
        if self.on_duration_update:
            self.on_duration_update(duration)

    def close(self):
        """Finalizes an armed recording and waits for the encoder to close."""
        self.disarm()
        self._finalizer.shutdown(wait=True)
