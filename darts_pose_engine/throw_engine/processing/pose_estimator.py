# darts_pose_engine/throw_engine/processing/pose_estimator.py
import logging
import threading
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional
from ..common.dispatch import InlineDispatcher
from ..common.errors import InferenceError
from ..common.models import FrameMetadata, PoseModel, PoseResult

logger = logging.getLogger(__name__)

PoseListener = Callable[[Optional[PoseModel]], None]
FailureListener = Callable[[Exception], None]

class PoseEstimator:
    """
    Throttled, drop-while-busy front end to a pose processor.

    Every Nth submitted frame is eligible for inference, and at most one
    inference is ever outstanding: frames arriving while one runs are
    discarded, never queued. Results are published through the dispatcher,
    and the in-flight flag is cleared only after listeners have been told.
    """

    def __init__(self, processor, every_nth_frame: int = 4, dispatcher=None, name: str = "live"):
        self.processor = processor
        self.every_nth_frame = max(1, int(every_nth_frame))
        self.dispatcher = dispatcher or InlineDispatcher()
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"pose-{name}")
        self._lock = threading.Lock()
        self._in_flight = False
        self._closed = False
        self._frame_count = 0
        self._pose_listeners: List[PoseListener] = []
        self._failure_listeners: List[FailureListener] = []
        self.current_pose: Optional[PoseModel] = None
        self.last_result: Optional[PoseResult] = None
        self.stats = {"inferences": 0, "dropped_busy": 0, "dropped_throttle": 0, "failures": 0}

    def add_pose_listener(self, listener: PoseListener) -> None:
        self._pose_listeners.append(listener)

    def add_failure_listener(self, listener: FailureListener) -> None:
        self._failure_listeners.append(listener)

    @property
    def is_processing(self) -> bool:
        return self._in_flight

    def submit_frame(self, frame: np.ndarray, metadata: FrameMetadata) -> bool:
        """Offers a frame for inference. Returns True if an inference was started for it."""
        with self._lock:
            if self._closed:
                return False
            self._frame_count += 1
            if self._frame_count % self.every_nth_frame != 0:
                self.stats["dropped_throttle"] += 1
                return False
            if self._in_flight:
                self.stats["dropped_busy"] += 1
                return False
            self._in_flight = True
            self.stats["inferences"] += 1

        self._executor.submit(self._infer, frame, metadata)
        return True

    def _infer(self, frame: np.ndarray, metadata: FrameMetadata):
        try:
            result = self.processor.process_frame(frame, metadata)
        except Exception as e:
            error = e if isinstance(e, InferenceError) else InferenceError(str(e))
            logger.warning("Pose inference (%s) failed on frame %d: %s", self.name, metadata.frame_id, error)
            self.dispatcher.dispatch(self._deliver_failure, error)
            return
        self.dispatcher.dispatch(self._deliver_result, result)

    def _deliver_result(self, result: PoseResult):
        try:
            self.last_result = result
            self.current_pose = result.pose
            for listener in list(self._pose_listeners):
                listener(result.pose)
        finally:
            self._clear_in_flight()

    def _deliver_failure(self, error: Exception):
        try:
            self.stats["failures"] += 1
            self.current_pose = None
            for listener in list(self._failure_listeners):
                listener(error)
            for listener in list(self._pose_listeners):
                listener(None)
        finally:
            self._clear_in_flight()

    def _clear_in_flight(self):
        with self._lock:
            self._in_flight = False

    def close(self):
        """Stops accepting frames and waits for the outstanding inference, if any."""
        with self._lock:
            self._closed = True
        self._executor.shutdown(wait=True)
