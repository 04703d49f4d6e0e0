# darts_pose_engine/throw_engine/camera/camera_manager.py
import cv2
import time
import logging
import threading
import numpy as np
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Tuple, Optional
from ..common.enums import CameraPosition
from ..common.models import FrameMetadata

logger = logging.getLogger(__name__)

FrameConsumer = Callable[[np.ndarray, FrameMetadata], None]

class CameraManager:
    """
    Owns exactly one capture device at a time and pushes every frame to the
    registered consumers from a dedicated frame thread.

    Session control (start, stop, switch) runs on its own single-worker queue
    and returns a Future, so device acquisition never blocks the caller.
    """

    def __init__(self, config: dict, capture_factory: Callable = cv2.VideoCapture):
        self.config = config
        self._positions = {CameraPosition(k): v for k, v in config['positions'].items()}
        self._position = CameraPosition(config.get('initial_position', CameraPosition.USER_FACING))
        self._resolution = tuple(config['resolution'])
        self._target_fps = config['target_fps']
        self._rotate_portrait = config.get('rotate_portrait', True)
        self._capture_factory = capture_factory

        self._cap = None
        self._buffer = deque(maxlen=config.get('buffer_size', 5))
        self._lock = threading.Lock()
        # Held for the whole remove-then-add of a device switch and for each grab.
        self._device_lock = threading.RLock()
        self._session_queue = ThreadPoolExecutor(max_workers=1, thread_name_prefix="camera-session")
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._consumers: List[FrameConsumer] = []
        self._frame_id = 0
        self._dropped_frames = 0
        self._last_timestamp = 0.0
        self.camera_available = False

    # --- Consumers ---

    def add_consumer(self, consumer: FrameConsumer) -> None:
        with self._lock:
            if consumer not in self._consumers:
                self._consumers.append(consumer)

    def remove_consumer(self, consumer: FrameConsumer) -> None:
        with self._lock:
            if consumer in self._consumers:
                self._consumers.remove(consumer)

    # --- Session control ---

    def start(self) -> Future:
        """Binds the current device and starts emitting frames. No-op if running."""
        return self._session_queue.submit(self._start_session)

    def stop(self) -> Future:
        """Stops emission and releases the device. No-op if stopped."""
        return self._session_queue.submit(self._stop_session)

    def switch_camera(self) -> Future:
        """Swaps between the user-facing and world-facing device in one configuration step."""
        return self._session_queue.submit(self._switch_session)

    def _start_session(self):
        if self._running:
            return
        with self._device_lock:
            if self._cap is None:
                self._cap = self._acquire(self._position)
        self._running = True
        self._thread = threading.Thread(target=self._update, name="camera-frames", daemon=True)
        self._thread.start()
        logger.info("CameraManager started (%s).", self._position.value)

    def _stop_session(self):
        was_running = self._running
        self._running = False
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None
        with self._device_lock:
            self._release()
        if was_running:
            logger.info("CameraManager stopped and resources released.")

    def _switch_session(self):
        with self._device_lock:
            self._release()
            self._position = self._position.other
            # A stopped manager binds the new device on the next start.
            if self._running:
                self._cap = self._acquire(self._position)
        logger.info("Switched camera to %s.", self._position.value)

    def _acquire(self, position: CameraPosition):
        source = self._positions.get(position)
        try:
            cap = self._capture_factory(source)
        except Exception as e:
            logger.warning("Cannot open camera source %s (%s): %s", source, position.value, e)
            self.camera_available = False
            return None
        if not cap.isOpened():
            logger.warning("Camera source %s (%s) is unavailable.", source, position.value)
            cap.release()
            self.camera_available = False
            return None

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._resolution[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._resolution[1])
        cap.set(cv2.CAP_PROP_FPS, self._target_fps)
        self.camera_available = True
        return cap

    def _release(self):
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self.camera_available = False

    # --- Frame thread ---

    def _update(self):
        """The core frame-grabbing loop running in a dedicated thread."""
        while self._running:
            with self._device_lock:
                cap = self._cap
                position = self._position
                if cap is None:
                    frame = None
                else:
                    frame = self._read(cap)
            if cap is None:
                time.sleep(0.05) # No device bound; nothing to emit
                continue
            if frame is None:
                time.sleep(0.01)
                continue

            frame = self._orient(frame, position)
            timestamp = max(time.perf_counter(), self._last_timestamp + 1e-6)
            self._last_timestamp = timestamp
            self._frame_id += 1
            metadata = FrameMetadata(
                frame_id=self._frame_id,
                timestamp=timestamp,
                source_resolution=(frame.shape[1], frame.shape[0]),
                camera_position=position,
            )
            with self._lock:
                self._buffer.append((frame, metadata))
                consumers = list(self._consumers)

            for consumer in consumers:
                try:
                    consumer(frame, metadata)
                except Exception:
                    logger.exception("Frame consumer %r failed on frame %d.", consumer, metadata.frame_id)

    def _read(self, cap) -> Optional[np.ndarray]:
        if not cap.grab():
            self._dropped_frames += 1
            return None
        ret, frame = cap.retrieve()
        if not ret:
            # Frame grab was successful, but retrieve failed.
            self._dropped_frames += 1
            return None
        return frame

    def _orient(self, frame: np.ndarray, position: CameraPosition) -> np.ndarray:
        """Portrait orientation for every device, mirroring only for the user-facing one."""
        if self._rotate_portrait:
            frame = cv2.rotate(frame, cv2.ROTATE_90_CLOCKWISE)
        if position == CameraPosition.USER_FACING:
            frame = cv2.flip(frame, 1)
        return frame

    # --- Queries ---

    def get_frame(self) -> Tuple[Optional[np.ndarray], Optional[FrameMetadata]]:
        """Returns the latest frame and its metadata from the buffer."""
        with self._lock:
            if not self._buffer:
                return None, None
            frame, metadata = self._buffer[-1]
        return frame.copy(), metadata

    def get_stats(self) -> dict:
        """Returns camera health and performance statistics."""
        return {
            "is_running": self.is_running(),
            "camera_available": self.camera_available,
            "position": self._position.value,
            "buffer_size": len(self._buffer),
            "frames_emitted": self._frame_id,
            "dropped_frames": self._dropped_frames,
            "target_fps": self._target_fps,
        }

    @property
    def position(self) -> CameraPosition:
        return self._position

    def is_running(self) -> bool:
        return self._running

    def close(self):
        self.stop().result()
        self._session_queue.shutdown(wait=True)

    def __enter__(self):
        """Context manager entry to start the camera thread."""
        self.start().result()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit to gracefully stop and release resources."""
        self.close()
