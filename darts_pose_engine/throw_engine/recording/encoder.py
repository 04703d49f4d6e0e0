# darts_pose_engine/throw_engine/recording/encoder.py
import cv2
import queue
import logging
import subprocess
import threading
import numpy as np
from pathlib import Path
from typing import Callable, Optional
from ..common.errors import EncoderNotReady, WritingFailed

logger = logging.getLogger(__name__)

def _get_ffmpeg_exe() -> Optional[str]:
    """Return path to ffmpeg binary, or None if unavailable."""
    try:
        import imageio_ffmpeg
        return imageio_ffmpeg.get_ffmpeg_exe()
    except Exception:
        return None

class VideoEncoder:
    """
    Encodes frames into a single-track video file on its own thread.

    Frames wait in a bounded queue; when it is full the encoder reports it is
    not ready and the producer is expected to drop the frame. Output frames are
    scaled to the configured profile size.
    """

    def __init__(self, output_path, profile: dict, writer_factory: Callable = cv2.VideoWriter):
        self.output_path = Path(output_path)
        self._size = (int(profile['width']), int(profile['height']))
        self._fps = float(profile['fps'])
        self._bitrate = int(profile.get('bitrate', 2_500_000))
        self._transcode = bool(profile.get('transcode_h264', False))
        self._write_path = (self.output_path.with_suffix('.raw' + self.output_path.suffix)
                            if self._transcode else self.output_path)

        fourcc = cv2.VideoWriter_fourcc(*profile.get('fourcc', 'mp4v'))
        self._writer = writer_factory(str(self._write_path), fourcc, self._fps, self._size)
        if not self._writer.isOpened():
            raise EncoderNotReady(f"cannot open video writer for {self._write_path}")

        self._queue = queue.Queue(maxsize=max(1, int(profile.get('max_pending_frames', 8))))
        self._error: Optional[Exception] = None
        self.frames_written = 0
        self.start_time: Optional[float] = None
        self.last_time: Optional[float] = None
        self._thread = threading.Thread(target=self._drain, name="video-encoder", daemon=True)
        self._thread.start()

    def is_ready_for_more_data(self) -> bool:
        return self._error is None and not self._queue.full()

    def start_session(self, source_time: float) -> None:
        """Sets the timeline origin; later presentation times are relative to it."""
        self.start_time = source_time

    def append(self, frame: np.ndarray, presentation_time: float) -> bool:
        try:
            self._queue.put_nowait(frame)
        except queue.Full:
            return False
        self.last_time = presentation_time
        return True

    def _drain(self):
        while True:
            frame = self._queue.get()
            if frame is None:
                break
            if self._error is not None:
                continue
            try:
                if (frame.shape[1], frame.shape[0]) != self._size:
                    frame = cv2.resize(frame, self._size, interpolation=cv2.INTER_AREA)
                self._writer.write(frame)
                self.frames_written += 1
            except Exception as e:
                logger.error("Encoder write failed: %s", e)
                self._error = e

    def finish(self) -> Path:
        """Flushes pending frames and closes the container. Blocks; call off the UI thread."""
        self._queue.put(None)
        self._thread.join()
        self._writer.release()

        if self._error is not None:
            raise WritingFailed(str(self._error))
        if self.frames_written == 0:
            raise WritingFailed("no frames were recorded")
        if not self._write_path.exists() or self._write_path.stat().st_size == 0:
            raise WritingFailed(f"{self._write_path.name} is empty")

        if self._transcode:
            self._transcode_h264()
        return self.output_path

    def _transcode_h264(self):
        ffmpeg = _get_ffmpeg_exe()
        if not ffmpeg:
            logger.warning("ffmpeg not found, keeping %s stream as output", self._write_path.suffix)
            self._write_path.replace(self.output_path)
            return

        cmd = [
            ffmpeg, "-y",
            "-i", str(self._write_path),
            "-c:v", "libx264",
            "-profile:v", "main",
            "-b:v", str(self._bitrate),
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            str(self.output_path),
        ]
        logger.info("Re-encoding to H.264: %s", " ".join(cmd))
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=600)
        if result.returncode != 0:
            logger.error("ffmpeg failed: %s", result.stderr)
            # Fall back to the intermediate stream
            self._write_path.replace(self.output_path)
        else:
            self._write_path.unlink(missing_ok=True)

    def discard(self):
        """Removes anything written so far. Used after a failed finish."""
        for path in {self._write_path, self.output_path}:
            path.unlink(missing_ok=True)
