# darts_pose_engine/throw_engine/playback/clock.py
import time
import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)

class PlaybackClock:
    """
    Playback position source. Ticks every observer at a fixed rate on its own
    thread, whether playing or paused, so a seek while paused is still picked up.
    """

    def __init__(self, duration: float, rate_hz: float = 30.0):
        self.duration = max(0.0, float(duration))
        self.interval = 1.0 / rate_hz
        self._lock = threading.Lock()
        self._position = 0.0
        self._playing = False
        self._last_advance = None
        self._observers: List[Callable[[float], None]] = []
        self._stop = threading.Event()
        self._thread = None

    def add_periodic_observer(self, observer: Callable[[float], None]) -> None:
        self._observers.append(observer)

    @property
    def position(self) -> float:
        with self._lock:
            return self._position

    @property
    def is_playing(self) -> bool:
        return self._playing

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="playback-clock", daemon=True)
        self._thread.start()

    def play(self):
        with self._lock:
            if self._position >= self.duration:
                self._position = 0.0
            self._playing = True
            self._last_advance = time.perf_counter()

    def pause(self):
        with self._lock:
            self._advance()
            self._playing = False

    def toggle(self):
        if self._playing:
            self.pause()
        else:
            self.play()

    def seek(self, position: float):
        with self._lock:
            self._position = min(max(position, 0.0), self.duration)
            self._last_advance = time.perf_counter()

    def seek_by(self, delta: float):
        self.seek(self.position + delta)

    def _advance(self):
        now = time.perf_counter()
        if self._playing and self._last_advance is not None:
            self._position = min(self._position + (now - self._last_advance), self.duration)
            if self._position >= self.duration:
                self._playing = False
        self._last_advance = now

    def tick(self) -> float:
        """Advances the clock and notifies observers once."""
        with self._lock:
            self._advance()
            position = self._position
        for observer in list(self._observers):
            observer(position)
        return position

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self.tick()
            except Exception:
                logger.exception("Playback observer failed.")

    def stop(self):
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        self._thread = None
        self._playing = False
