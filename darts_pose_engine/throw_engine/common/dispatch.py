# darts_pose_engine/throw_engine/common/dispatch.py
import queue
import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)

class InlineDispatcher:
    """Runs callbacks immediately on whichever worker thread produced them."""

    def dispatch(self, callback: Callable, *args) -> None:
        callback(*args)

class QueueDispatcher:
    """
    Hands callbacks over to a consumer thread, typically the UI/render loop.

    Worker threads call dispatch(); the owning thread calls drain() once per
    iteration and the queued callbacks run there, in submission order. A
    failing callback is logged and the rest of the queue still runs.
    """

    def __init__(self):
        self._queue = queue.SimpleQueue()
        self._owner: Optional[int] = None

    def dispatch(self, callback: Callable, *args) -> None:
        self._queue.put((callback, args))

    def drain(self, max_items: Optional[int] = None) -> int:
        self._owner = threading.get_ident()
        handled = 0
        while max_items is None or handled < max_items:
            try:
                callback, args = self._queue.get_nowait()
            except queue.Empty:
                break
            try:
                callback(*args)
            except Exception:
                logger.exception("Dispatched callback %r failed.", callback)
            handled += 1
        return handled

    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def owner_thread(self) -> Optional[int]:
        return self._owner
