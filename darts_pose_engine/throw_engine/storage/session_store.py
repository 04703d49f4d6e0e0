# darts_pose_engine/throw_engine/storage/session_store.py
import os
import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional
from ..common.errors import SessionNotFound, ThrowEngineError
from ..common.models import RecordingSession

logger = logging.getLogger(__name__)

INDEX_FILE = "sessions.json"
UPDATABLE_FIELDS = {"title", "notes", "throw_count", "best_accuracy", "is_analyzed", "analysis_summary"}

class SessionStore:
    """
    Persists RecordingSession records under the storage root, next to their videos.

    Records are kept in one JSON index keyed by session id. Thumbnails are
    stored as separate JPEG files. A session is only ever removed together
    with its video and thumbnail.
    """

    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self._index_path = self.root / INDEX_FILE
        self._lock = threading.Lock()
        self._sessions: Dict[str, RecordingSession] = self._load()

    def _load(self) -> Dict[str, RecordingSession]:
        if not self._index_path.exists():
            return {}
        try:
            raw = json.loads(self._index_path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ThrowEngineError(f"Cannot read session index {self._index_path}: {e}") from e

        sessions = {}
        for item in raw.get("sessions", []):
            session = RecordingSession.model_validate(item)
            thumb = self.thumbnail_path(session.id)
            if thumb.exists():
                session.thumbnail_data = thumb.read_bytes()
            sessions[session.id] = session
        logger.info("Loaded %d recorded sessions from %s", len(sessions), self.root)
        return sessions

    def _persist(self):
        data = {"sessions": [s.model_dump(mode="json", exclude={"thumbnail_data"})
                             for s in self._sessions.values()]}
        tmp = self._index_path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        os.replace(tmp, self._index_path)

    def thumbnail_path(self, session_id: str) -> Path:
        return self.root / f"thumb_{session_id}.jpg"

    def video_path(self, session: RecordingSession) -> Path:
        return session.video_path(self.root)

    def save(self, session: RecordingSession) -> RecordingSession:
        """Stores the record and its thumbnail. Nothing is kept if writing either fails."""
        with self._lock:
            previous = self._sessions.get(session.id)
            try:
                if session.thumbnail_data:
                    self.thumbnail_path(session.id).write_bytes(session.thumbnail_data)
                self._sessions[session.id] = session
                self._persist()
            except OSError:
                if previous is None:
                    self._sessions.pop(session.id, None)
                    self.thumbnail_path(session.id).unlink(missing_ok=True)
                else:
                    self._sessions[session.id] = previous
                raise
        logger.info("Saved session %s (%s).", session.id, session.title)
        return session

    def get(self, session_id: str) -> RecordingSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def list_sessions(self) -> List[RecordingSession]:
        """All sessions, newest first."""
        return sorted(self._sessions.values(), key=lambda s: s.recorded_at, reverse=True)

    def update(self, session_id: str, **changes) -> RecordingSession:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        with self._lock:
            session = self.get(session_id)
            updated = RecordingSession.model_validate({**session.model_dump(), **changes})
            self._sessions[session_id] = updated
            self._persist()
        return updated

    def delete(self, session_id: str) -> None:
        """Removes the record together with its video and thumbnail."""
        with self._lock:
            session = self.get(session_id)
            for path in (self.thumbnail_path(session_id), self.video_path(session)):
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    raise ThrowEngineError(f"Cannot delete {path.name}: {e}") from e
            del self._sessions[session_id]
            self._persist()
        logger.info("Deleted session %s and %s.", session_id, session.video_file_name)

    def summary(self) -> dict:
        sessions = list(self._sessions.values())
        angles = [s.average_elbow_angle for s in sessions if s.average_elbow_angle is not None]
        return {
            "session_count": len(sessions),
            "total_throws": sum(s.throw_count for s in sessions),
            "total_duration": sum(s.duration for s in sessions),
            "average_elbow_angle": sum(angles) / len(angles) if angles else None,
        }

    def find_orphans(self) -> List[Path]:
        """Video files under the root that no record references."""
        referenced = {s.video_file_name for s in self._sessions.values()}
        return sorted(p for p in self.root.glob("session_*.mp4") if p.name not in referenced)

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, session_id: Optional[str]):
        return session_id in self._sessions
