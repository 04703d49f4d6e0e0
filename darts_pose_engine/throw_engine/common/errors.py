# darts_pose_engine/throw_engine/common/errors.py

class ThrowEngineError(Exception):
    """Base class for every error raised by the engine."""

class ConfigError(ThrowEngineError):
    pass

class SessionNotFound(ThrowEngineError):
    def __init__(self, session_id):
        super().__init__(f"No recorded session with id {session_id}")
        self.session_id = session_id

class InferenceError(ThrowEngineError):
    """A pose backend failed on a single frame. Never fatal."""

class RecordingError(ThrowEngineError):
    """A failure the user must be told about: the recording is lost."""
    reason = "Recording failed"

    def __init__(self, detail: str = ""):
        super().__init__(f"{self.reason}: {detail}" if detail else self.reason)
        self.detail = detail

class InvalidOutputPath(RecordingError):
    reason = "Could not create recording file"

class EncoderNotReady(RecordingError):
    reason = "Recording system not ready"

class WritingFailed(RecordingError):
    reason = "Failed to save recording"
