"""Exceptions raised by the tutor core."""


class TutorError(Exception):
    """Base class for errors the session coordinator turns into messages."""


class ConfigurationError(TutorError):
    """Raised at startup when required configuration (the API key) is missing."""


class RemoteGenerationError(TutorError):
    """Raised when the AI service fails even after the permitted retry."""


class StorageError(TutorError):
    """Raised when the session database cannot be read or written."""


class SessionNotFoundError(StorageError):
    def __init__(self, session_id):
        super().__init__(f"No tutor session with id {session_id}")
        self.session_id = session_id


class InvalidSessionError(TutorError, ValueError):
    """Raised before a write when a session breaks the record invariants."""
