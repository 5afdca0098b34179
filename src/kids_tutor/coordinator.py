"""Session coordinator: the single entry point the UI talks to.

Keeps a cached list of sessions fed by a store subscription and a UI state
that is Loading while an operation runs, then Success or Error.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from kids_tutor.content import ContentService
from kids_tutor.errors import (
    InvalidSessionError, RemoteGenerationError, SessionNotFoundError, TutorError,
)
from kids_tutor.models import TutorSession
from kids_tutor.sessions import SessionStore, Subscription

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Unable to generate content. Please try again."


@dataclass(frozen=True)
class Loading:
    pass


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class Error:
    message: str


UiState = Union[Loading, Success, Error]


class SessionCoordinator:
    def __init__(self, store: SessionStore, content: ContentService):
        self.store = store
        self.content = content
        self.sessions: list[TutorSession] = []
        self.search_query: str | None = None
        self._state: UiState = Loading()
        self._state_listeners: list[Callable[[UiState], None]] = []
        self._subscription: Optional[Subscription] = None
        self._load_sessions()

    # State

    @property
    def state(self) -> UiState:
        return self._state

    def add_state_listener(self, listener: Callable[[UiState], None]) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: UiState) -> None:
        self._state = state
        for listener in list(self._state_listeners):
            listener(state)

    def _fail(self, message: str, error: Exception | None = None) -> None:
        if error is not None:
            logger.warning("%s (%s)", message, error)
        self._set_state(Error(message))

    # Subscription

    def _on_sessions(self, sessions: list[TutorSession]) -> None:
        self.sessions = sessions
        self._set_state(Success())

    def _on_subscription_error(self, error: Exception) -> None:
        self._fail("Failed to load sessions", error)

    def _load_sessions(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
        try:
            if self.search_query:
                self._subscription = self.store.subscribe_search(
                    self.search_query, self._on_sessions, on_error=self._on_subscription_error
                )
            else:
                self._subscription = self.store.subscribe_all(
                    self._on_sessions, on_error=self._on_subscription_error
                )
        except TutorError as e:
            self._fail("Failed to load sessions", e)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    # Session list operations

    def create_session(self, topic: str, language: str = "en") -> Optional[int]:
        """Insert a bare session; content is generated later when it is opened."""
        if not topic or not topic.strip():
            self._fail("Please enter a topic")
            return None
        self._set_state(Loading())
        try:
            session_id = self.store.insert(TutorSession(topic=topic.strip(), language=language))
        except InvalidSessionError as e:
            self._fail(str(e), e)
            return None
        except TutorError as e:
            self._fail("Failed to create session", e)
            return None
        self._load_sessions()
        return session_id

    def delete_session(self, session: TutorSession) -> bool:
        self._set_state(Loading())
        try:
            self.store.delete(session)
        except TutorError as e:
            self._fail("Failed to delete session", e)
            return False
        self._load_sessions()
        return True

    def update_session(self, session: TutorSession) -> bool:
        self._set_state(Loading())
        try:
            self.store.update(session)
        except SessionNotFoundError as e:
            self._fail("That session no longer exists", e)
            return False
        except InvalidSessionError as e:
            self._fail(str(e), e)
            return False
        except TutorError as e:
            self._fail("Failed to update session", e)
            return False
        self._load_sessions()
        return True

    def search_sessions(self, query: str) -> list[TutorSession]:
        self._set_state(Loading())
        self.search_query = query or None
        self._load_sessions()
        return self.sessions

    def clear_search(self) -> list[TutorSession]:
        return self.search_sessions("")

    # Single session operations

    def open_session(self, session_id: int) -> Optional[TutorSession]:
        """Load a session and mark it as just accessed."""
        self._set_state(Loading())
        try:
            session = self.store.get_by_id(session_id)
            if session is None:
                self._fail("Session not found")
                return None
            session.last_accessed_at = self.store.touch(session_id)
        except TutorError as e:
            self._fail("Failed to open session", e)
            return None
        self._load_sessions()
        return session

    def generate_content(self, session: TutorSession, language: str | None = None) -> Optional[TutorSession]:
        """Generate a tutorial and store content, images and videos in one update."""
        language = language or session.language
        self._set_state(Loading())
        try:
            topic_content = self.content.generate_topic_content(session.topic, language)
        except RemoteGenerationError as e:
            self._fail(GENERATION_FAILED, e)
            return None
        except TutorError as e:
            self._fail(str(e), e)
            return None
        enriched = session.with_content(topic_content, language=language)
        if not self.update_session(enriched):
            return None
        return enriched

    def ensure_content(self, session: TutorSession) -> Optional[TutorSession]:
        if session.has_content:
            return session
        return self.generate_content(session)

    def answer_question(self, session: TutorSession, question: str,
                        language: str | None = None) -> Optional[str]:
        """Answer in the given language, or the session's own when none is picked."""
        try:
            return self.content.answer_question(question, session.content or "", language or session.language)
        except ValueError:
            self._fail("Please type a question first")
        except TutorError as e:
            self._fail(f"Failed to answer question: {e}", e)
        return None

    def explain_image(self, session: TutorSession, image_bytes: bytes,
                      mime_type: str = "image/jpeg", language: str | None = None) -> Optional[str]:
        try:
            return self.content.explain_image(image_bytes, language or session.language, mime_type=mime_type)
        except ValueError:
            self._fail("That image is empty")
        except TutorError as e:
            self._fail(f"Failed to explain image: {e}", e)
        return None
