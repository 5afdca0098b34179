"""Session store: CRUD over the tutor_sessions table plus live list subscriptions.

The module-level functions work directly on a database path. ``SessionStore``
wraps them, converts sqlite errors into ``StorageError`` and re-delivers the
listing queries to subscribers after every successful mutation.
"""
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Optional

from kids_tutor.converters import decode_list, decode_timestamp, encode_list, encode_timestamp
from kids_tutor.db import get_connection
from kids_tutor.errors import InvalidSessionError, SessionNotFoundError, StorageError
from kids_tutor.models import TutorSession

logger = logging.getLogger(__name__)

ORDER_BY_RECENCY = "ORDER BY last_accessed_at DESC, id ASC"


def row_to_session(row: sqlite3.Row) -> TutorSession:
    return TutorSession(
        id=row["id"],
        topic=row["topic"],
        created_at=decode_timestamp(row["created_at"]),
        last_accessed_at=decode_timestamp(row["last_accessed_at"]),
        language=row["language"],
        thumbnail_url=row["thumbnail_url"],
        content=row["content"],
        image_urls=decode_list(row["image_urls"]),
        youtube_links=decode_list(row["youtube_links"]),
    )


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def get_all_sessions(db_path: str) -> list[TutorSession]:
    conn = get_connection(db_path)
    try:
        rows = conn.execute(f"SELECT * FROM tutor_sessions {ORDER_BY_RECENCY}").fetchall()
    finally:
        conn.close()
    return [row_to_session(r) for r in rows]


def search_sessions(db_path: str, query: str) -> list[TutorSession]:
    """Sessions whose topic contains query, ignoring ASCII case."""
    conn = get_connection(db_path)
    try:
        rows = conn.execute(
            f"""SELECT * FROM tutor_sessions
            WHERE topic LIKE '%' || ? || '%' ESCAPE '\\'
            {ORDER_BY_RECENCY}""",
            (_escape_like(query),),
        ).fetchall()
    finally:
        conn.close()
    return [row_to_session(r) for r in rows]


def get_session_by_id(db_path: str, session_id: int) -> Optional[TutorSession]:
    conn = get_connection(db_path)
    try:
        row = conn.execute("SELECT * FROM tutor_sessions WHERE id = ?", (session_id,)).fetchone()
    finally:
        conn.close()
    return row_to_session(row) if row else None


def insert_session(db_path: str, session: TutorSession) -> int:
    """Store a session under a freshly assigned id and return that id.

    Any id already set on ``session`` is ignored.
    """
    session.validate()
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """INSERT INTO tutor_sessions
            (topic, created_at, last_accessed_at, language, thumbnail_url,
             content, image_urls, youtube_links)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                session.topic,
                encode_timestamp(session.created_at),
                encode_timestamp(session.last_accessed_at),
                session.language,
                session.thumbnail_url,
                session.content,
                encode_list(session.image_urls),
                encode_list(session.youtube_links),
            ),
        )
        conn.commit()
        return cursor.lastrowid
    finally:
        conn.close()


def update_session(db_path: str, session: TutorSession) -> None:
    """Replace the stored row for session.id in a single statement.

    Raises InvalidSessionError for a malformed session and SessionNotFoundError
    when no row has that id.
    """
    session.validate()
    if session.id is None:
        raise SessionNotFoundError(None)
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """UPDATE tutor_sessions SET topic=?, created_at=?, last_accessed_at=?,
            language=?, thumbnail_url=?, content=?, image_urls=?, youtube_links=?
            WHERE id=?""",
            (
                session.topic,
                encode_timestamp(session.created_at),
                encode_timestamp(session.last_accessed_at),
                session.language,
                session.thumbnail_url,
                session.content,
                encode_list(session.image_urls),
                encode_list(session.youtube_links),
                session.id,
            ),
        )
        conn.commit()
    finally:
        conn.close()
    if cursor.rowcount == 0:
        raise SessionNotFoundError(session.id)


def touch_session(db_path: str, session_id: int, when: datetime | None = None) -> datetime:
    when = when or datetime.now()
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            "UPDATE tutor_sessions SET last_accessed_at = ? WHERE id = ?",
            (encode_timestamp(when), session_id),
        )
        conn.commit()
    finally:
        conn.close()
    if cursor.rowcount == 0:
        raise SessionNotFoundError(session_id)
    return when


def delete_session(db_path: str, session_id: int) -> bool:
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("DELETE FROM tutor_sessions WHERE id = ?", (session_id,))
        conn.commit()
    finally:
        conn.close()
    return cursor.rowcount > 0


@contextmanager
def _storage_errors(action: str):
    try:
        yield
    except InvalidSessionError:
        raise
    except (sqlite3.Error, ValueError) as e:
        # ValueError covers undecodable list or timestamp cells.
        logger.exception("Storage failure while trying to %s", action)
        raise StorageError(f"Could not {action}: {e}") from e


Listener = Callable[[list[TutorSession]], None]
ErrorListener = Callable[[Exception], None]


class Subscription:
    """Handle for a live query; cancel() stops further deliveries."""

    def __init__(self, store: "SessionStore", query: Callable[[], list[TutorSession]],
                 listener: Listener, on_error: ErrorListener | None = None):
        self._store = store
        self._query = query
        self._listener = listener
        self._on_error = on_error
        self.active = True

    def deliver(self) -> None:
        if not self.active:
            return
        try:
            sessions = self._query()
        except Exception as e:
            if self._on_error is None:
                logger.error("Dropping delivery for subscriber: %s", e)
                return
            self._on_error(e)
            return
        if self.active:
            self._listener(sessions)

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._store._remove(self)


class SessionStore:
    """Session table access with change notification."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    # Reads

    def list_all(self) -> list[TutorSession]:
        with _storage_errors("list sessions"):
            return get_all_sessions(self.db_path)

    def search(self, query: str) -> list[TutorSession]:
        with _storage_errors("search sessions"):
            return search_sessions(self.db_path, query)

    def get_by_id(self, session_id: int) -> Optional[TutorSession]:
        with _storage_errors("load session"):
            return get_session_by_id(self.db_path, session_id)

    # Mutations

    def insert(self, session: TutorSession) -> int:
        with _storage_errors("create session"):
            session_id = insert_session(self.db_path, session)
        logger.info("Created session %s (%r)", session_id, session.topic)
        self._notify()
        return session_id

    def update(self, session: TutorSession) -> None:
        with _storage_errors("update session"):
            update_session(self.db_path, session)
        logger.info("Updated session %s", session.id)
        self._notify()

    def touch(self, session_id: int, when: datetime | None = None) -> datetime:
        with _storage_errors("refresh session"):
            when = touch_session(self.db_path, session_id, when)
        self._notify()
        return when

    def delete(self, session: TutorSession) -> None:
        if session.id is None:
            return
        with _storage_errors("delete session"):
            removed = delete_session(self.db_path, session.id)
        if removed:
            logger.info("Deleted session %s", session.id)
            self._notify()

    # Subscriptions

    def subscribe_all(self, listener: Listener, on_error: ErrorListener | None = None) -> Subscription:
        return self._subscribe(self.list_all, listener, on_error)

    def subscribe_search(self, query: str, listener: Listener,
                         on_error: ErrorListener | None = None) -> Subscription:
        return self._subscribe(lambda: self.search(query), listener, on_error)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _subscribe(self, query, listener, on_error) -> Subscription:
        subscription = Subscription(self, query, listener, on_error)
        with self._lock:
            self._subscriptions.append(subscription)
        subscription.deliver()
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self) -> None:
        with self._lock:
            snapshot = list(self._subscriptions)
        for subscription in snapshot:
            subscription.deliver()
