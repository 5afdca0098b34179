from unittest.mock import patch

import pytest

from kids_tutor.app import (
    SessionExitRequested, build_coordinator, read_image, render_state,
    run_session, session_prompt, sessions_table, main,
)
from kids_tutor.config import Settings
from kids_tutor.content import ContentService
from kids_tutor.coordinator import Error, Loading, SessionCoordinator, Success
from kids_tutor.db import init_db
from kids_tutor.errors import ConfigurationError
from kids_tutor.models import TopicContent, TutorSession
from kids_tutor.sessions import SessionStore

from fakes import make_client


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


@pytest.mark.parametrize("answer", ["q", "back", "menu", " Q "])
def test_session_prompt_raises_on_exit_words(answer):
    with patch("kids_tutor.app.Prompt.ask", return_value=answer):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("kids_tutor.app.Prompt.ask", return_value="hello"):
        assert session_prompt("test prompt") == "hello"


def test_render_state():
    assert render_state(Success()) is True
    assert render_state(Loading()) is False
    assert render_state(Error("nope")) is False


def test_sessions_table_rows():
    sessions = [TutorSession(id=1, topic="Cats"), TutorSession(id=2, topic="Dogs", content="Woof")]
    table = sessions_table(sessions)
    assert table.row_count == 2


def test_read_image_guesses_mime_type(tmp_path):
    f = tmp_path / "pic.png"
    f.write_bytes(b"\x89PNG")
    data, mime = read_image(str(f))
    assert data == b"\x89PNG"
    assert mime == "image/png"


def test_read_image_defaults_to_jpeg(tmp_path):
    f = tmp_path / "pic"
    f.write_bytes(b"raw")
    assert read_image(str(f))[1] == "image/jpeg"


def test_build_coordinator_requires_api_key(tmp_db):
    with pytest.raises(ConfigurationError):
        build_coordinator(Settings(api_key=None, db_path=tmp_db))


def test_build_coordinator_initializes_database(tmp_db):
    with patch("kids_tutor.content.genai.Client"):
        coordinator = build_coordinator(Settings(api_key="key", db_path=tmp_db))
    assert coordinator.state == Success()
    coordinator.close()


def test_main_exits_without_api_key(tmp_db, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("KIDS_TUTOR_DB", tmp_db)
    with patch("kids_tutor.app.configure_logging"):
        with pytest.raises(SystemExit) as exc_info:
            main()
    assert exc_info.value.code == 1


def test_main_creates_and_quits(tmp_db, monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "key")
    monkeypatch.setenv("KIDS_TUTOR_DB", tmp_db)
    with patch("kids_tutor.app.configure_logging"), \
            patch("kids_tutor.content.genai.Client"), \
            patch("kids_tutor.app.Prompt.ask", side_effect=["list", "quit"]):
        main()


def test_run_session_uses_selected_language(tmp_db):
    client = make_client("Ils aiment dormir.")
    init_db(tmp_db)
    store = SessionStore(tmp_db)
    session_id = store.insert(
        TutorSession(topic="Cats").with_content(TopicContent(content="Cats sleep a lot."))
    )
    coordinator = SessionCoordinator(store, ContentService("key", client_factory=lambda key: client))
    answers = ["language", "fr", "ask", "Why do cats sleep?", "back"]
    with patch("kids_tutor.app.Prompt.ask", side_effect=answers):
        run_session(coordinator, session_id)
    prompt = client.models.generate_content.call_args.kwargs["contents"]
    assert "in fr language" in prompt
    assert store.get_by_id(session_id).language == "en"
    coordinator.close()
