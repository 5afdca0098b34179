"""Tests for the content service, using fake Gemini clients."""
import threading
from unittest.mock import MagicMock, patch

import pytest

from kids_tutor.content import (
    ANSWER_EMPTY, ANSWER_FAILED, CONTENT_FALLBACK, IMAGE_EMPTY, IMAGE_FAILED,
    ContentService, create_client,
)
from kids_tutor.errors import ConfigurationError, RemoteGenerationError

from fakes import make_client


def service_with(*clients, **kwargs):
    factory = MagicMock(side_effect=list(clients))
    return ContentService("test-key", client_factory=factory, **kwargs), factory


@pytest.mark.parametrize("key", [None, "", "   "])
def test_create_client_requires_key(key):
    with pytest.raises(ConfigurationError):
        create_client(key)


def test_create_client_builds_genai_client():
    with patch("kids_tutor.content.genai.Client") as client_cls:
        client = create_client("abc")
    client_cls.assert_called_once_with(api_key="abc")
    assert client is client_cls.return_value


def test_missing_key_fails_at_construction():
    with pytest.raises(ConfigurationError):
        ContentService(None)


def test_generate_topic_content_parses_response():
    client = make_client("Cats are great! https://a.com/cat.png youtu.be/meow1")
    service, factory = service_with(client, model="gemini-test")
    result = service.generate_topic_content("Cats", "en")
    assert result.content == "Cats are great!"
    assert result.image_urls == ["https://a.com/cat.png"]
    assert result.youtube_links == ["https://www.youtube.com/watch?v=meow1"]
    factory.assert_called_once_with("test-key")
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-test"
    assert "'Cats'" in kwargs["contents"]
    assert "in en language" in kwargs["contents"]
    assert "under 500 words" in kwargs["contents"]


def test_generate_retries_once_with_new_client():
    broken = make_client(RuntimeError("network down"))
    healthy = make_client("Dogs bark.")
    service, factory = service_with(broken, healthy)
    result = service.generate_topic_content("Dogs")
    assert result.content == "Dogs bark."
    assert factory.call_count == 2
    assert broken.models.generate_content.call_count == 1
    assert healthy.models.generate_content.call_count == 1


def test_generate_fails_after_single_retry():
    first = make_client(RuntimeError("boom"))
    second = make_client(RuntimeError("boom again"), "never reached")
    service, factory = service_with(first, second)
    with pytest.raises(RemoteGenerationError) as exc_info:
        service.generate_topic_content("Space")
    assert factory.call_count == 2
    assert second.models.generate_content.call_count == 1
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_generate_empty_response_uses_fallback():
    service, _ = service_with(make_client(None))
    result = service.generate_topic_content("Rocks")
    assert result.content == CONTENT_FALLBACK
    assert result.image_urls == []
    assert result.youtube_links == []


def test_answer_question_truncates_context():
    client = make_client("Because of light scattering.")
    service, _ = service_with(client)
    context = "x" * 600
    answer = service.answer_question("Why is the sky blue?", context, "de")
    assert answer == "Because of light scattering."
    prompt = client.models.generate_content.call_args.kwargs["contents"]
    assert "x" * 500 in prompt
    assert "x" * 501 not in prompt
    assert "Question: Why is the sky blue?" in prompt
    assert "in de language" in prompt


def test_answer_question_falls_back_on_failure():
    client = make_client(RuntimeError("quota"))
    service, factory = service_with(client)
    assert service.answer_question("Why?", "ctx") == ANSWER_FAILED
    # no retry for questions
    assert factory.call_count == 1


def test_answer_question_empty_response():
    service, _ = service_with(make_client(""))
    assert service.answer_question("Why?", "ctx") == ANSWER_EMPTY


def test_answer_question_rejects_blank_question():
    service, _ = service_with(make_client())
    with pytest.raises(ValueError):
        service.answer_question("  ", "ctx")


def test_uninitialized_client_raises_configuration_error():
    service, _ = service_with(make_client())
    service._client = None
    with pytest.raises(ConfigurationError):
        service.answer_question("Why?", "ctx")
    with pytest.raises(ConfigurationError):
        service.generate_topic_content("Cats")


def test_explain_image_sends_image_and_prompt():
    client = make_client("A happy dog playing.")
    service, _ = service_with(client, vision_model="vision-test")
    answer = service.explain_image(b"\x89PNG fake", "es", mime_type="image/png")
    assert answer == "A happy dog playing."
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "vision-test"
    image_part, prompt = kwargs["contents"]
    assert image_part.inline_data.data == b"\x89PNG fake"
    assert image_part.inline_data.mime_type == "image/png"
    assert "in es language" in prompt


def test_explain_image_falls_back_on_failure():
    service, _ = service_with(make_client(RuntimeError("bad image")))
    assert service.explain_image(b"img") == IMAGE_FAILED


def test_explain_image_empty_response():
    service, _ = service_with(make_client(None))
    assert service.explain_image(b"img") == IMAGE_EMPTY


def test_explain_image_rejects_empty_bytes():
    service, _ = service_with(make_client())
    with pytest.raises(ValueError):
        service.explain_image(b"")


def test_calls_are_serialized():
    active = []
    overlaps = []
    lock = threading.Lock()

    def slow_generate(model, contents):
        with lock:
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
        threading.Event().wait(0.01)
        with lock:
            active.pop()
        return MagicMock(text="ok")

    client = make_client()
    client.models.generate_content = slow_generate
    service, _ = service_with(client)
    threads = [
        threading.Thread(target=service.answer_question, args=(f"q{i}", "ctx"))
        for i in range(5)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert overlaps == []
