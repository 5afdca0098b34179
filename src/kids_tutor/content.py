"""Content generation against Google Gemini via the google-genai SDK."""
import logging
import threading
from typing import Any, Callable

from google import genai
from google.genai import types

from kids_tutor.config import DEFAULT_MODEL
from kids_tutor.errors import ConfigurationError, RemoteGenerationError
from kids_tutor.models import TopicContent
from kids_tutor.parser import parse_response
from kids_tutor.prompts import image_prompt, question_prompt, topic_prompt

logger = logging.getLogger(__name__)

CONTENT_FALLBACK = "Sorry, I couldn't generate content for this topic."
ANSWER_EMPTY = "Sorry, I couldn't answer this question."
ANSWER_FAILED = "Sorry, I couldn't answer this question right now. Please try again."
IMAGE_EMPTY = "Sorry, I couldn't explain this image."
IMAGE_FAILED = "Sorry, I couldn't explain this image right now. Please try again."


def create_client(api_key: str | None) -> genai.Client:
    """Build a Gemini client, refusing to start without an API key."""
    if not api_key or not api_key.strip():
        raise ConfigurationError(
            "Gemini API key not found. Set the GEMINI_API_KEY environment variable."
        )
    return genai.Client(api_key=api_key)


class ContentService:
    """Owns one AI client and serialises every call made through it.

    ``client_factory`` is called once here and again before the single retry
    of a failed tutorial generation.
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        vision_model: str = DEFAULT_MODEL,
        client_factory: Callable[[str | None], Any] = create_client,
    ):
        self.model = model
        self.vision_model = vision_model
        self._api_key = api_key
        self._client_factory = client_factory
        self._lock = threading.Lock()
        self._client = client_factory(api_key)

    def _reinitialize(self) -> None:
        self._client = self._client_factory(self._api_key)

    def _require_client(self):
        if self._client is None:
            raise ConfigurationError("AI model not initialized")
        return self._client

    def _generate(self, model: str, contents) -> str | None:
        response = self._require_client().models.generate_content(model=model, contents=contents)
        return response.text

    def generate_topic_content(self, topic: str, language: str = "en") -> TopicContent:
        prompt = topic_prompt(topic, language)
        with self._lock:
            self._require_client()
            try:
                text = self._generate(self.model, prompt)
            except Exception as first_error:
                logger.warning("Content generation for %r failed (%s); retrying once", topic, first_error)
                try:
                    self._reinitialize()
                    text = self._generate(self.model, prompt)
                except ConfigurationError:
                    raise
                except Exception as e:
                    raise RemoteGenerationError(f"Failed to generate content: {e}") from e
        if not text:
            logger.warning("Empty response for topic %r; using fallback text", topic)
            text = CONTENT_FALLBACK
        return parse_response(text)

    def answer_question(self, question: str, context: str, language: str = "en") -> str:
        if not question or not question.strip():
            raise ValueError("question must not be empty")
        prompt = question_prompt(question, context, language)
        with self._lock:
            self._require_client()
            try:
                text = self._generate(self.model, prompt)
            except Exception as e:
                logger.warning("Answering question failed: %s", e)
                return ANSWER_FAILED
        return text or ANSWER_EMPTY

    def explain_image(self, image_bytes: bytes, language: str = "en", mime_type: str = "image/jpeg") -> str:
        if not image_bytes:
            raise ValueError("image_bytes must not be empty")
        contents = [
            types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
            image_prompt(language),
        ]
        with self._lock:
            self._require_client()
            try:
                text = self._generate(self.vision_model, contents)
            except Exception as e:
                logger.warning("Explaining image failed: %s", e)
                return IMAGE_FAILED
        return text or IMAGE_EMPTY
