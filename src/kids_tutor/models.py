"""Data classes for the tutor domain model."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from kids_tutor.errors import InvalidSessionError

MAX_IMAGE_URLS = 3
MAX_YOUTUBE_LINKS = 2


@dataclass(frozen=True)
class TopicContent:
    content: str
    image_urls: list[str] = field(default_factory=list)
    youtube_links: list[str] = field(default_factory=list)


@dataclass
class TutorSession:
    topic: str
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)
    last_accessed_at: Optional[datetime] = None
    language: str = "en"
    thumbnail_url: Optional[str] = None
    content: Optional[str] = None
    image_urls: Optional[list[str]] = None
    youtube_links: Optional[list[str]] = None

    def __post_init__(self):
        if self.last_accessed_at is None:
            self.last_accessed_at = self.created_at

    @property
    def has_content(self) -> bool:
        return self.content is not None

    def validate(self) -> None:
        """Raise InvalidSessionError unless the session is fit to be stored."""
        if not self.topic or not self.topic.strip():
            raise InvalidSessionError("Topic must not be empty")
        generated = (self.content, self.image_urls, self.youtube_links)
        present = [value is not None for value in generated]
        if any(present) and not all(present):
            raise InvalidSessionError("Content, image URLs and YouTube links must be set together")
        if self.image_urls is not None and len(self.image_urls) > MAX_IMAGE_URLS:
            raise InvalidSessionError(f"At most {MAX_IMAGE_URLS} image URLs are allowed")
        if self.youtube_links is not None and len(self.youtube_links) > MAX_YOUTUBE_LINKS:
            raise InvalidSessionError(f"At most {MAX_YOUTUBE_LINKS} YouTube links are allowed")

    def with_content(self, topic_content: TopicContent, language: str | None = None) -> "TutorSession":
        """Return a copy carrying all three generated fields at once."""
        return replace(
            self,
            content=topic_content.content,
            image_urls=list(topic_content.image_urls[:MAX_IMAGE_URLS]),
            youtube_links=list(topic_content.youtube_links[:MAX_YOUTUBE_LINKS]),
            language=language or self.language,
        )
