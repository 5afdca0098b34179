"""Turn raw AI tutorial text into cleaned prose plus image and video links."""
import re

from kids_tutor.models import MAX_IMAGE_URLS, MAX_YOUTUBE_LINKS, TopicContent

URL_RE = re.compile(r'https?://[^\s<>"]+?(?:\.[^\s<>"]+)+')
IMAGE_SUFFIX_RE = re.compile(r"\.(?:jpg|jpeg|png|gif)$", re.IGNORECASE)
YOUTUBE_RE = re.compile(r"(?:https?://)?(?:www\.)?(?:youtube\.com/watch\?v=|youtu\.be/)([^&\s]+)")

YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={}"


def _first_unique(values, limit: int) -> list[str]:
    seen = []
    for value in values:
        if value not in seen:
            seen.append(value)
        if len(seen) == limit:
            break
    return seen


def extract_image_urls(text: str, limit: int = MAX_IMAGE_URLS) -> list[str]:
    candidates = (m.group(0) for m in URL_RE.finditer(text))
    return _first_unique((url for url in candidates if IMAGE_SUFFIX_RE.search(url)), limit)


def extract_youtube_links(text: str, limit: int = MAX_YOUTUBE_LINKS) -> list[str]:
    return _first_unique((YOUTUBE_WATCH_URL.format(m.group(1)) for m in YOUTUBE_RE.finditer(text)), limit)


def clean_text(text: str) -> str:
    """Strip every URL and video reference, then tidy the whitespace left behind."""
    text = URL_RE.sub("", text)
    text = YOUTUBE_RE.sub("", text)
    text = re.sub(r"[ \t]{2,}", " ", text)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def parse_response(raw_text: str) -> TopicContent:
    """Parse a model response; never raises.

    Images are URLs ending in .jpg/.jpeg/.png/.gif (first 3, in order of
    appearance). Videos are youtube.com/watch?v= or youtu.be/ references
    rewritten to the watch URL form (first 2).
    """
    if not isinstance(raw_text, str) or not raw_text:
        return TopicContent(content="", image_urls=[], youtube_links=[])
    return TopicContent(
        content=clean_text(raw_text),
        image_urls=extract_image_urls(raw_text),
        youtube_links=extract_youtube_links(raw_text),
    )
