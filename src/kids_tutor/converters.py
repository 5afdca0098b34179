"""Column codecs for the tutor_sessions table."""
import json
from datetime import datetime


def encode_list(values: list[str] | None) -> str | None:
    if values is None:
        return None
    return json.dumps(list(values))


def decode_list(value: str | None) -> list[str] | None:
    if value is None:
        return None
    items = json.loads(value)
    if not isinstance(items, list):
        raise ValueError(f"Expected a JSON list, got {type(items).__name__}")
    return [str(item) for item in items]


def encode_timestamp(moment: datetime | None) -> str | None:
    # Fixed precision keeps lexical order equal to chronological order.
    if moment is None:
        return None
    return moment.isoformat(timespec="microseconds")


def decode_timestamp(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)
