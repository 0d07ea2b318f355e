"""Media id obfuscation for the audio proxy.

Repeating-key XOR + base64. This keeps the YouTube id out of casual view in
network traffic; it is not encryption and does not stop a motivated reader.
"""
from __future__ import annotations

import base64
import binascii
import logging
import re
from urllib.parse import urlencode

from dailyquiz.core.config import settings


logger = logging.getLogger(__name__)


MEDIA_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
# same URL shapes the admin panel accepts: watch?v=, youtu.be/, embed/, v/, u/<x>/, &v=
_URL_ID_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")

STREAM_PATH = "/quiz/stream"


def _xor(text: str, key: str) -> str:
    if not key:
        raise ValueError("obfuscation key must not be empty")
    return "".join(chr(ord(c) ^ ord(key[i % len(key)])) for i, c in enumerate(text))


def encode_reference(raw_id: str, key: str | None = None) -> str:
    if not raw_id:
        return ""
    mixed = _xor(raw_id, settings.OBFUSCATION_KEY if key is None else key)
    return base64.urlsafe_b64encode(mixed.encode("utf-8", "surrogatepass")).decode("ascii")


def decode_reference(encoded: str, key: str | None = None) -> str | None:
    """Reverse encode_reference. Any malformed input gives None."""
    if not encoded:
        return None
    try:
        padded = encoded + "=" * (-len(encoded) % 4)
        mixed = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", "surrogatepass")
        return _xor(mixed, settings.OBFUSCATION_KEY if key is None else key)
    except (binascii.Error, UnicodeError, ValueError):
        logger.debug("undecodable media reference (%d chars)", len(encoded))
        return None


def is_media_id(value: str | None) -> bool:
    return bool(value) and MEDIA_ID_RE.match(value) is not None


def extract_media_id(url: str | None) -> str | None:
    if not url:
        return None
    match = _URL_ID_RE.match(url.strip())
    if not match:
        return None
    candidate = match.group(2)
    return candidate if len(candidate) == 11 else None


def build_proxy_url(raw_source_url: str | None, start_seconds: int = 0) -> str | None:
    """Same-origin stream URL for a source URL; None if no media id is found."""
    media_id = extract_media_id(raw_source_url)
    if media_id is None:
        return None
    query = urlencode({"id": encode_reference(media_id), "start": max(int(start_seconds or 0), 0)})
    return f"{STREAM_PATH}?{query}"
