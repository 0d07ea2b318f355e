from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Generic, Hashable, Optional, Tuple, TypeVar

import httpx
import yt_dlp
from yt_dlp.utils import YoutubeDLError

from dailyquiz.core.config import settings
from dailyquiz.core.errors import UpstreamError


logger = logging.getLogger(__name__)


WATCH_URL = "https://www.youtube.com/watch?v={media_id}"
# low bitrate is plenty for a 30 second snippet; mp4 first for browser support
YDL_FORMAT_AUDIO = "worstaudio[ext=m4a]/worstaudio[ext=webm]/worstaudio/worst"
MIME_BY_EXT = {
    "m4a": "audio/mp4",
    "mp4": "audio/mp4",
    "webm": "audio/webm",
    "weba": "audio/webm",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "opus": "audio/ogg",
}

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ExpiringCache(Generic[K, V]):
    """Small value+expiry map, refreshed lazily by the owner."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._items: Dict[K, Tuple[V, float]] = {}

    def get(self, key: K) -> Optional[V]:
        item = self._items.get(key)
        if item is None:
            return None
        value, expires_at = item
        if self._clock() >= expires_at:
            del self._items[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        now = self._clock()
        self._items = {k: item for k, item in self._items.items() if item[1] > now}
        self._items[key] = (value, now + self.ttl_seconds)

    def pop(self, key: K) -> None:
        self._items.pop(key, None)


@dataclass
class ResolvedAudio:
    url: str
    mime_type: str
    http_headers: Dict[str, str] = field(default_factory=dict)
    filesize: Optional[int] = None
    duration: Optional[float] = None
    abr: Optional[float] = None  # kbit/s

    def byte_offset(self, start_seconds: int) -> int:
        """Approximate byte position of ``start_seconds`` into the file."""
        if start_seconds <= 0:
            return 0
        if self.filesize and self.duration:
            offset = int(self.filesize * start_seconds / self.duration)
            return min(offset, max(self.filesize - 1, 0))
        if self.abr:
            return int(self.abr * 1000 / 8 * start_seconds)
        return 0


def resolved_from_info(info: Dict[str, Any]) -> ResolvedAudio:
    url = info.get("url")
    if not url:
        raise UpstreamError()
    ext = info.get("audio_ext") if info.get("audio_ext") not in (None, "none") else info.get("ext")
    return ResolvedAudio(
        url=url,
        mime_type=MIME_BY_EXT.get(ext or "", "audio/mp4"),
        http_headers=dict(info.get("http_headers") or {}),
        filesize=info.get("filesize") or info.get("filesize_approx"),
        duration=info.get("duration"),
        abr=info.get("abr") or info.get("tbr"),
    )


class AudioStream:
    """One upstream response being piped to one client."""

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response, content_type: str, chunk_size: int):
        self.client = client
        self.response = response
        self.content_type = content_type
        self.chunk_size = chunk_size

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        # the next chunk is only read once the client took the previous one
        try:
            async for chunk in self.response.aiter_bytes(self.chunk_size):
                yield chunk
        except httpx.HTTPError as e:
            logger.error("upstream audio stream broke: %r", e)
            raise UpstreamError() from e
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        await self.response.aclose()
        await self.client.aclose()


class YouTubeAudioSource:
    """Audio-only fetches from YouTube for the stream proxy."""

    def __init__(
        self,
        *,
        chunk_size: int = 64 * 1024,
        url_ttl_seconds: float = 3600,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.transport = transport
        # signed media URLs expire upstream after a few hours
        self.resolved: ExpiringCache[str, ResolvedAudio] = ExpiringCache(url_ttl_seconds)

    @classmethod
    def from_settings(cls) -> "YouTubeAudioSource":
        return cls(
            chunk_size=settings.STREAM_CHUNK_SIZE,
            url_ttl_seconds=settings.STREAM_URL_TTL_SECONDS,
            timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        )

    def _extract_info(self, media_id: str) -> Dict[str, Any]:
        ydl_opts = {
            "format": YDL_FORMAT_AUDIO,
            "quiet": True,
            "no_warnings": True,
            "noplaylist": True,
            "skip_download": True,
        }
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            return ydl.extract_info(WATCH_URL.format(media_id=media_id), download=False)

    async def resolve(self, media_id: str) -> ResolvedAudio:
        cached = self.resolved.get(media_id)
        if cached is not None:
            return cached
        try:
            info = await asyncio.to_thread(self._extract_info, media_id)
        except YoutubeDLError as e:
            logger.error("yt-dlp could not resolve %s: %s", media_id, e)
            raise UpstreamError() from e
        audio = resolved_from_info(info or {})
        self.resolved.set(media_id, audio)
        return audio

    async def open_stream(self, media_id: str, start_seconds: int = 0) -> AudioStream:
        audio = await self.resolve(media_id)
        headers = dict(audio.http_headers)
        offset = audio.byte_offset(start_seconds)
        if offset:
            headers["Range"] = f"bytes={offset}-"

        client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True, transport=self.transport)
        response: Optional[httpx.Response] = None
        try:
            request = client.build_request("GET", audio.url, headers=headers)
            response = await client.send(request, stream=True)
            response.raise_for_status()
        except httpx.HTTPError as e:
            if response is not None:
                await response.aclose()
            await client.aclose()
            # a stale signed URL is the usual cause; resolve again next time
            self.resolved.pop(media_id)
            logger.error("upstream audio fetch failed for %s: %r", media_id, e)
            raise UpstreamError() from e

        content_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not content_type.startswith("audio/"):
            content_type = audio.mime_type
        return AudioStream(client, response, content_type, self.chunk_size)
