import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from dailyquiz.core.errors import ValidationError
from dailyquiz.services.audio_source import YouTubeAudioSource
from dailyquiz.services.obfuscation import decode_reference, is_media_id


logger = logging.getLogger(__name__)


router = APIRouter(prefix="/quiz", tags=["stream"])


NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "X-Content-Type-Options": "nosniff",
}


def get_audio_source(request: Request) -> YouTubeAudioSource:
    return request.app.state.audio_source


@router.get("/stream")
async def stream_audio(
    id: str = Query(""),
    start: int = Query(0, ge=0),
    source: YouTubeAudioSource = Depends(get_audio_source),
):
    media_id = decode_reference(id)
    if not is_media_id(media_id):
        # never echo what the token decoded to
        logger.warning("rejected stream token (%d chars)", len(id))
        raise ValidationError("invalid_id")

    stream = await source.open_stream(media_id, start)
    # runs on client disconnect too, so the upstream response is always released
    return StreamingResponse(
        stream.iter_chunks(),
        media_type=stream.content_type,
        headers=NO_CACHE_HEADERS,
        background=BackgroundTask(stream.aclose),
    )
