import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dailyquiz.api import contributors, questions, quiz, schedule, stream
from dailyquiz.core.config import settings
from dailyquiz.core.db import dispose_engine, init_engine_if_needed
from dailyquiz.core.errors import register_error_handlers
from dailyquiz.core.logging import setup_logging
from dailyquiz.services.audio_source import YouTubeAudioSource


setup_logging()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Daily Quiz Backend",
    version="0.1.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

app.include_router(questions.router)
app.include_router(contributors.router)
app.include_router(schedule.router)
app.include_router(quiz.router)
app.include_router(stream.router)

# owned by the app so every stream shares one resolved-URL cache
app.state.audio_source = YouTubeAudioSource.from_settings()


@app.get("/")
async def root():
    return {"message": "Daily quiz is up"}


def check_settings():
    if not settings.OBFUSCATION_KEY:
        raise RuntimeError("OBFUSCATION_KEY must not be empty")
    if not settings.ADMIN_KEY:
        logger.warning("ADMIN_KEY is not set, admin endpoints will refuse every call")


@app.on_event("startup")
async def startup():
    check_settings()
    init_engine_if_needed()


@app.on_event("shutdown")
async def shutdown():
    await dispose_engine()
