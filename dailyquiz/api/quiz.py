from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.db import get_session
from dailyquiz.core.security import caller_identity, get_current_user_id
from dailyquiz.services.attempts import save_score, submit_guess
from dailyquiz.services.leaderboard import DEFAULT_LIMIT, compute_leaderboard
from dailyquiz.services.scheduler import get_current_quiz, quiz_today


router = APIRouter(prefix="/quiz", tags=["quiz"])


class AnswerIn(BaseModel):
    question_id: Optional[int] = None
    artist_answer: Optional[str] = None  # snippet
    track_answer: Optional[str] = None   # snippet
    answer: Optional[str] = None         # trivia


class AnswerOut(BaseModel):
    ok: bool = True
    is_correct: bool
    attempt_number: int
    attempts_remaining: int
    points_earned: int


class SaveScoreIn(BaseModel):
    question_id: Optional[int] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    is_archive: bool = False


class SaveScoreOut(BaseModel):
    ok: bool = True
    points_earned: int
    attempts_used: int


class LeaderboardRow(BaseModel):
    rank: int
    user_id: str
    display_name: str
    photo_url: Optional[str]
    total_points: int
    questions_answered: int


class LeaderboardOut(BaseModel):
    ok: bool = True
    leaderboard: list[LeaderboardRow]


@router.get("/current")
async def current_quiz(
    request: Request,
    user_id: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    data = await get_current_quiz(
        session,
        today=quiz_today(),
        ip_address=caller_identity(request),
        user_id=user_id,
    )
    return {"ok": True, **data}


@router.post("/answer", response_model=AnswerOut)
async def answer(body: AnswerIn, request: Request, session: AsyncSession = Depends(get_session)):
    result = await submit_guess(
        session,
        question_id=body.question_id,
        ip_address=caller_identity(request),
        artist=body.artist_answer,
        track=body.track_answer,
        answer=body.answer,
    )
    return AnswerOut(
        is_correct=result.is_correct,
        attempt_number=result.attempt_number,
        attempts_remaining=result.attempts_remaining,
        points_earned=result.points_earned,
    )


@router.post("/save-score", response_model=SaveScoreOut)
async def save_score_endpoint(
    body: SaveScoreIn,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    score = await save_score(
        session,
        question_id=body.question_id,
        user_id=user_id,
        ip_address=caller_identity(request),
        display_name=body.display_name,
        photo_url=body.photo_url,
        is_archive=body.is_archive,
    )
    return SaveScoreOut(points_earned=score.points_earned, attempts_used=score.attempts_used)


@router.get("/leaderboard", response_model=LeaderboardOut)
async def leaderboard(
    limit: int = Query(DEFAULT_LIMIT),
    session: AsyncSession = Depends(get_session),
):
    rows = await compute_leaderboard(session, limit=limit)
    return LeaderboardOut(leaderboard=[LeaderboardRow(**r) for r in rows])
