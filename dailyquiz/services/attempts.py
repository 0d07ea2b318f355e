"""Guess validation and scoring.

A caller (network identity) gets three tries per question. Points depend on
the try that was correct: 3, 2 or 1. Saving a score needs a login and is
recomputed here from the stored attempt, never taken from the client.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from dailyquiz.models.base import utcnow
from dailyquiz.models.game import Attempt, Profile, Score
from dailyquiz.models.question import Question


logger = logging.getLogger(__name__)


MAX_ATTEMPTS = 3
ARCHIVE_POINTS = 1


class AnswerError(ConflictError):
    """Guess refused before it was evaluated (already solved, out of tries...)."""


@dataclass
class GuessResult:
    is_correct: bool
    attempt_number: int
    attempts_remaining: int
    points_earned: int


def normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def matches_any(value: Optional[str], variants: Optional[Iterable[str]]) -> bool:
    """Exact match after normalization, no partial matching."""
    guess = normalize(value)
    if not guess:
        return False
    return any(normalize(v) == guess for v in variants or [])


def is_correct_answer(
    question: Question,
    *,
    artist: Optional[str] = None,
    track: Optional[str] = None,
    answer: Optional[str] = None,
) -> bool:
    if question.type == "snippet":
        # both halves must match; callers never learn which one failed
        return matches_any(artist, question.accepted_artists) and matches_any(track, question.accepted_tracks)
    return matches_any(answer, question.accepted_answers)


def points_for_attempt(attempt_number: int) -> int:
    return MAX_ATTEMPTS + 1 - attempt_number


async def load_attempts(session: AsyncSession, question_id: int, ip_address: str) -> List[Attempt]:
    rows = await session.execute(
        select(Attempt)
        .where(Attempt.question_id == question_id, Attempt.ip_address == ip_address)
        .order_by(Attempt.attempt_number)
    )
    return list(rows.scalars().all())


def attempt_summary(attempts: List[Attempt]) -> Dict[str, Any]:
    used = len(attempts)
    return {
        "used": used,
        "remaining": max(MAX_ATTEMPTS - used, 0),
        "has_correct_answer": any(a.is_correct for a in attempts),
        "history": [
            {
                "attempt_number": a.attempt_number,
                "is_correct": a.is_correct,
                "artist_answer": a.artist_answer,
                "track_answer": a.track_answer,
                "answer": a.answer,
            }
            for a in attempts
        ],
    }


async def submit_guess(
    session: AsyncSession,
    *,
    question_id: Optional[int],
    ip_address: str,
    artist: Optional[str] = None,
    track: Optional[str] = None,
    answer: Optional[str] = None,
) -> GuessResult:
    if not question_id:
        raise ValidationError("missing_fields")

    attempts = await load_attempts(session, question_id, ip_address)
    if any(a.is_correct for a in attempts):
        raise AnswerError("already_correct")
    if len(attempts) >= MAX_ATTEMPTS:
        raise AnswerError("max_attempts_reached")

    attempt_number = len(attempts) + 1

    question = await session.get(Question, question_id)
    if question is None:
        raise NotFoundError("question_not_found")

    correct = is_correct_answer(question, artist=artist, track=track, answer=answer)

    session.add(
        Attempt(
            question_id=question_id,
            ip_address=ip_address,
            attempt_number=attempt_number,
            artist_answer=artist or None,
            track_answer=track or None,
            answer=answer or None,
            is_correct=correct,
            created_at=utcnow(),
        )
    )
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent guess from the same identity took this attempt number
        await session.rollback()
        logger.warning("duplicate attempt %s for question %s from %s", attempt_number, question_id, ip_address)
        raise AnswerError("duplicate_attempt")

    return GuessResult(
        is_correct=correct,
        attempt_number=attempt_number,
        attempts_remaining=MAX_ATTEMPTS - attempt_number,
        points_earned=points_for_attempt(attempt_number) if correct else 0,
    )


def _dialect_insert(session: AsyncSession):
    if session.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def upsert_profile(
    session: AsyncSession,
    *,
    user_id: str,
    display_name: Optional[str],
    photo_url: Optional[str] = None,
) -> bool:
    """Insert or overwrite the public profile in one statement.

    Concurrent first saves of one user both land here; ON CONFLICT makes the
    second one an update instead of a primary key violation.
    """
    name = (display_name or "").strip()
    if not name:
        return False
    insert = _dialect_insert(session)
    stmt = insert(Profile).values(
        user_id=user_id,
        display_name=name,
        photo_url=photo_url or None,
        updated_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Profile.user_id],
        set_={
            "display_name": stmt.excluded.display_name,
            "photo_url": stmt.excluded.photo_url,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await session.execute(stmt)
    return True


async def save_score(
    session: AsyncSession,
    *,
    question_id: Optional[int],
    user_id: str,
    ip_address: str,
    display_name: Optional[str] = None,
    photo_url: Optional[str] = None,
    is_archive: bool = False,
) -> Score:
    if not question_id or not user_id:
        raise ValidationError("missing_fields")

    attempt = await session.scalar(
        select(Attempt).where(
            Attempt.question_id == question_id,
            Attempt.ip_address == ip_address,
            Attempt.is_correct.is_(True),
        )
    )
    if attempt is None:
        raise ConflictError("no_correct_attempt_found")

    if await has_saved_score(session, user_id=user_id, question_id=question_id):
        raise ConflictError("score_already_saved")

    await upsert_profile(session, user_id=user_id, display_name=display_name, photo_url=photo_url)

    score = Score(
        user_id=user_id,
        question_id=question_id,
        points_earned=ARCHIVE_POINTS if is_archive else points_for_attempt(attempt.attempt_number),
        attempts_used=attempt.attempt_number,
    )
    session.add(score)
    try:
        await session.commit()
    except IntegrityError as e:
        await session.rollback()
        if await has_saved_score(session, user_id=user_id, question_id=question_id):
            # a concurrent save of the same score won
            raise ConflictError("score_already_saved")
        logger.error("score insert failed for user=%s question=%s: %r", user_id, question_id, e)
        raise PersistenceError() from e

    logger.info("score saved: user=%s question=%s points=%s", user_id, question_id, score.points_earned)
    return score


async def has_saved_score(session: AsyncSession, *, user_id: str, question_id: int) -> bool:
    found = await session.scalar(
        select(Score.id).where(Score.user_id == user_id, Score.question_id == question_id)
    )
    return found is not None
