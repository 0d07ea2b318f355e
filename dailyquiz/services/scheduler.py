from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.config import settings
from dailyquiz.core.errors import NotFoundError, PersistenceError, ValidationError
from dailyquiz.models.question import QUESTION_KINDS, Question
from dailyquiz.models.schedule import ScheduleEntry
from dailyquiz.services.attempts import attempt_summary, has_saved_score, load_attempts
from dailyquiz.services.obfuscation import build_proxy_url
from dailyquiz.services.questions import contributor_info


logger = logging.getLogger(__name__)


# weekday() -> kind; other days have no quiz
SLOT_KINDS: Dict[int, str] = {
    0: "snippet",   # Monday
    3: "trivia",    # Thursday
}
UPCOMING_LIMIT = 14


def quiz_today(tz_name: Optional[str] = None) -> date:
    return datetime.now(ZoneInfo(tz_name or settings.QUIZ_TIMEZONE)).date()


def slot_kind(day: date) -> Optional[str]:
    return SLOT_KINDS.get(day.weekday())


def slot_dates(start: date, horizon_days: int) -> List[Tuple[date, str]]:
    slots = []
    for offset in range(horizon_days):
        day = start + timedelta(days=offset)
        kind = slot_kind(day)
        if kind:
            slots.append((day, kind))
    return slots


def next_quiz_day(today: date) -> Dict[str, str]:
    """First slot day from today on (today included)."""
    for offset in range(7):
        day = today + timedelta(days=offset)
        if slot_kind(day):
            return {"weekday": day.strftime("%A"), "date": day.isoformat()}
    raise RuntimeError("weekly schedule has no quiz days")


async def _auto_fill_pass(session: AsyncSession, today: date, horizon_days: int) -> int:
    existing = (
        await session.execute(
            select(ScheduleEntry.scheduled_for, ScheduleEntry.question_id).where(
                ScheduleEntry.scheduled_for >= today
            )
        )
    ).all()
    taken_dates = {day for day, _ in existing}
    taken_ids = {qid for _, qid in existing if qid is not None}

    pools: Dict[str, List[int]] = {}
    for kind in set(SLOT_KINDS.values()):
        ids = (
            await session.execute(
                select(Question.id)
                .where(Question.type == kind, Question.status == "approved")
                .order_by(Question.created_at, Question.id)
            )
        ).scalars().all()
        pools[kind] = [qid for qid in ids if qid not in taken_ids]

    created = 0
    for day, kind in slot_dates(today, horizon_days):
        if day in taken_dates:
            continue
        pool = pools[kind]
        if not pool:
            # pool exhausted, slot stays empty
            continue
        session.add(
            ScheduleEntry(
                scheduled_for=day,
                type=kind,
                question_id=pool.pop(0),
                is_active=False,
                previous_answer_revealed=False,
            )
        )
        created += 1

    if created:
        await session.commit()
    return created


async def auto_fill(session: AsyncSession, *, today: date, horizon_days: Optional[int] = None) -> int:
    """Fill empty slot days in the next ``horizon_days`` with approved questions.

    Safe to re-run: filled dates and already scheduled questions are skipped.
    Two operators racing collide on the unique date; the loser re-reads and
    tries once more.
    """
    horizon = settings.AUTOFILL_HORIZON_DAYS if horizon_days is None else horizon_days
    for attempt in (1, 2):
        try:
            created = await _auto_fill_pass(session, today, horizon)
        except IntegrityError as e:
            await session.rollback()
            if attempt == 2:
                raise PersistenceError() from e
            logger.warning("auto-fill raced with another writer, retrying")
            continue
        logger.info("auto-fill from %s (%d days): %d entries created", today, horizon, created)
        return created
    return 0


async def activate_today(session: AsyncSession, *, today: date) -> Optional[ScheduleEntry]:
    """Make today's entry the only active one; returns it, or None if today has none.

    Both updates run in one transaction, so readers never observe two live
    quizzes.
    """
    await session.execute(
        update(ScheduleEntry)
        .where(ScheduleEntry.scheduled_for != today, ScheduleEntry.is_active.is_(True))
        .values(is_active=False)
    )
    todays = await session.scalar(select(ScheduleEntry).where(ScheduleEntry.scheduled_for == today))
    if todays is not None:
        todays.is_active = True
        todays.previous_answer_revealed = True
    await session.commit()

    if todays is None:
        logger.info("no quiz scheduled for %s, all entries deactivated", today)
    else:
        logger.info("activated schedule entry %s for %s", todays.id, today)
    return todays


async def run_daily(session: AsyncSession, *, today: date) -> Tuple[int, Optional[ScheduleEntry]]:
    """Daily job: top up the schedule, then switch to today's entry."""
    created = await auto_fill(session, today=today)
    entry = await activate_today(session, today=today)
    return created, entry


async def schedule_question(
    session: AsyncSession,
    *,
    question_id: Optional[int],
    day: Optional[date],
    kind: Optional[str] = None,
) -> ScheduleEntry:
    """Manual placement: replace the question of an existing slot or create one."""
    if not question_id or day is None:
        raise ValidationError("missing_fields")
    if kind is not None and kind not in QUESTION_KINDS:
        raise ValidationError("invalid_type")

    question = await session.get(Question, question_id)
    if question is None:
        raise NotFoundError("question_not_found")

    entry = await session.scalar(select(ScheduleEntry).where(ScheduleEntry.scheduled_for == day))
    if entry is None:
        entry = ScheduleEntry(
            scheduled_for=day,
            type=kind or question.type,
            is_active=False,
            previous_answer_revealed=False,
        )
        session.add(entry)
    elif kind:
        entry.type = kind
    entry.question_id = question.id
    await session.commit()
    await session.refresh(entry, attribute_names=["question"])
    logger.info("question %s scheduled for %s", question.id, day)
    return entry


def entry_to_dict(entry: ScheduleEntry) -> Dict[str, Any]:
    q = entry.question
    return {
        "id": entry.id,
        "scheduled_for": entry.scheduled_for.isoformat(),
        "type": entry.type,
        "is_active": entry.is_active,
        "question": None if q is None else {
            "id": q.id,
            "type": q.type,
            "status": q.status,
            "question_text": q.question_text,
            "youtube_url": q.youtube_url,
            "accepted_artists": q.accepted_artists,
            "accepted_tracks": q.accepted_tracks,
            "contributor": contributor_info(q.contributor),
        },
    }


async def upcoming_schedule(session: AsyncSession, *, today: date) -> Dict[str, Any]:
    entries = (
        await session.execute(
            select(ScheduleEntry)
            .where(ScheduleEntry.scheduled_for >= today)
            .order_by(ScheduleEntry.scheduled_for)
            .limit(UPCOMING_LIMIT)
        )
    ).scalars().all()
    available = (
        await session.execute(
            select(Question)
            .where(Question.status == "approved")
            .order_by(Question.created_at, Question.id)
        )
    ).scalars().all()
    return {
        "schedule": [entry_to_dict(e) for e in entries],
        "available_questions": [
            {
                "id": q.id,
                "type": q.type,
                "question_text": q.question_text,
                "youtube_url": q.youtube_url,
                "created_at": q.created_at,
                "contributor": contributor_info(q.contributor),
            }
            for q in available
        ],
    }


def _solution(question: Question) -> Dict[str, Any]:
    if question.type == "snippet":
        answer: Any = {
            "artist": (question.accepted_artists or [None])[0],
            "track": (question.accepted_tracks or [None])[0],
        }
    else:
        answer = (question.accepted_answers or [None])[0]
    return {
        "type": question.type,
        "question": question.question_text,
        "answer": answer,
        "contributor": contributor_info(question.contributor),
    }


def _public_quiz(question: Question) -> Dict[str, Any]:
    """What players see. Accepted answers and the source URL stay server-side."""
    audio_url = None
    if question.type == "snippet":
        audio_url = question.audio_url or build_proxy_url(question.youtube_url, question.youtube_start_seconds)
    return {
        "id": question.id,
        "type": question.type,
        "question_text": question.question_text,
        "image_url": question.image_url,
        "audio_url": audio_url,
        "start_seconds": question.youtube_start_seconds,
        "duration_seconds": question.youtube_duration_seconds,
        "contributor": contributor_info(question.contributor),
    }


async def get_current_quiz(
    session: AsyncSession,
    *,
    today: date,
    ip_address: str,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    entry = await session.scalar(
        select(ScheduleEntry)
        .where(ScheduleEntry.scheduled_for <= today, ScheduleEntry.is_active.is_(True))
        .order_by(ScheduleEntry.scheduled_for.desc())
        .limit(1)
    )
    if entry is None or entry.question is None:
        return {"quiz": None, "message": "no_active_quiz", "next_quiz_day": next_quiz_day(today)}

    previous_answer = None
    if entry.previous_answer_revealed:
        previous = await session.scalar(
            select(ScheduleEntry)
            .where(ScheduleEntry.scheduled_for < entry.scheduled_for)
            .order_by(ScheduleEntry.scheduled_for.desc())
            .limit(1)
        )
        if previous is not None and previous.question is not None:
            previous_answer = _solution(previous.question)

    question = entry.question
    attempts = await load_attempts(session, question.id, ip_address)
    score_saved = False
    if user_id:
        score_saved = await has_saved_score(session, user_id=user_id, question_id=question.id)

    return {
        "quiz": _public_quiz(question),
        "scheduled_for": entry.scheduled_for.isoformat(),
        "attempts": attempt_summary(attempts),
        "previous_answer": previous_answer,
        "score_saved": score_saved,
    }
