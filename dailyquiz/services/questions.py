from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.errors import AuthorizationError, ForbiddenError, NotFoundError, ValidationError
from dailyquiz.core.security import is_admin_key
from dailyquiz.models.base import utcnow
from dailyquiz.models.question import QUESTION_KINDS, Contributor, Question


logger = logging.getLogger(__name__)


LIST_FILTERS = ("pending", "approved", "all")
LIST_PAGE_SIZE = 100
MODERATION_ACTIONS = ("approve", "reject", "delete")


def clean_variants(values: Optional[Iterable[Any]]) -> List[str]:
    """Drop blanks, keep order. Stored as typed; matching normalizes later."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [str(v).strip() for v in values if v is not None and str(v).strip()]


def contributor_info(contributor: Optional[Contributor]) -> Optional[Dict[str, Any]]:
    if contributor is None:
        return None
    return {"name": contributor.name, "photo_url": contributor.photo_url}


def question_to_dict(q: Question) -> Dict[str, Any]:
    """Admin view of a question, accepted answers included."""
    return {
        "id": q.id,
        "type": q.type,
        "status": q.status,
        "question_text": q.question_text,
        "image_url": q.image_url,
        "youtube_url": q.youtube_url,
        "youtube_start_seconds": q.youtube_start_seconds,
        "youtube_duration_seconds": q.youtube_duration_seconds,
        "audio_url": q.audio_url,
        "accepted_artists": q.accepted_artists,
        "accepted_tracks": q.accepted_tracks,
        "accepted_answers": q.accepted_answers,
        "created_at": q.created_at,
        "approved_at": q.approved_at,
        "contributor": contributor_info(q.contributor),
    }


def build_question(payload: Dict[str, Any]) -> Question:
    """Validate a submission and build an unsaved Question (status not set)."""
    kind = payload.get("type")
    if kind not in QUESTION_KINDS:
        raise ValidationError("invalid_type")

    if kind == "snippet":
        url = (payload.get("youtube_url") or "").strip()
        artists = clean_variants(payload.get("accepted_artists"))
        tracks = clean_variants(payload.get("accepted_tracks"))
        if not url or not artists or not tracks:
            raise ValidationError("missing_fields")
        return Question(
            type=kind,
            youtube_url=url,
            youtube_start_seconds=max(int(payload.get("youtube_start_seconds") or 0), 0),
            youtube_duration_seconds=max(int(payload.get("youtube_duration_seconds") or 30), 1),
            audio_url=payload.get("audio_url") or None,
            accepted_artists=artists,
            accepted_tracks=tracks,
            accepted_answers=[],
        )

    text = (payload.get("question_text") or "").strip()
    answers = clean_variants(payload.get("accepted_answers"))
    if not text or not answers:
        raise ValidationError("missing_fields")
    return Question(
        type=kind,
        question_text=text,
        image_url=payload.get("image_url") or None,
        accepted_artists=[],
        accepted_tracks=[],
        accepted_answers=answers,
    )


async def find_active_contributor(session: AsyncSession, user_id: str) -> Contributor:
    contributor = await session.scalar(select(Contributor).where(Contributor.user_id == user_id))
    if contributor is None or not contributor.is_active:
        raise ForbiddenError("not_contributor")
    return contributor


async def submit_question(
    session: AsyncSession,
    payload: Dict[str, Any],
    *,
    admin_key: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Question:
    """Create a question.

    Admin submissions go straight to ``approved``. Everyone else has to be a
    registered, active contributor and lands in ``pending``.
    """
    question = build_question(payload)

    if is_admin_key(admin_key):
        question.status = "approved"
        question.approved_at = utcnow()
    elif user_id:
        contributor = await find_active_contributor(session, user_id)
        question.status = "pending"
        question.contributor_id = contributor.id
    else:
        raise AuthorizationError()

    session.add(question)
    await session.commit()
    await session.refresh(question, attribute_names=["contributor"])
    logger.info("question %s submitted as %s (%s)", question.id, question.status, question.type)
    return question


async def moderate_question(session: AsyncSession, *, question_id: Optional[int], action: Optional[str]) -> str:
    if not question_id or not action:
        raise ValidationError("missing_fields")
    if action not in MODERATION_ACTIONS:
        raise ValidationError("invalid_action")

    question = await session.get(Question, question_id)
    if question is None:
        raise NotFoundError("question_not_found")

    if action == "delete":
        await session.execute(delete(Question).where(Question.id == question_id))
        result = "deleted"
    elif action == "approve":
        question.status = "approved"
        question.approved_at = utcnow()
        result = "approved"
    else:
        question.status = "rejected"
        result = "rejected"

    await session.commit()
    logger.info("question %s %s", question_id, result)
    return result


async def list_questions(session: AsyncSession, *, status_filter: str = "pending") -> List[Question]:
    if status_filter not in LIST_FILTERS:
        raise ValidationError("invalid_filter")

    stmt = select(Question).order_by(Question.created_at.desc(), Question.id.desc()).limit(LIST_PAGE_SIZE)
    if status_filter != "all":
        stmt = stmt.where(Question.status == status_filter)
    rows = await session.execute(stmt)
    return list(rows.scalars().all())
