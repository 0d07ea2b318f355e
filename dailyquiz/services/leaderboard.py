from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.models.game import Profile, Score


DEFAULT_LIMIT = 10
MAX_LIMIT = 100
ANONYMOUS = "anonymous"


def clamp_limit(limit: int | None) -> int:
    if not limit or limit < 1:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


async def compute_leaderboard(session: AsyncSession, *, limit: int | None = DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    """Per-user totals, recomputed on every call.

    Equal totals are ordered by user id so the listing is stable between
    calls.
    """
    totals = (
        select(
            Score.user_id.label("user_id"),
            func.sum(Score.points_earned).label("total_points"),
            func.count(Score.id).label("questions_answered"),
        )
        .group_by(Score.user_id)
        .subquery()
    )
    stmt = (
        select(totals, Profile.display_name, Profile.photo_url)
        .outerjoin(Profile, Profile.user_id == totals.c.user_id)
        .order_by(totals.c.total_points.desc(), totals.c.user_id)
        .limit(clamp_limit(limit))
    )
    rows = (await session.execute(stmt)).all()

    return [
        {
            "rank": rank,
            "user_id": row.user_id,
            "display_name": row.display_name or ANONYMOUS,
            "photo_url": row.photo_url,
            "total_points": int(row.total_points or 0),
            "questions_answered": int(row.questions_answered),
        }
        for rank, row in enumerate(rows, start=1)
    ]
