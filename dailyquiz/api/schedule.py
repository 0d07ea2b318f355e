import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.db import get_session
from dailyquiz.core.errors import ValidationError
from dailyquiz.core.security import require_admin
from dailyquiz.services.scheduler import (
    activate_today,
    auto_fill,
    entry_to_dict,
    quiz_today,
    run_daily,
    schedule_question,
    upcoming_schedule,
)


router = APIRouter(prefix="/quiz/schedule", tags=["schedule"])


class ScheduleActionIn(BaseModel):
    key: Optional[str] = None
    action: Optional[str] = None  # schedule|auto-fill|activate-today|daily
    question_id: Optional[int] = None
    date: Optional[dt.date] = None
    type: Optional[str] = None
    horizon_days: Optional[int] = None


@router.get("")
async def get_schedule(key: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    require_admin(key)
    data = await upcoming_schedule(session, today=quiz_today())
    return {"ok": True, **data}


@router.post("")
async def schedule_action(body: ScheduleActionIn, session: AsyncSession = Depends(get_session)):
    require_admin(body.key)
    today = quiz_today()

    if body.action == "schedule":
        entry = await schedule_question(session, question_id=body.question_id, day=body.date, kind=body.type)
        return {"ok": True, "action": "scheduled", "entry": entry_to_dict(entry)}

    if body.action == "auto-fill":
        created = await auto_fill(session, today=today, horizon_days=body.horizon_days)
        return {"ok": True, "action": "auto-filled", "scheduled": created}

    if body.action == "activate-today":
        entry = await activate_today(session, today=today)
        if entry is None:
            return {"ok": True, "action": "no_quiz_today"}
        return {"ok": True, "action": "activated_new_quiz", "entry_id": entry.id}

    if body.action == "daily":
        created, entry = await run_daily(session, today=today)
        return {"ok": True, "action": "daily", "scheduled": created, "entry_id": entry.id if entry is not None else None}

    raise ValidationError("invalid_action")
