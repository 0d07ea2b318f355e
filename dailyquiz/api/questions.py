from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.db import get_session
from dailyquiz.core.security import get_optional_user_id, require_admin
from dailyquiz.services.questions import list_questions, moderate_question, question_to_dict, submit_question


router = APIRouter(prefix="/quiz", tags=["questions"])


class QuestionSubmitIn(BaseModel):
    key: Optional[str] = None  # admin key: auto-approve
    type: Optional[str] = None

    # snippet
    youtube_url: Optional[str] = None
    youtube_start_seconds: int = 0
    youtube_duration_seconds: int = 30
    audio_url: Optional[str] = None
    accepted_artists: list[str] | None = None
    accepted_tracks: list[str] | None = None

    # trivia
    question_text: Optional[str] = None
    image_url: Optional[str] = None
    accepted_answers: list[str] | None = None


class ManageQuestionIn(BaseModel):
    key: Optional[str] = None
    question_id: Optional[int] = None
    action: Optional[str] = None


@router.post("/questions")
async def submit(
    body: QuestionSubmitIn,
    user_id: Optional[str] = Depends(get_optional_user_id),
    session: AsyncSession = Depends(get_session),
):
    question = await submit_question(
        session,
        body.model_dump(exclude={"key"}),
        admin_key=body.key,
        user_id=user_id,
    )
    return {"ok": True, "question_id": question.id, "status": question.status}


@router.get("/admin/questions")
async def admin_questions(
    key: Optional[str] = None,
    filter: str = Query("pending"),
    session: AsyncSession = Depends(get_session),
):
    require_admin(key)
    questions = await list_questions(session, status_filter=filter)
    return {"ok": True, "questions": [question_to_dict(q) for q in questions]}


@router.post("/admin/questions/manage")
async def manage_question(body: ManageQuestionIn, session: AsyncSession = Depends(get_session)):
    require_admin(body.key)
    action = await moderate_question(session, question_id=body.question_id, action=body.action)
    return {"ok": True, "action": action}
