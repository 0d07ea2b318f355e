from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.db import get_session
from dailyquiz.core.errors import ValidationError
from dailyquiz.core.security import get_current_user_id, require_admin
from dailyquiz.services.contributors import (
    contributor_to_dict,
    create_invite,
    delete_contributor,
    invite_link,
    list_contributors,
    register_contributor,
    set_contributor_active,
)


router = APIRouter(prefix="/quiz/contributors", tags=["contributors"])


class ContributorActionIn(BaseModel):
    key: Optional[str] = None
    action: Optional[str] = None  # create-invite|activate|deactivate|delete
    contributor_id: Optional[int] = None
    name: Optional[str] = None


class RegisterIn(BaseModel):
    invite_code: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None


@router.get("")
async def get_contributors(key: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    require_admin(key)
    contributors = await list_contributors(session)
    return {"ok": True, "contributors": [contributor_to_dict(c) for c in contributors]}


@router.post("")
async def contributor_action(body: ContributorActionIn, session: AsyncSession = Depends(get_session)):
    require_admin(body.key)

    if body.action == "create-invite":
        contributor = await create_invite(session, name=body.name)
        return {
            "ok": True,
            "contributor": contributor_to_dict(contributor),
            "invite_link": invite_link(contributor.invite_code),
        }
    if body.action in ("activate", "deactivate"):
        active = body.action == "activate"
        await set_contributor_active(session, contributor_id=body.contributor_id, active=active)
        return {"ok": True, "action": "activated" if active else "deactivated"}
    if body.action == "delete":
        await delete_contributor(session, contributor_id=body.contributor_id)
        return {"ok": True, "action": "deleted"}

    raise ValidationError("invalid_action")


@router.post("/register")
async def register(
    body: RegisterIn,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    contributor, already = await register_contributor(
        session,
        invite_code=body.invite_code,
        user_id=user_id,
        name=body.name,
        photo_url=body.photo_url,
    )
    return {"ok": True, "already_registered": already, "contributor": contributor_to_dict(contributor)}
