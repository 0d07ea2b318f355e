from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dailyquiz.core.errors import ConflictError, NotFoundError, ValidationError
from dailyquiz.models.question import Contributor


logger = logging.getLogger(__name__)


INVITE_CODE_BYTES = 8  # 64 bits
PENDING_NAME = "pending registration"


def invite_link(code: str) -> str:
    return f"/quiz/contribute?code={code}"


def contributor_to_dict(c: Contributor) -> Dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "photo_url": c.photo_url,
        "invite_code": c.invite_code,
        "is_active": c.is_active,
        "user_id": c.user_id,
        "invited_at": c.invited_at,
    }


async def create_invite(session: AsyncSession, *, name: Optional[str] = None) -> Contributor:
    contributor = Contributor(
        name=(name or "").strip() or PENDING_NAME,
        invite_code=secrets.token_hex(INVITE_CODE_BYTES),
        is_active=True,
    )
    session.add(contributor)
    await session.commit()
    logger.info("invite created for contributor %s", contributor.id)
    return contributor


async def register_contributor(
    session: AsyncSession,
    *,
    invite_code: Optional[str],
    user_id: str,
    name: Optional[str],
    photo_url: Optional[str] = None,
) -> Tuple[Contributor, bool]:
    """Bind a login identity to an invite.

    Returns (contributor, already_registered).
    """
    if not invite_code or not user_id or not (name or "").strip():
        raise ValidationError("missing_fields")

    contributor = await session.scalar(select(Contributor).where(Contributor.invite_code == invite_code))
    if contributor is None:
        raise NotFoundError("invalid_invite_code")
    if not contributor.is_active:
        raise ConflictError("invite_deactivated")

    if contributor.user_id:
        if contributor.user_id == user_id:
            return contributor, True
        raise ConflictError("invite_already_used")

    contributor.user_id = user_id
    contributor.name = name.strip()
    contributor.photo_url = photo_url or None
    try:
        await session.commit()
    except IntegrityError:
        # either the identity holds another invite or a concurrent request won
        await session.rollback()
        raise ConflictError("identity_already_registered")

    logger.info("contributor %s registered", contributor.id)
    return contributor, False


async def _get_contributor(session: AsyncSession, contributor_id: Optional[int]) -> Contributor:
    if not contributor_id:
        raise ValidationError("missing_fields")
    contributor = await session.get(Contributor, contributor_id)
    if contributor is None:
        raise NotFoundError("contributor_not_found")
    return contributor


async def set_contributor_active(session: AsyncSession, *, contributor_id: Optional[int], active: bool) -> Contributor:
    """Toggle submission rights. Already approved questions are untouched."""
    contributor = await _get_contributor(session, contributor_id)
    contributor.is_active = active
    await session.commit()
    logger.info("contributor %s %s", contributor.id, "activated" if active else "deactivated")
    return contributor


async def delete_contributor(session: AsyncSession, *, contributor_id: Optional[int]) -> None:
    contributor = await _get_contributor(session, contributor_id)
    await session.execute(delete(Contributor).where(Contributor.id == contributor.id))
    await session.commit()
    logger.info("contributor %s deleted", contributor_id)


async def list_contributors(session: AsyncSession) -> List[Contributor]:
    rows = await session.execute(
        select(Contributor).order_by(Contributor.invited_at.desc(), Contributor.id.desc())
    )
    return list(rows.scalars().all())
