"""
Admin guestbook moderation routes.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo
import logging

from wedding_invitation.config import settings
from wedding_invitation.database import get_db
from wedding_invitation.models import GuestbookEntry, utcnow
from wedding_invitation.schemas import ApiResponse, GuestbookAdminEntryResponse, GuestbookPasswordReset
from wedding_invitation.utils.auth import require_admin
from wedding_invitation.utils.passwords import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

ADMIN_GUESTBOOK_LIMIT = 50


def format_admin_timestamp(value: Optional[datetime], tz_name: Optional[str] = None) -> Optional[str]:
    """
    YYYY. MM. DD HH:mm in DISPLAY_TIMEZONE.
    Naive values are UTC (SQLite drops the offset).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    local = value.astimezone(ZoneInfo(tz_name or settings.DISPLAY_TIMEZONE))
    return local.strftime("%Y. %m. %d %H:%M")


@router.get("/guestbook", response_model=ApiResponse[List[GuestbookAdminEntryResponse]])
async def get_admin_guestbook(
    response: Response,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """The newest entries, deleted ones included, never cached."""
    try:
        result = await db.execute(
            select(GuestbookEntry)
            .order_by(GuestbookEntry.created_at.desc(), GuestbookEntry.id.desc())
            .limit(ADMIN_GUESTBOOK_LIMIT)
        )
        entries = result.scalars().all()

        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"

        return ApiResponse(data=[
            GuestbookAdminEntryResponse(
                id=entry.id,
                name=entry.name,
                content=entry.content,
                created_at=format_admin_timestamp(entry.created_at),
                deleted_at=format_admin_timestamp(entry.deleted_at),
            )
            for entry in entries
        ])

    except Exception as e:
        logger.error(f"Error fetching admin guestbook: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch guestbook",
        )


async def _get_entry(db: AsyncSession, entry_id: int, active_only: bool = False) -> GuestbookEntry:
    query = select(GuestbookEntry).where(GuestbookEntry.id == entry_id)
    if active_only:
        query = query.where(GuestbookEntry.deleted_at.is_(None))

    result = await db.execute(query)
    entry = result.scalar_one_or_none()
    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Guestbook entry not found",
        )
    return entry


@router.delete("/guestbook/{entry_id}", response_model=ApiResponse[None])
async def delete_admin_guestbook_entry(
    entry_id: int,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Soft-delete an entry without its password."""
    try:
        entry = await _get_entry(db, entry_id)

        if entry.deleted_at is None:
            entry.deleted_at = utcnow()
            await db.commit()
            logger.info(f"Admin soft-deleted guestbook entry: ID {entry_id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting guestbook entry: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete guestbook entry",
        )


@router.post("/guestbook/{entry_id}/reset-password", response_model=ApiResponse[None])
async def reset_guestbook_password(
    entry_id: int,
    payload: GuestbookPasswordReset,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Give an active entry a new password, for guests who forgot theirs."""
    try:
        entry = await _get_entry(db, entry_id, active_only=True)

        entry.password = hash_password(payload.newPassword)
        await db.commit()

        logger.info(f"Password reset for guestbook entry {entry_id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Password reset error: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Password reset failed",
        )
