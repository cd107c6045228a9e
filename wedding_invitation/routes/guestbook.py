"""
Public guestbook routes.
Guests edit and delete their own entries with the password they chose when writing them.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import select
from typing import List, Optional
import logging

from wedding_invitation.database import get_db
from wedding_invitation.models import GuestbookEntry, utcnow
from wedding_invitation.schemas import (
    ApiResponse,
    CreatedResponse,
    GuestbookCreate,
    GuestbookEntryResponse,
    GuestbookUpdate,
)
from wedding_invitation.utils.passwords import check_password, hash_password
from wedding_invitation.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


async def verify_entry_password(db: AsyncSession, entry_id: int, password: str) -> GuestbookEntry:
    """
    Load an active entry and check its password.

    A legacy plaintext password that matches is rewritten in hashed form;
    if that fails it is logged and the caller proceeds anyway.

    Raises:
        HTTPException: 404 if the entry is missing or deleted, 401 on a wrong password
    """
    result = await db.execute(
        select(GuestbookEntry).where(GuestbookEntry.id == entry_id, GuestbookEntry.deleted_at.is_(None))
    )
    entry = result.scalar_one_or_none()

    if not entry:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Guestbook entry not found",
        )

    matches, needs_rehash = check_password(password, entry.password)
    if not matches:
        logger.info(f"Wrong password for guestbook entry {entry_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    if needs_rehash:
        await _upgrade_password(db, entry, password)

    return entry


async def _upgrade_password(db: AsyncSession, entry: GuestbookEntry, password: str) -> None:
    """Replace a legacy plaintext password in its own commit. Failures are logged only."""
    entry_id = entry.id
    try:
        entry.password = hash_password(password)
        await db.commit()
        logger.info(f"Upgraded plaintext password of guestbook entry {entry_id}")
    except (ValueError, TypeError, SQLAlchemyError) as e:
        logger.warning(f"Could not rehash password of guestbook entry {entry_id}: {str(e)}")
        await db.rollback()
        await db.refresh(entry)


@router.get("/guestbook", response_model=ApiResponse[List[GuestbookEntryResponse]])
async def get_guestbook(db: AsyncSession = Depends(get_db)):
    """Non-deleted guestbook entries, newest first."""
    try:
        result = await db.execute(
            select(GuestbookEntry)
            .where(GuestbookEntry.deleted_at.is_(None))
            .order_by(GuestbookEntry.created_at.desc(), GuestbookEntry.id.desc())
        )
        entries = result.scalars().all()

        logger.info(f"Retrieved {len(entries)} guestbook entries")

        return ApiResponse(data=[GuestbookEntryResponse.model_validate(entry) for entry in entries])

    except Exception as e:
        logger.error(f"Error fetching guestbook: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch guestbook",
        )


@router.post("/guestbook", response_model=ApiResponse[CreatedResponse])
@limiter.limit(RATE_LIMITS["guestbook_write"])
async def create_guestbook_entry(
    request: Request,
    payload: GuestbookCreate,
    db: AsyncSession = Depends(get_db),
):
    """Write a guestbook entry. The password is stored as a salted PBKDF2 hash."""
    try:
        entry = GuestbookEntry(
            name=payload.name,
            password=hash_password(payload.password),
            content=payload.content,
        )
        db.add(entry)
        await db.commit()
        await db.refresh(entry)

        logger.info(f"Created guestbook entry: ID {entry.id}")

        return ApiResponse(data=CreatedResponse(id=entry.id))

    except Exception as e:
        logger.error(f"Error creating guestbook entry: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create guestbook entry",
        )


@router.put("/guestbook/{entry_id}", response_model=ApiResponse[None])
@limiter.limit(RATE_LIMITS["guestbook_write"])
async def update_guestbook_entry(
    request: Request,
    entry_id: int,
    payload: GuestbookUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Replace the content of an entry after checking its password."""
    try:
        entry = await verify_entry_password(db, entry_id, payload.password)

        entry.content = payload.content
        await db.commit()

        logger.info(f"Updated guestbook entry: ID {entry_id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating guestbook entry: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update guestbook entry",
        )


@router.delete("/guestbook/{entry_id}", response_model=ApiResponse[None])
@limiter.limit(RATE_LIMITS["guestbook_write"])
async def delete_guestbook_entry(
    request: Request,
    entry_id: int,
    password: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Soft-delete an entry after checking its password (?password=)."""
    try:
        if not password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Password is required",
            )

        entry = await verify_entry_password(db, entry_id, password)

        entry.deleted_at = utcnow()
        await db.commit()

        logger.info(f"Soft-deleted guestbook entry: ID {entry_id}")

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
