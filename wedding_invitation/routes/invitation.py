"""
Invitation text routes. The invitation is a single row with id 1.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from wedding_invitation.database import get_db
from wedding_invitation.models import Invitation
from wedding_invitation.schemas import ApiResponse, InvitationPayload, InvitationResponse
from wedding_invitation.utils.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()

INVITATION_ID = 1


@router.get("/invitation", response_model=ApiResponse[InvitationResponse])
async def get_invitation(db: AsyncSession = Depends(get_db)):
    try:
        result = await db.execute(select(Invitation).order_by(Invitation.id).limit(1))
        invitation = result.scalar_one_or_none()

        if not invitation:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Invitation not found",
            )

        return ApiResponse(data=InvitationResponse.model_validate(invitation))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching invitation: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch invitation",
        )


@router.put("/invitation", response_model=ApiResponse[InvitationResponse])
async def update_invitation(
    payload: InvitationPayload,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Create or replace the invitation row."""
    try:
        invitation = await db.get(Invitation, INVITATION_ID)
        if invitation is None:
            invitation = Invitation(id=INVITATION_ID)
            db.add(invitation)

        for field, value in payload.model_dump().items():
            setattr(invitation, field, value)

        await db.commit()
        await db.refresh(invitation)

        logger.info("Updated invitation")

        return ApiResponse(data=InvitationResponse.model_validate(invitation))

    except Exception as e:
        logger.error(f"Error updating invitation: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update invitation",
        )
