"""
Contact routes.
Public list for the contact and gift-money sections, admin management under /admin/contacts.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, select
from typing import List
import logging

from wedding_invitation.database import get_db
from wedding_invitation.models import ContactPerson
from wedding_invitation.schemas import (
    ApiResponse,
    ContactCreate,
    ContactResponse,
    ContactUpdate,
    CreatedResponse,
)
from wedding_invitation.utils.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()

# person, father, mother first; other relationships after them
RELATIONSHIP_ORDER = case(
    (ContactPerson.relationship == "person", 1),
    (ContactPerson.relationship == "father", 2),
    (ContactPerson.relationship == "mother", 3),
    else_=4,
)


async def _list_contacts(db: AsyncSession) -> List[ContactResponse]:
    result = await db.execute(
        select(ContactPerson).order_by(ContactPerson.side, RELATIONSHIP_ORDER, ContactPerson.id)
    )
    return [ContactResponse.model_validate(contact) for contact in result.scalars().all()]


async def _get_contact(db: AsyncSession, contact_id: int) -> ContactPerson:
    result = await db.execute(select(ContactPerson).where(ContactPerson.id == contact_id))
    contact = result.scalar_one_or_none()
    if not contact:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Contact not found",
        )
    return contact


@router.get("/contacts", response_model=ApiResponse[List[ContactResponse]])
async def get_contacts(response: Response, db: AsyncSession = Depends(get_db)):
    """Contacts grouped by side, the couple first, then parents."""
    try:
        contacts = await _list_contacts(db)

        response.headers["Cache-Control"] = "public, s-maxage=600, stale-while-revalidate=1200"
        response.headers["CDN-Cache-Control"] = "public, s-maxage=600"

        return ApiResponse(data=contacts)

    except Exception as e:
        logger.error(f"Error fetching contacts: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch contacts",
        )


@router.get("/admin/contacts", response_model=ApiResponse[List[ContactResponse]], tags=["admin"])
async def get_admin_contacts(
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    try:
        return ApiResponse(data=await _list_contacts(db))

    except Exception as e:
        logger.error(f"Error fetching contacts: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch contacts",
        )


@router.post("/admin/contacts", response_model=ApiResponse[CreatedResponse], tags=["admin"])
async def create_contact(
    payload: ContactCreate,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    try:
        contact = ContactPerson(
            side=payload.side,
            relationship=payload.relationship,
            name=payload.name,
            phone=payload.phone or "",
            bank_name=payload.bank_name or None,
            account_number=payload.account_number or None,
            kakaopay_link=payload.kakaopay_link or None,
        )
        db.add(contact)
        await db.commit()
        await db.refresh(contact)

        logger.info(f"Created contact: ID {contact.id} ({contact.side}/{contact.relationship})")

        return ApiResponse(data=CreatedResponse(id=contact.id))

    except Exception as e:
        logger.error(f"Error creating contact: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create contact",
        )


@router.put("/admin/contacts/{contact_id}", response_model=ApiResponse[ContactResponse], tags=["admin"])
async def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    try:
        contact = await _get_contact(db, contact_id)

        contact.name = payload.name
        contact.phone = payload.phone or ""
        contact.bank_name = payload.bank_name or None
        contact.account_number = payload.account_number or None
        contact.kakaopay_link = payload.kakaopay_link or None
        await db.commit()
        await db.refresh(contact)

        logger.info(f"Updated contact: ID {contact_id}")

        return ApiResponse(data=ContactResponse.model_validate(contact))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating contact: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update contact",
        )


@router.delete("/admin/contacts/{contact_id}", response_model=ApiResponse[None], tags=["admin"])
async def delete_contact(
    contact_id: int,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Contacts are deleted for good, there is no soft delete."""
    try:
        contact = await _get_contact(db, contact_id)

        await db.delete(contact)
        await db.commit()

        logger.info(f"Deleted contact: ID {contact_id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting contact: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete contact",
        )
