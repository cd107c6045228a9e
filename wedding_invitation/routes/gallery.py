"""
Gallery routes.
Public listing and cover image for the invitation page, plus registration and
soft deletion of gallery rows for the admin.
"""
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import logging

from wedding_invitation.database import get_db
from wedding_invitation.models import GalleryItem, utcnow
from wedding_invitation.schemas import (
    ApiResponse,
    CoverImageResponse,
    CreatedResponse,
    GalleryItemCreate,
    GalleryItemResponse,
)
from wedding_invitation.services.gallery import next_order_index, soft_delete_active_main
from wedding_invitation.services.storage import resolve_upload_path
from wedding_invitation.utils.auth import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()

PUBLIC_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=600"


@router.get("/gallery", response_model=ApiResponse[List[GalleryItemResponse]])
async def get_gallery(response: Response, db: AsyncSession = Depends(get_db)):
    """
    Get the gallery for the public page.

    Returns non-deleted rows: the main image first, then gallery photos by
    order_index, newest first among rows without one.
    """
    try:
        result = await db.execute(
            select(GalleryItem)
            .where(GalleryItem.deleted_at.is_(None))
            .order_by(
                GalleryItem.image_type.desc(),  # "main" sorts before "gallery"
                GalleryItem.order_index.is_(None),
                GalleryItem.order_index.asc(),
                GalleryItem.created_at.desc(),
                GalleryItem.id.desc(),
            )
        )
        items = result.scalars().all()

        logger.info(f"Retrieved {len(items)} gallery items")

        response.headers["Cache-Control"] = PUBLIC_CACHE_CONTROL
        response.headers["CDN-Cache-Control"] = "public, s-maxage=300"

        return ApiResponse(data=[GalleryItemResponse.model_validate(item) for item in items])

    except Exception as e:
        logger.error(f"Error fetching gallery: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch gallery",
        )


@router.get("/cover-image", response_model=ApiResponse[CoverImageResponse])
async def get_cover_image(db: AsyncSession = Depends(get_db)):
    """Most recent non-deleted main image."""
    try:
        result = await db.execute(
            select(GalleryItem)
            .where(
                GalleryItem.image_type == "main",
                GalleryItem.deleted_at.is_(None),
                GalleryItem.filename.is_not(None),
            )
            .order_by(GalleryItem.created_at.desc(), GalleryItem.id.desc())
            .limit(1)
        )
        cover = result.scalar_one_or_none()

        if not cover:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="No cover image found",
            )

        return ApiResponse(data=CoverImageResponse(url=cover.url))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching cover image: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch cover image",
        )


@router.post("/gallery", response_model=ApiResponse[CreatedResponse])
async def create_gallery_entry(
    payload: GalleryItemCreate,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """
    Register an already uploaded file as a gallery row.
    A new main image replaces (soft-deletes) the active one.
    """
    try:
        try:
            resolve_upload_path(payload.filename)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid filename: must be inside the uploads directory",
            )

        now = utcnow()
        order_index = None

        if payload.image_type == "main":
            await soft_delete_active_main(db, now)
        else:
            order_index = await next_order_index(db)

        item = GalleryItem(
            filename=payload.filename,
            image_type=payload.image_type,
            order_index=order_index,
            created_at=now,
        )
        db.add(item)
        await db.commit()
        await db.refresh(item)

        logger.info(f"Registered gallery entry: ID {item.id}, type={item.image_type}, file={item.filename}")

        return ApiResponse(data=CreatedResponse(id=item.id))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating gallery entry: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create gallery entry",
        )


@router.delete("/gallery", response_model=ApiResponse[None])
async def delete_gallery_entry(
    id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Soft-delete an active gallery row (?id=)."""
    try:
        if id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="ID is required",
            )

        result = await db.execute(
            select(GalleryItem).where(GalleryItem.id == id, GalleryItem.deleted_at.is_(None))
        )
        item = result.scalar_one_or_none()

        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Image not found",
            )

        item.deleted_at = utcnow()
        await db.commit()

        logger.info(f"Soft-deleted gallery entry: ID {id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting gallery entry: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete gallery entry",
        )
