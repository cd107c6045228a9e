"""
Admin gallery routes: upload, ordering and soft deletion.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import asyncio
import logging

from wedding_invitation.config import settings
from wedding_invitation.database import get_db
from wedding_invitation.models import GalleryItem, utcnow
from wedding_invitation.schemas import (
    ApiResponse,
    GalleryItemAdminResponse,
    GalleryReorderRequest,
    UploadResponse,
)
from wedding_invitation.services.gallery import (
    active_gallery_items,
    apply_sorted_ids,
    gallery_filename,
    main_filename,
    move_item,
    next_order_index,
    resequence_gallery,
    soft_delete_active_main,
)
from wedding_invitation.services.storage import save_file, today_folder
from wedding_invitation.utils.auth import require_admin
from wedding_invitation.utils.image_converter import ImageProcessingError, convert_to_jpeg, get_image_info
from wedding_invitation.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

HEIC_HINT = (
    "HEIC image processing failed. Convert the photo to JPEG or PNG on the client before uploading."
)


def _is_heic(file: UploadFile) -> bool:
    name = (file.filename or "").lower()
    return name.endswith((".heic", ".heif")) or file.content_type in ("image/heic", "image/heif")


async def read_image_upload(file: Optional[UploadFile]) -> bytes:
    """
    Read and validate an uploaded image.

    Raises:
        HTTPException: 400 if no file, not an image, or larger than MAX_UPLOAD_BYTES
    """
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File '{file.filename}' is not a valid image file",
        )

    content = await file.read()

    if len(content) > settings.MAX_UPLOAD_BYTES:
        logger.warning(f"Rejected upload {file.filename}: {len(content):,} bytes")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit",
        )

    return content


async def process_image(file: UploadFile, content: bytes, **kwargs) -> bytes:
    """
    Convert upload bytes to JPEG off the event loop.

    Raises:
        HTTPException: 400 if the image cannot be decoded
    """
    logger.info(f"Processing upload {file.filename}: {get_image_info(content)}")
    try:
        return await asyncio.to_thread(convert_to_jpeg, content, **kwargs)
    except ImageProcessingError as e:
        detail = HEIC_HINT if _is_heic(file) else f"Image processing failed: {str(e)}"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.get("/gallery", response_model=ApiResponse[List[GalleryItemAdminResponse]])
async def get_admin_gallery(
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """
    Every gallery row not yet purged, soft-deleted ones included.
    Active rows come first, in display order.
    """
    try:
        result = await db.execute(
            select(GalleryItem).order_by(
                GalleryItem.deleted_at.is_not(None),
                GalleryItem.image_type.desc(),
                GalleryItem.order_index.is_(None),
                GalleryItem.order_index.asc(),
                GalleryItem.created_at.desc(),
                GalleryItem.id.desc(),
            )
        )
        items = result.scalars().all()

        logger.info(f"Retrieved {len(items)} gallery rows for admin")

        return ApiResponse(data=[GalleryItemAdminResponse.model_validate(item) for item in items])

    except Exception as e:
        logger.error(f"Error fetching admin gallery: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch gallery",
        )


@router.post("/upload", response_model=ApiResponse[UploadResponse])
@limiter.limit(RATE_LIMITS["upload"])
async def upload_gallery_image(
    request: Request,
    file: Optional[UploadFile] = File(None),
    image_type: str = Form("gallery"),
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """
    Upload a gallery photo or a new main image.

    The photo is auto-rotated, shrunk to 1920px wide and stored as JPEG in
    today's folder. A main upload soft-deletes the previous main image; a
    gallery upload is appended after the last photo.
    """
    try:
        if image_type not in ("main", "gallery"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Invalid image_type. Must be "main" or "gallery"',
            )

        content = await read_image_upload(file)
        jpeg_bytes = await process_image(file, content)

        folder = today_folder()
        now = utcnow()

        if image_type == "main":
            await soft_delete_active_main(db, now)
            item = GalleryItem(image_type="main", created_at=now)
            db.add(item)
            await db.flush()
            item.filename = main_filename(folder, item.id)
        else:
            order_index = await next_order_index(db)
            item = GalleryItem(image_type="gallery", order_index=order_index, created_at=now)
            db.add(item)
            await db.flush()
            item.filename = gallery_filename(folder, order_index, item.id)

        await save_file(item.filename, jpeg_bytes)
        await db.commit()

        logger.info(f"Uploaded {image_type} image: ID {item.id}, file={item.filename}")

        return ApiResponse(data=UploadResponse(filename=item.filename))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading file: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload file",
        )


@router.put("/gallery", response_model=ApiResponse[List[GalleryItemAdminResponse]])
async def reorder_gallery(
    payload: GalleryReorderRequest,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """
    Reorder gallery photos.

    Accepts either {sourceId, targetId} to move one photo onto another's
    position, or {sortedIds} with the desired order (unlisted photos follow
    in their current order). Every active photo is then renumbered 1..N and
    its file renamed to match.
    """
    try:
        items = await active_gallery_items(db)
        by_id = {item.id: item for item in items}
        current_ids = [item.id for item in items]

        if payload.sortedIds:
            requested = payload.sortedIds
        else:
            requested = [payload.sourceId, payload.targetId]

        missing_ids = [item_id for item_id in requested if item_id not in by_id]
        if missing_ids:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Image IDs not found: {missing_ids}",
            )

        if payload.sortedIds:
            ordered_ids = apply_sorted_ids(current_ids, payload.sortedIds)
        else:
            ordered_ids = move_item(current_ids, payload.sourceId, payload.targetId)

        reordered = await resequence_gallery(db, [by_id[item_id] for item_id in ordered_ids])
        await db.commit()

        logger.info(f"Reordered gallery: {ordered_ids}")

        return ApiResponse(data=[GalleryItemAdminResponse.model_validate(item) for item in reordered])

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reordering gallery: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reorder gallery",
        )


@router.delete("/gallery/{item_id}", response_model=ApiResponse[None])
async def delete_admin_gallery_item(
    item_id: int,
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """Soft-delete a gallery row. The file stays until the purge."""
    try:
        result = await db.execute(
            select(GalleryItem).where(GalleryItem.id == item_id, GalleryItem.deleted_at.is_(None))
        )
        item = result.scalar_one_or_none()

        if not item:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Image not found",
            )

        item.deleted_at = utcnow()
        await db.commit()

        logger.info(f"Soft-deleted gallery item: ID {item_id}")

        return ApiResponse()

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting gallery item: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete gallery item",
        )
