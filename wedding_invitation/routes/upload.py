"""
Target-keyed image upload.
Stores images/<targetId>.jpg and records it in the images table; uploads for
a main/cover target also become the active main gallery image.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import logging
import re
import time

from wedding_invitation.database import get_db
from wedding_invitation.models import GalleryItem, ImageAsset, utcnow
from wedding_invitation.routes.admin_gallery import process_image, read_image_upload
from wedding_invitation.schemas import ApiResponse, ImageUploadResponse
from wedding_invitation.services.gallery import soft_delete_active_main
from wedding_invitation.services.storage import IMAGES_SUBDIR, delete_physical_file, save_file
from wedding_invitation.utils.auth import require_admin
from wedding_invitation.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter()

SUPPORTED_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
TARGET_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")
MAX_DIMENSION = 1920


def image_type_for_target(target_id: Optional[str]) -> str:
    if not target_id:
        return "other"
    if "main" in target_id or "cover" in target_id:
        return "main"
    if "gallery" in target_id:
        return "gallery"
    if "profile" in target_id:
        return "profile"
    return "other"


@router.post("/upload/image", response_model=ApiResponse[ImageUploadResponse])
@limiter.limit(RATE_LIMITS["upload"])
async def upload_target_image(
    request: Request,
    file: Optional[UploadFile] = File(None),
    targetId: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    admin_token: str = Depends(require_admin),
):
    """
    Upload an image for a named slot (targetId), replacing the slot's previous image.
    Without a targetId the file is named after the current timestamp.
    """
    try:
        if file is not None and file.content_type not in SUPPORTED_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported file type. Only JPG, PNG, and WebP are allowed. "
                       "HEIC files should be converted on the client side.",
            )

        if targetId and not TARGET_ID_PATTERN.match(targetId):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid targetId",
            )

        content = await read_image_upload(file)
        jpeg_bytes = await process_image(file, content, max_height=MAX_DIMENSION)

        file_name = f"{targetId or int(time.time() * 1000)}.jpg"
        stored_name = f"{IMAGES_SUBDIR}/{file_name}"
        now = utcnow()

        if targetId:
            result = await db.execute(
                select(ImageAsset).where(ImageAsset.target_id == targetId, ImageAsset.deleted_at.is_(None))
            )
            for previous in result.scalars().all():
                previous.deleted_at = now
                previous_name = f"{IMAGES_SUBDIR}/{previous.filename}"
                if previous_name != stored_name:
                    await delete_physical_file(previous_name)

        await save_file(stored_name, jpeg_bytes)

        image_type = image_type_for_target(targetId)
        db.add(ImageAsset(
            filename=file_name,
            original_name=file.filename,
            target_id=targetId,
            file_size=len(jpeg_bytes),
            image_type=image_type,
            created_at=now,
            updated_at=now,
        ))

        if image_type == "main":
            await soft_delete_active_main(db, now)
            db.add(GalleryItem(filename=stored_name, image_type="main", created_at=now))

        await db.commit()

        file_url = f"/uploads/{stored_name}"
        logger.info(f"File uploaded successfully: {file_url} (target={targetId}, type={image_type})")

        return ApiResponse(data=ImageUploadResponse(fileUrl=file_url, fileName=file_name))

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading file: {str(e)}", exc_info=True)
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Upload failed: {str(e)}",
        )
