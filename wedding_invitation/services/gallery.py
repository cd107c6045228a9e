"""
Gallery bookkeeping shared by the admin routes and the background purge.

Gallery files are named after their display position and row id
(gallery<NN>_<id>.jpg) so the file listing and the page order agree.
The id suffix keeps names unique, so renames never collide with each other
or with soft-deleted rows that still own a file.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from pathlib import PurePosixPath
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wedding_invitation.config import settings
from wedding_invitation.database import AsyncSessionLocal
from wedding_invitation.models import GalleryItem, utcnow
from wedding_invitation.services.storage import delete_physical_file, rename_file

logger = logging.getLogger(__name__)


def gallery_filename(folder: str, position: int, item_id: int) -> str:
    return f"{folder}/gallery{position:02d}_{item_id}.jpg"


def main_filename(folder: str, item_id: int) -> str:
    return f"{folder}/main_{item_id}.jpg"


def _folder_of(filename: str) -> str:
    parent = PurePosixPath(filename).parent.as_posix()
    return "" if parent == "." else parent


async def active_gallery_items(db: AsyncSession) -> List[GalleryItem]:
    """Non-deleted gallery-type rows in display order."""
    result = await db.execute(
        select(GalleryItem)
        .where(GalleryItem.image_type == "gallery", GalleryItem.deleted_at.is_(None))
        .order_by(
            GalleryItem.order_index.is_(None),
            GalleryItem.order_index.asc(),
            GalleryItem.created_at.asc(),
            GalleryItem.id.asc(),
        )
    )
    return list(result.scalars().all())


async def next_order_index(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.max(GalleryItem.order_index))
        .where(GalleryItem.image_type == "gallery", GalleryItem.deleted_at.is_(None))
    )
    return (result.scalar() or 0) + 1


async def soft_delete_active_main(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Soft-delete every active main image so a new one can take its place.
    Their files are removed later by the purge.

    Returns:
        Number of rows soft-deleted
    """
    result = await db.execute(
        update(GalleryItem)
        .where(GalleryItem.image_type == "main", GalleryItem.deleted_at.is_(None))
        .values(deleted_at=now or utcnow())
    )
    if result.rowcount:
        logger.info(f"Soft-deleted {result.rowcount} previous main image(s)")
    return result.rowcount or 0


def move_item(ids: Sequence[int], source_id: int, target_id: int) -> List[int]:
    """Move source_id to the position currently held by target_id."""
    ordered = list(ids)
    target_position = ordered.index(target_id)
    ordered.remove(source_id)
    ordered.insert(target_position, source_id)
    return ordered


def apply_sorted_ids(ids: Sequence[int], sorted_ids: Sequence[int]) -> List[int]:
    """Listed ids first, in the given order; the rest keep their relative order."""
    listed = set(sorted_ids)
    return list(sorted_ids) + [item_id for item_id in ids if item_id not in listed]


async def resequence_gallery(db: AsyncSession, items: Sequence[GalleryItem]) -> List[GalleryItem]:
    """
    Assign order_index 1..N in the given order and rename each file to match.

    Renames happen one by one outside any transaction; a missing file or a
    path outside the uploads directory is logged and the row keeps its old
    filename.
    """
    for position, item in enumerate(items, start=1):
        item.order_index = position

        if not item.filename:
            continue

        new_filename = gallery_filename(_folder_of(item.filename), position, item.id).lstrip("/")
        if new_filename == item.filename:
            continue

        try:
            renamed = await rename_file(item.filename, new_filename)
        except ValueError as e:
            logger.warning(f"Gallery item {item.id}: cannot rename {item.filename}: {str(e)}")
            continue

        if renamed:
            item.filename = new_filename
        else:
            logger.warning(
                f"Gallery item {item.id}: file {item.filename} missing, keeping filename at position {position}"
            )

    await db.flush()
    logger.info(f"Resequenced {len(items)} gallery item(s)")
    return list(items)


async def purge_deleted_gallery(
    db: AsyncSession,
    older_than_hours: Optional[int] = None,
) -> Tuple[int, List[str]]:
    """
    Permanently remove gallery rows soft-deleted before the retention window, with their files.

    Returns:
        (number of rows removed, error messages)
    """
    hours = settings.GALLERY_PURGE_AFTER_HOURS if older_than_hours is None else older_than_hours
    cutoff = utcnow() - timedelta(hours=hours)

    result = await db.execute(
        select(GalleryItem)
        .where(GalleryItem.deleted_at.is_not(None), GalleryItem.deleted_at < cutoff)
    )
    expired = result.scalars().all()

    cleaned = 0
    errors: List[str] = []

    for item in expired:
        try:
            if item.filename and not await _filename_in_use(db, item):
                await delete_physical_file(item.filename)

            await db.delete(item)
            await db.flush()
            cleaned += 1
        except (OSError, ValueError) as e:
            logger.error(f"Error cleaning up image {item.id}: {str(e)}", exc_info=True)
            errors.append(f"Failed to clean image {item.id}: {item.filename}")

    await db.commit()

    if cleaned or errors:
        logger.info(f"Gallery purge removed {cleaned} row(s), {len(errors)} error(s)")
    return cleaned, errors


async def _filename_in_use(db: AsyncSession, item: GalleryItem) -> bool:
    """Whether an active row still points at the same file."""
    result = await db.execute(
        select(func.count(GalleryItem.id))
        .where(
            GalleryItem.filename == item.filename,
            GalleryItem.id != item.id,
            GalleryItem.deleted_at.is_(None),
        )
    )
    return (result.scalar() or 0) > 0


async def purge_loop(interval_seconds: int) -> None:
    """Run the purge forever, every interval_seconds. Cancelled on shutdown."""
    logger.info(f"Gallery purge scheduled every {interval_seconds}s")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            async with AsyncSessionLocal() as session:
                await purge_deleted_gallery(session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled gallery purge failed: {str(e)}", exc_info=True)
