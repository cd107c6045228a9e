"""
Local upload storage.
Image files live under UPLOAD_DIR, in date-stamped subfolders (YYYY-MM-DD/) or images/.
Database rows store paths relative to UPLOAD_DIR; they are served under /uploads/.
"""
import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

from wedding_invitation.config import settings

logger = logging.getLogger(__name__)

IMAGES_SUBDIR = "images"


def upload_root() -> Path:
    return Path(settings.UPLOAD_DIR).resolve()


def today_folder() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def resolve_upload_path(filename: str) -> Path:
    """
    Map a stored relative filename to an absolute path inside the uploads directory.

    Raises:
        ValueError: If the filename escapes the uploads directory
    """
    root = upload_root()
    path = (root / filename).resolve()
    if path != root and root not in path.parents:
        raise ValueError(f"Path escapes upload directory: {filename}")
    return path


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


async def save_file(filename: str, data: bytes) -> Path:
    """
    Write bytes to a path relative to the uploads directory.

    Raises:
        OSError: If the file cannot be written
    """
    path = resolve_upload_path(filename)
    await asyncio.to_thread(_write, path, data)
    logger.info(f"Saved file: {path} ({len(data):,} bytes)")
    return path


async def delete_physical_file(filename: str) -> bool:
    """
    Remove a stored file. A file that is already gone is not an error.

    Returns:
        True if a file was removed
    """
    if not filename:
        return False

    path = resolve_upload_path(filename)
    try:
        await asyncio.to_thread(path.unlink)
        logger.info(f"File deleted: {path}")
        return True
    except FileNotFoundError:
        logger.info(f"File already absent: {path}")
        return False


async def rename_file(old_filename: str, new_filename: str) -> bool:
    """
    Rename a stored file.

    Returns:
        False if the source file does not exist
    """
    source = resolve_upload_path(old_filename)
    target = resolve_upload_path(new_filename)
    if source == target:
        return True
    try:
        await asyncio.to_thread(os.replace, source, target)
    except FileNotFoundError:
        logger.warning(f"Cannot rename missing file: {source}")
        return False
    logger.info(f"Renamed {old_filename} -> {new_filename}")
    return True


def directory_status(path: Path) -> Dict[str, Any]:
    """Existence, writability and basic stats of a directory."""
    if not path.exists():
        return {"exists": False, "writable": False}

    stat = path.stat()
    return {
        "exists": True,
        "writable": os.access(path, os.W_OK),
        "stats": {
            "isDirectory": path.is_dir(),
            "mode": stat.st_mode,
            "size": stat.st_size,
            "mtime": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
        },
    }


def validate_storage_config() -> bool:
    """
    Make sure the uploads directory exists and is writable.

    Returns:
        bool: True if uploads can be written
    """
    root = upload_root()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Cannot create upload directory {root}: {str(e)}")
        return False

    if not os.access(root, os.W_OK):
        logger.warning(f"Upload directory is not writable: {root}")
        return False

    logger.info(f"Upload directory ready: {root}")
    return True
