"""
Image conversion utility.
Normalizes uploaded photos to progressive JPEG before they are written to the uploads directory.
"""
import io
import logging
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_JPEG_QUALITY = 85
MAX_WIDTH = 1920


class ImageProcessingError(Exception):
    """Raised when an uploaded file cannot be decoded or re-encoded."""


def convert_to_jpeg(
    image_bytes: bytes,
    quality: int = DEFAULT_JPEG_QUALITY,
    max_width: int = MAX_WIDTH,
    max_height: Optional[int] = None,
) -> bytes:
    """
    Rotate according to EXIF orientation, shrink to fit and encode as progressive JPEG.

    Args:
        image_bytes: Original image file bytes
        quality: JPEG quality (0-100, default: 85)
        max_width: Maximum width; images are never enlarged
        max_height: Optional maximum height (None keeps only the width bound)

    Returns:
        JPEG bytes

    Raises:
        ImageProcessingError: If the image cannot be identified or processed
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image = ImageOps.exif_transpose(image)

        # JPEG has no alpha channel
        if image.mode in ('RGBA', 'LA', 'P'):
            image = image.convert('RGBA')
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            image = background
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        width, height = image.size
        bound_height = max_height or height
        if width > max_width or height > bound_height:
            scale = min(max_width / width, bound_height / height)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            logger.info(f"Downscaling image from {width}x{height} to {new_size[0]}x{new_size[1]}")
            image = image.resize(new_size, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=quality, progressive=True, optimize=True)
        jpeg_bytes = buffer.getvalue()

        logger.info(
            f"Converted image to JPEG: {len(image_bytes):,} bytes -> {len(jpeg_bytes):,} bytes "
            f"(quality={quality})"
        )
        return jpeg_bytes

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        raise ImageProcessingError("Cannot identify image format") from e

    except (OSError, ValueError) as e:
        logger.error(f"Error converting image to JPEG: {str(e)}", exc_info=True)
        raise ImageProcessingError(str(e)) from e


def get_image_info(image_bytes: bytes) -> Optional[dict]:
    """
    Get basic information about an image.

    Returns:
        dict: Image information (format, size, mode) or None if unreadable
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        return {
            'format': image.format,
            'size': image.size,
            'mode': image.mode,
            'bytes': len(image_bytes)
        }
    except (UnidentifiedImageError, OSError) as e:
        logger.debug(f"Error getting image info: {str(e)}")
        return None
