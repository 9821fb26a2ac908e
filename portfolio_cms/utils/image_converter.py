"""
Image conversion for uploads: hero images and image-type portfolio media are
re-encoded as WebP before they reach blob storage when that makes them smaller.
"""
import io
import logging
from typing import Optional, Tuple
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_WEBP_QUALITY = 85  # Balance between quality and file size (0-100)
DEFAULT_WEBP_METHOD = 6    # Compression method (0-6, higher = better compression but slower)
MAX_DIMENSION = 3840       # Larger images are downscaled to fit

# Formats Pillow can re-encode without losing animation or vector data
CONVERTIBLE_FORMATS = {"JPEG", "PNG", "BMP", "TIFF"}


def convert_to_webp(
    image_bytes: bytes,
    quality: int = DEFAULT_WEBP_QUALITY,
    method: int = DEFAULT_WEBP_METHOD,
    max_dimension: Optional[int] = MAX_DIMENSION,
) -> Optional[bytes]:
    """
    Re-encode an image as WebP.

    Args:
        image_bytes: Original image file bytes
        quality: WebP quality (0-100)
        method: WebP compression method (0-6)
        max_dimension: Maximum width or height before downscaling (None to disable)

    Returns:
        WebP bytes, or None when the input is not a convertible image
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        if image.format not in CONVERTIBLE_FORMATS:
            logger.debug(f"Skipping WebP conversion for {image.format} image")
            return None

        # WebP keeps alpha, so only palette and exotic modes need converting
        if image.mode == 'P':
            image = image.convert('RGBA')
        elif image.mode not in ('RGB', 'RGBA', 'LA'):
            image = image.convert('RGB')

        if max_dimension:
            width, height = image.size
            if width > max_dimension or height > max_dimension:
                image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
                logger.info(f"Downscaled image from {width}x{height} to {image.size[0]}x{image.size[1]}")

        buffer = io.BytesIO()
        image.save(buffer, format='WEBP', quality=quality, method=method)
        return buffer.getvalue()

    except UnidentifiedImageError as e:
        logger.warning(f"Cannot identify image format: {str(e)}")
        return None

    except Exception as e:
        logger.error(f"Error converting image to WebP: {str(e)}", exc_info=True)
        return None


def optimize_image_upload(filename: str, data: bytes) -> Tuple[str, bytes]:
    """
    Return (extension, bytes) to store for an uploaded image.
    Falls back to the original extension and bytes when WebP is not smaller.
    """
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else 'bin'
    converted = convert_to_webp(data)
    if converted is None or len(converted) >= len(data):
        return ext, data

    logger.info(
        f"Converted {filename} to WebP: "
        f"{len(data):,} bytes -> {len(converted):,} bytes"
    )
    return 'webp', converted
