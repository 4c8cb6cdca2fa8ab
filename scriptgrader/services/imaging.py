# scriptgrader/services/imaging.py
import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from scriptgrader.services.page_order import PageImage

logger = logging.getLogger(__name__)

JPEG_QUALITY = 95


def normalize_orientation(page: PageImage) -> PageImage:
    """
    Apply EXIF rotation, turn landscape photos into portrait, re-encode as JPEG.

    Any imaging failure keeps the original bytes; a page is never dropped here.
    """
    if not page.mime_type.startswith("image/"):
        return page
    try:
        with Image.open(io.BytesIO(page.data)) as opened:
            image = ImageOps.exif_transpose(opened)
            if image.width > image.height:
                # 90 degrees clockwise
                image = image.rotate(-90, expand=True)
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.warning(f"Image normalization failed for {page.url or 'page'}, using original: {e}")
        return page

    return PageImage(data=buffer.getvalue(), mime_type="image/jpeg", url=page.url)
