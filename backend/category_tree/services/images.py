"""Category image encoding"""
import base64
import io
import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image

from category_tree.config import settings

logger = logging.getLogger(__name__)

PASSTHROUGH_PREFIXES = ("data:", "http://", "https://")


def _flatten(img: Image.Image) -> Image.Image:
    """Convert to RGB, putting transparent images on a white background"""
    if img.mode in ('RGBA', 'P', 'LA'):
        background = Image.new('RGB', img.size, (255, 255, 255))
        if img.mode == 'P':
            img = img.convert('RGBA')
        background.paste(img, mask=img.split()[-1] if img.mode in ('RGBA', 'LA') else None)
        return background
    if img.mode != 'RGB':
        return img.convert('RGB')
    return img


def encode_image(
    data: Union[str, bytes, Path],
    image_format: Optional[str] = None,
    quality: Optional[int] = None,
    max_width: Optional[int] = None,
) -> str:
    """Encode an image as a base64 data URI.

    ``data`` is a file path or raw image bytes. Strings that already are a
    URL or a data URI are returned unchanged.
    """
    if isinstance(data, str) and data.startswith(PASSTHROUGH_PREFIXES):
        return data

    image_format = (image_format or settings.category_image_format).upper()
    quality = quality if quality is not None else settings.category_image_quality
    max_width = max_width if max_width is not None else settings.category_image_max_width

    if isinstance(data, (str, Path)):
        raw = Path(data).read_bytes()
    else:
        raw = bytes(data)

    img = _flatten(Image.open(io.BytesIO(raw)))

    if max_width and img.width > max_width:
        ratio = max_width / img.width
        img = img.resize((max_width, int(img.height * ratio)), Image.Resampling.LANCZOS)

    output = io.BytesIO()
    img.save(output, format=image_format, quality=quality, optimize=True)
    encoded = output.getvalue()
    logger.debug(f"Encoded category image: {len(raw)} -> {len(encoded)} bytes")

    mime = Image.MIME.get(image_format, "image/jpeg")
    return f"data:{mime};base64,{base64.b64encode(encoded).decode('ascii')}"
