"""
Local image handling: intake validation for uploaded photos and
download of hosted result images.
"""
import os
import uuid
import logging
from dataclasses import dataclass
from typing import List

import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ACCEPTED_EXTENSIONS = {".jpeg", ".jpg", ".png"}
ACCEPTED_FORMATS = {"JPEG", "PNG"}


class ImageValidationError(ValueError):
    """Uploaded file is not a supported, readable image."""
    pass


@dataclass
class ImageInfo:
    """A validated image on local disk."""
    path: str
    filename: str
    width: int
    height: int
    format: str
    size_bytes: int


def inspect_image(path: str) -> ImageInfo:
    """Validate a local JPEG/PNG file and read its dimensions.

    Raises:
        ImageValidationError: If the extension is not accepted or the
            content does not decode as JPEG/PNG.
    """
    ext = os.path.splitext(path)[1].lower()
    if ext not in ACCEPTED_EXTENSIONS:
        raise ImageValidationError(
            f"Unsupported file type '{ext or '?'}'. Supports: JPEG, JPG, PNG"
        )
    if not os.path.isfile(path):
        raise ImageValidationError(f"Image file not found: {path}")

    try:
        with Image.open(path) as img:
            img.verify()
            fmt = img.format
            width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ImageValidationError(
            f"Could not read {os.path.basename(path)} as an image"
        ) from e

    if fmt not in ACCEPTED_FORMATS:
        raise ImageValidationError(
            f"Unsupported image format '{fmt}'. Supports: JPEG, JPG, PNG"
        )

    return ImageInfo(
        path=path,
        filename=os.path.basename(path),
        width=width,
        height=height,
        format=fmt,
        size_bytes=os.path.getsize(path),
    )


def save_upload(name: str, content: bytes, upload_dir: str) -> ImageInfo:
    """Write uploaded bytes under a collision-free name and validate them.

    The file is removed again if validation fails.
    """
    stem, ext = os.path.splitext(os.path.basename(name) or "upload")
    ext = ext.lower()
    if ext not in ACCEPTED_EXTENSIONS:
        raise ImageValidationError(
            f"Unsupported file type '{ext or '?'}'. Supports: JPEG, JPG, PNG"
        )

    os.makedirs(upload_dir, exist_ok=True)
    dest = os.path.join(upload_dir, f"{stem}_{uuid.uuid4().hex[:8]}{ext}")
    with open(dest, "wb") as f:
        f.write(content)

    try:
        info = inspect_image(dest)
    except ImageValidationError:
        os.remove(dest)
        raise
    logger.info("Saved upload %s (%dx%d %s)", info.filename,
                info.width, info.height, info.format)
    return info


def download_results(urls: List[str], output_dir: str,
                     prefix: str = "tryon-result") -> List[str]:
    """Download result images to <output_dir>/<prefix>-<n>.png (1-based)."""
    os.makedirs(output_dir, exist_ok=True)
    paths = []
    for index, url in enumerate(urls, start=1):
        output_path = os.path.join(output_dir, f"{prefix}-{index}.png")
        resp = requests.get(url, stream=True, timeout=60)
        resp.raise_for_status()
        with open(output_path, "wb") as f:
            for chunk in resp.iter_content(8192):
                f.write(chunk)
        logger.info("Result %d saved to: %s", index, output_path)
        paths.append(output_path)
    return paths
