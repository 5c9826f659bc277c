# loyalty_wallet/bundle/assets.py

"""
Pass Image Assets

Loads the icon and logo images packaged into every pass. Sources may be
any format Pillow can read; anything that is not already PNG is
converted. Missing required images are an error, never replaced with a
generated stand-in.
"""

import os
import logging
from io import BytesIO
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError

from loyalty_wallet.errors import BundleValidationError

logger = logging.getLogger(__name__)

REQUIRED_IMAGES = ('icon.png', 'icon@2x.png', 'logo.png', 'logo@2x.png')
OPTIONAL_IMAGES = ('icon@3x.png', 'logo@3x.png')
ALLOWED_IMAGES = REQUIRED_IMAGES + OPTIONAL_IMAGES

SOURCE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.gif', '.webp', '.bmp')


def _to_png(data: bytes, name: str) -> bytes:
    """
    Return PNG bytes for an image, converting if needed.

    Args:
        data: Raw image bytes in any Pillow-readable format
        name: Target file name, used in error messages

    Returns:
        PNG encoded bytes
    """
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise BundleValidationError(f"Image {name} could not be read: {e}")

    if img.format == 'PNG':
        return data

    # Palette images keep transparency only through RGBA
    if img.mode not in ('RGB', 'RGBA'):
        img = img.convert('RGBA')

    output = BytesIO()
    img.save(output, format='PNG', optimize=True)
    logger.debug(f"Converted {name} from {img.format or 'unknown'} to PNG")
    return output.getvalue()


def _find_source(directory: str, name: str) -> Optional[str]:
    stem = os.path.splitext(name)[0]
    for ext in SOURCE_EXTENSIONS:
        path = os.path.join(directory, f"{stem}{ext}")
        if os.path.isfile(path):
            return path
    return None


def load_images(directory: str) -> Dict[str, bytes]:
    """
    Load the pass images from a directory.

    Args:
        directory: Folder holding icon/logo images (icon.png, logo@2x.jpg, ...)

    Returns:
        Mapping of pass file name to PNG bytes

    Raises:
        BundleValidationError: if a required image is missing or unreadable
    """
    if not directory or not os.path.isdir(directory):
        raise BundleValidationError(f"Assets directory not found: {directory}")

    images = {}
    missing = []
    for name in ALLOWED_IMAGES:
        path = _find_source(directory, name)
        if path is None:
            if name in REQUIRED_IMAGES:
                missing.append(name)
            continue
        with open(path, 'rb') as f:
            data = f.read()
        if not data:
            raise BundleValidationError(f"Image {name} is empty")
        images[name] = _to_png(data, name)

    if missing:
        raise BundleValidationError(f"Required images missing: {', '.join(missing)}")

    logger.info(f"Loaded {len(images)} pass images from {directory}")
    return images


def normalize_images(images: Dict[str, bytes]) -> Dict[str, bytes]:
    """Convert an in-memory image mapping to PNG, keeping names."""
    return {name: _to_png(data, name) for name, data in images.items()}
