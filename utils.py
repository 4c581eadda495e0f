import logging
import mimetypes
from pathlib import Path

import cv2
import numpy as np

import settings
from errors import DecodeError, EncodeError, UnsupportedFormatError
from models import RasterImage

ROOT_LOGGER_NAME = "imgadjust"

# Older interpreters do not ship a WebP mapping.
mimetypes.add_type("image/webp", ".webp")


def get_logger(name=None):
    """Return a logger under the application's logger namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(level=None):
    """
    Install a single stream handler on the application logger.
    Calling it again only updates the level.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.LOGGING_FORMAT))
        root.addHandler(handler)
    root.setLevel(level or settings.LOGGING_LEVEL)
    return root


logger = get_logger(__name__)


def flip_code(horizontal, vertical):
    """
    Flip code for cv2.flip: 1 horizontal, 0 vertical, -1 both, None for no flip.
    """
    if horizontal and vertical:
        return -1
    if horizontal:
        return 1
    if vertical:
        return 0
    return None


def validate_upload(path, accepted_formats=None, max_size_mb=None):
    """
    Checks type and size of a file before it is decoded.
    Raises UnsupportedFormatError with a message suitable for the user.
    """
    if accepted_formats is None:
        accepted_formats = settings.UPLOAD_DEFAULTS["accepted_formats"]
    if max_size_mb is None:
        max_size_mb = settings.UPLOAD_DEFAULTS["max_size_mb"]

    path = Path(path)
    mime, _ = mimetypes.guess_type(path.name)
    if mime not in accepted_formats:
        names = ", ".join(fmt.split("/")[1] for fmt in accepted_formats)
        raise UnsupportedFormatError(f"Invalid file format. Please upload {names} files only.")

    try:
        size = path.stat().st_size
    except OSError as e:
        raise UnsupportedFormatError(f"Cannot read {path.name}: {e.strerror}") from e

    if size > max_size_mb * 1024 * 1024:
        raise UnsupportedFormatError(f"File size exceeds {max_size_mb}MB limit.")
    return mime


def decode_image(data):
    """
    Decodes encoded image bytes (JPEG, PNG, WebP, ...) into an RGBA RasterImage.
    """
    buffer = np.frombuffer(bytes(data), dtype=np.uint8)
    if buffer.size == 0:
        raise DecodeError("Empty image data")
    try:
        img = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error as e:
        raise DecodeError(str(e)) from e
    if img is None:
        raise DecodeError("Image data could not be decoded")

    # 16-bit PNGs
    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)

    if img.ndim == 2:
        rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    elif img.shape[2] == 3:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    elif img.shape[2] == 4:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    else:
        raise DecodeError(f"Unsupported channel count {img.shape[2]}")
    return RasterImage(rgba)


def read_image(path):
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DecodeError(f"Cannot read {path.name}: {e.strerror}") from e
    image = decode_image(data)
    logger.info("Loaded %s (%dx%d)", path.name, image.width, image.height)
    return image


def encode_jpeg(image, quality=None):
    """
    Encodes a RasterImage as JPEG bytes. JPEG has no alpha channel, so the
    alpha is dropped.
    """
    if quality is None:
        quality = settings.EXPORT_DEFAULTS["jpeg_quality"]
    try:
        bgr = cv2.cvtColor(image.pixels.copy(), cv2.COLOR_RGBA2BGR)
        ok, encoded = cv2.imencode(".jpg", bgr, [cv2.IMWRITE_JPEG_QUALITY, int(quality)])
    except cv2.error as e:
        raise EncodeError(str(e)) from e
    if not ok:
        raise EncodeError("JPEG encoder rejected the image")
    return encoded.tobytes()
