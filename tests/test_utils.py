import logging

import cv2
import numpy as np
import pytest

import utils
from errors import DecodeError, EncodeError, UnsupportedFormatError
from models import RasterImage
from utils import configure_logging, decode_image, encode_jpeg, flip_code, validate_upload


def write_png(path, bgr):
    ok, data = cv2.imencode(".png", bgr)
    assert ok
    path.write_bytes(data.tobytes())
    return path


@pytest.mark.parametrize("horizontal, vertical, code", [
    (False, False, None),
    (True, False, 1),
    (False, True, 0),
    (True, True, -1),
])
def test_flip_code(horizontal, vertical, code):
    assert flip_code(horizontal, vertical) == code


def test_validate_upload_accepts_supported_images(tmp_path):
    png = write_png(tmp_path / "photo.png", np.zeros((4, 4, 3), dtype=np.uint8))
    assert validate_upload(png) == "image/png"

    webp = tmp_path / "photo.webp"
    webp.write_bytes(b"RIFF")
    assert validate_upload(webp) == "image/webp"


def test_validate_upload_rejects_other_types(tmp_path):
    gif = tmp_path / "anim.gif"
    gif.write_bytes(b"GIF89a")
    with pytest.raises(UnsupportedFormatError, match="Please upload jpeg, png, webp files only"):
        validate_upload(gif)


def test_validate_upload_rejects_large_files(tmp_path):
    big = tmp_path / "big.jpg"
    big.write_bytes(b"\0" * 4096)
    with pytest.raises(UnsupportedFormatError, match="exceeds"):
        validate_upload(big, max_size_mb=0.001)


def test_validate_upload_missing_file(tmp_path):
    with pytest.raises(UnsupportedFormatError):
        validate_upload(tmp_path / "nope.png")


def test_decode_converts_bgr_to_rgba():
    bgr = np.zeros((2, 3, 3), dtype=np.uint8)
    bgr[:, :, 0] = 255  # blue
    ok, data = cv2.imencode(".png", bgr)

    image = decode_image(data.tobytes())

    assert image.size == (3, 2)
    assert image.pixels[0, 0].tolist() == [0, 0, 255, 255]


def test_decode_keeps_alpha():
    bgra = np.zeros((2, 2, 4), dtype=np.uint8)
    bgra[:, :, 2] = 200  # red
    bgra[:, :, 3] = 64
    ok, data = cv2.imencode(".png", bgra)

    image = decode_image(data.tobytes())
    assert image.pixels[1, 1].tolist() == [200, 0, 0, 64]


def test_decode_grayscale():
    gray = np.full((2, 2), 77, dtype=np.uint8)
    ok, data = cv2.imencode(".png", gray)
    assert decode_image(data.tobytes()).pixels[0, 0].tolist() == [77, 77, 77, 255]


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_decode_rejects_garbage(data):
    with pytest.raises(DecodeError):
        decode_image(data)


def test_encode_jpeg_round_trip_dimensions():
    image = RasterImage(np.full((5, 7, 4), 128, dtype=np.uint8))
    data = encode_jpeg(image, quality=90)

    assert data[:2] == b"\xff\xd8"
    assert decode_image(data).size == (7, 5)


def test_encode_failure_raises_encode_error(monkeypatch):
    monkeypatch.setattr(utils.cv2, "imencode", lambda *args: (False, None))
    image = RasterImage(np.zeros((2, 2, 4), dtype=np.uint8))
    with pytest.raises(EncodeError):
        encode_jpeg(image)


def test_configure_logging_installs_one_handler():
    root = configure_logging("DEBUG")
    configure_logging("WARNING")
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
    assert utils.get_logger("pipeline").name == "imgadjust.pipeline"
