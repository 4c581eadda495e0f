"""Tests for the edit session used by the window."""

import json

import cv2
import numpy as np
import pytest

from errors import (DecodeError, MissingSourceError, ProcessingError, UnsupportedFormatError,
                    user_message)
from models import AdjustmentParameters, FilterName
from session import EditSession


class FailingPipeline:
    def apply(self, source, params):
        raise ProcessingError("blur", "unsupported dimensions")


def png_bytes(bgr):
    ok, data = cv2.imencode(".png", bgr)
    assert ok
    return data.tobytes()


@pytest.fixture
def session(pipeline):
    return EditSession(pipeline)


@pytest.fixture
def loaded_session(session):
    bgr = np.zeros((4, 6, 3), dtype=np.uint8)
    bgr[:, 3:] = 255
    session.load_bytes(png_bytes(bgr))
    return session


def test_run_without_image_is_rejected(session):
    with pytest.raises(MissingSourceError):
        session.begin_run()
    with pytest.raises(MissingSourceError):
        session.render()
    assert session.output is None


def test_upload_shows_source_until_processed(loaded_session):
    assert loaded_session.has_image
    assert loaded_session.output is loaded_session.source
    assert loaded_session.source.size == (6, 4)


def test_update_and_reset_replace_whole_record(loaded_session):
    params = loaded_session.update(hue=30, selected_filter="warm")
    assert params == AdjustmentParameters(hue=30, selected_filter=FilterName.WARM)

    assert loaded_session.reset() == AdjustmentParameters()
    assert loaded_session.params.is_identity


def test_render_updates_output(loaded_session):
    loaded_session.update(flip_horizontal=True)
    out = loaded_session.render()

    assert loaded_session.output is out
    assert not loaded_session.is_processing
    assert (out.pixels[:, 0, :3] == 255).all()


def test_latest_run_wins(loaded_session, pipeline):
    first = loaded_session.begin_run()
    loaded_session.update(selected_filter="invert")
    second = loaded_session.begin_run()
    assert second.token > first.token
    assert second.params.selected_filter is FilterName.INVERT

    second_result = pipeline.apply(second.source, second.params)
    first_result = pipeline.apply(first.source, first.params)

    assert loaded_session.complete_run(second.token, second_result)
    assert not loaded_session.complete_run(first.token, first_result)
    assert loaded_session.output is second_result


def test_stale_result_arriving_first_is_discarded(loaded_session, pipeline):
    first = loaded_session.begin_run()
    second = loaded_session.begin_run()

    assert not loaded_session.complete_run(first.token, pipeline.apply(first.source, first.params))
    assert loaded_session.output is loaded_session.source
    assert loaded_session.is_processing

    assert loaded_session.complete_run(second.token, pipeline.apply(second.source, second.params))
    assert not loaded_session.is_processing


def test_failed_run_keeps_last_good_output(loaded_session):
    good = loaded_session.render()
    loaded_session.pipeline = FailingPipeline()
    loaded_session.update(blur=4)

    with pytest.raises(ProcessingError):
        loaded_session.render()

    assert loaded_session.output is good
    assert loaded_session.last_error == "Error processing image. Please try again."
    assert not loaded_session.is_processing


def test_new_upload_invalidates_running_request(loaded_session, pipeline):
    request = loaded_session.begin_run()
    loaded_session.load_bytes(png_bytes(np.zeros((2, 2, 3), dtype=np.uint8)))

    assert not loaded_session.complete_run(request.token, pipeline.apply(request.source, request.params))
    assert loaded_session.output.size == (2, 2)


def test_load_file_validates_before_decoding(session, tmp_path):
    bad = tmp_path / "notes.txt"
    bad.write_text("hello")

    with pytest.raises(UnsupportedFormatError):
        session.load_file(bad)
    assert not session.has_image


def test_load_file_with_corrupt_image(session, tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not a png")

    with pytest.raises(DecodeError):
        session.load_file(broken)
    assert not session.has_image


def test_load_file(session, tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes(np.zeros((3, 5, 3), dtype=np.uint8)))

    image = session.load_file(path)
    assert image.size == (5, 3)


def test_upload_size_limit_is_configurable(pipeline, tmp_path):
    session = EditSession(pipeline, upload_settings={"max_size_mb": 0.00001})
    path = tmp_path / "photo.png"
    path.write_bytes(png_bytes(np.zeros((8, 8, 3), dtype=np.uint8)))

    with pytest.raises(UnsupportedFormatError, match="exceeds"):
        session.load_file(path)


def test_export_jpeg(loaded_session, tmp_path):
    loaded_session.render()
    path = loaded_session.export_jpeg(tmp_path / "edited-image.jpg")

    data = path.read_bytes()
    assert data[:2] == b"\xff\xd8"


def test_export_without_image(session, tmp_path):
    with pytest.raises(MissingSourceError):
        session.export_jpeg(tmp_path / "out.jpg")


def test_preset_round_trip(loaded_session, tmp_path):
    loaded_session.update(hue=45, sharpen=2.5, selected_filter="sepia", flip_vertical=True)
    expected = loaded_session.params
    path = loaded_session.export_preset(tmp_path / "adjustments.json")

    loaded_session.reset()
    assert loaded_session.import_preset(path) == expected
    assert json.loads(path.read_text())["selected_filter"] == "sepia"


def test_preset_must_be_an_object(session, tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(ValueError):
        session.import_preset(path)


def test_user_messages():
    assert user_message(MissingSourceError("x")) == "No image to process."
    assert user_message(UnsupportedFormatError("File size exceeds 5MB limit.")) == "File size exceeds 5MB limit."
    assert user_message(RuntimeError("boom")) == "Something went wrong."


@pytest.mark.parametrize("data", [
    {"flip_horizontal": "false"},
    {"hue": 45.5},
])
def test_preset_with_wrong_types_is_rejected(loaded_session, tmp_path, data):
    loaded_session.update(blur=2.0)
    before = loaded_session.params
    path = tmp_path / "adjustments.json"
    path.write_text(json.dumps(data))

    with pytest.raises(ValueError):
        loaded_session.import_preset(path)
    assert loaded_session.params is before
    assert not loaded_session.params.flip_horizontal
