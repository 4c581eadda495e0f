import json
from dataclasses import dataclass
from pathlib import Path

import settings
from errors import EditorError, EncodeError, MissingSourceError, user_message
from models import AdjustmentParameters, RasterImage
from utils import decode_image, encode_jpeg, get_logger, read_image, validate_upload

logger = get_logger(__name__)


@dataclass(frozen=True)
class RenderRequest:
    token: int
    source: RasterImage
    params: AdjustmentParameters


class EditSession:
    """
    State of one editing window, independent of Qt.

    Every parameter change issues a RenderRequest with an increasing token.
    Only the result of the latest token is kept (last-write-wins); a failed
    run leaves the last good output in place.
    """

    def __init__(self, pipeline, upload_settings=None):
        self.pipeline = pipeline
        self.upload_settings = dict(settings.UPLOAD_DEFAULTS, **(upload_settings or {}))
        self.source = None
        self.output = None
        self.params = AdjustmentParameters()
        self.last_error = None
        self.is_processing = False
        self._token = 0

    @property
    def has_image(self):
        return self.source is not None

    @property
    def latest_token(self):
        return self._token

    def load_file(self, path):
        validate_upload(path, self.upload_settings["accepted_formats"], self.upload_settings["max_size_mb"])
        self._set_source(read_image(path))
        return self.source

    def load_bytes(self, data):
        self._set_source(decode_image(data))
        return self.source

    def _set_source(self, image):
        self.source = image
        self.output = image
        self.last_error = None
        # Results of runs started for the previous image are stale now
        self._token += 1
        self.is_processing = False

    def update(self, **changes):
        self.params = self.params.with_changes(**changes)
        return self.params

    def reset(self):
        self.params = AdjustmentParameters()
        return self.params

    def begin_run(self):
        if self.source is None:
            raise MissingSourceError("No image loaded")
        self._token += 1
        self.is_processing = True
        return RenderRequest(self._token, self.source, self.params)

    def complete_run(self, token, image):
        if token != self._token:
            logger.debug("Discarding stale result %d (latest %d)", token, self._token)
            return False
        self.output = image
        self.last_error = None
        self.is_processing = False
        return True

    def fail_run(self, token, error):
        if token != self._token:
            return False
        self.last_error = user_message(error)
        self.is_processing = False
        logger.warning("Render %d failed: %s", token, error)
        return True

    def render(self):
        """
        Runs the pipeline synchronously for the current parameters.
        Errors are recorded and re-raised; the previous output stays displayed.
        """
        request = self.begin_run()
        try:
            image = self.pipeline.apply(request.source, request.params)
        except EditorError as e:
            self.fail_run(request.token, e)
            raise
        self.complete_run(request.token, image)
        return image

    def export_jpeg(self, path, quality=None):
        if self.output is None:
            raise MissingSourceError("No image to export")
        data = encode_jpeg(self.output, quality)
        path = Path(path)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise EncodeError(f"Cannot write {path.name}: {e.strerror}") from e
        logger.info("Exported %s (%d bytes)", path.name, len(data))
        return path

    def export_preset(self, path):
        path = Path(path)
        with open(path, 'w') as f:
            json.dump(self.params.to_dict(), f, indent=4)
        logger.info("Adjustments exported to %s", path)
        return path

    def import_preset(self, path):
        with open(path, 'r') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError("Preset file must contain a JSON object")
        self.params = AdjustmentParameters.from_dict(data)
        logger.info("Adjustments imported from %s", path)
        return self.params
