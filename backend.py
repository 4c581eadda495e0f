from abc import ABC, abstractmethod

import cv2
import numpy as np

from utils import get_logger

logger = get_logger(__name__)


class VisionBackend(ABC):
    """
    Abstract Base Class for the raster primitives the adjustment pipeline needs.
    Images are numpy uint8 arrays; channel order is whatever the caller uses
    (the pipeline works in RGB).
    """
    name = "unknown"

    # Number of distinct hue values of the backend's 8-bit HSV representation.
    hue_period = 180

    @abstractmethod
    def is_ready(self):
        pass

    @abstractmethod
    def flip(self, image, code):
        """
        code: 1 horizontal, 0 vertical, -1 both.
        """
        pass

    @abstractmethod
    def convert_color(self, image, conversion):
        """
        conversion: one of 'RGBA2RGB', 'RGB2HSV', 'HSV2RGB', 'RGB2GRAY', 'GRAY2RGB'.
        """
        pass

    @abstractmethod
    def rescale(self, image, alpha, beta):
        """
        Saturating linear transform: clamp(round(image * alpha + beta), 0, 255).
        """
        pass

    @abstractmethod
    def gaussian_blur(self, image, ksize):
        pass

    @abstractmethod
    def split(self, image):
        pass

    @abstractmethod
    def merge(self, channels):
        pass

    @abstractmethod
    def add_weighted(self, a, weight_a, b, weight_b, gamma=0.0):
        pass

    @abstractmethod
    def transform(self, image, matrix):
        """
        Applies a per-pixel channel mixing matrix (rows are output channels).
        """
        pass

    @abstractmethod
    def bitwise_not(self, image):
        pass

    @abstractmethod
    def add_cyclic(self, channel, shift, period):
        """
        Adds shift to every value with wraparound modulo period.
        """
        pass


class OpenCVBackend(VisionBackend):
    """
    VisionBackend implemented with OpenCV.
    Nothing is usable until load() has bound the conversion table;
    the pipeline checks is_ready() before every run.
    """
    name = "OpenCV"
    hue_period = 180

    def __init__(self):
        self._cv2 = None
        self._conversions = {}

    def load(self):
        if self._cv2 is not None:
            return self
        self._cv2 = cv2
        self._conversions = {
            'RGBA2RGB': cv2.COLOR_RGBA2RGB,
            'RGB2HSV': cv2.COLOR_RGB2HSV,
            'HSV2RGB': cv2.COLOR_HSV2RGB,
            'RGB2GRAY': cv2.COLOR_RGB2GRAY,
            'GRAY2RGB': cv2.COLOR_GRAY2RGB,
        }
        logger.info("OpenCV %s loaded", cv2.__version__)
        return self

    def is_ready(self):
        return self._cv2 is not None

    def flip(self, image, code):
        return self._cv2.flip(image, code)

    def convert_color(self, image, conversion):
        code = self._conversions.get(conversion)
        if code is None:
            raise ValueError(f"Unsupported color conversion {conversion!r}")
        return self._cv2.cvtColor(image, code)

    def rescale(self, image, alpha, beta):
        # addWeighted saturates instead of taking the absolute value like convertScaleAbs
        return self._cv2.addWeighted(image, alpha, image, 0.0, beta)

    def gaussian_blur(self, image, ksize):
        if ksize % 2 == 0:
            ksize += 1 # Ensure odd
        return self._cv2.GaussianBlur(image, (ksize, ksize), 0)

    def split(self, image):
        return list(self._cv2.split(image))

    def merge(self, channels):
        return self._cv2.merge(list(channels))

    def add_weighted(self, a, weight_a, b, weight_b, gamma=0.0):
        return self._cv2.addWeighted(a, weight_a, b, weight_b, gamma)

    def transform(self, image, matrix):
        return self._cv2.transform(image, np.asarray(matrix, dtype=np.float32))

    def bitwise_not(self, image):
        return self._cv2.bitwise_not(image)

    def add_cyclic(self, channel, shift, period):
        shifted = channel.astype(np.int16) + shift
        shifted %= period # Wrap around
        return shifted.astype(np.uint8)
