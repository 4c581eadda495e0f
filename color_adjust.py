import math

# Kernel size of the secondary blur used by the unsharp mask; independent of the blur slider.
SHARPEN_MASK_KSIZE = 5


def round_half_up(value):
    """Rounds .5 away from zero for non-negative values (0.5 -> 1, 1.5 -> 2)."""
    return int(math.floor(value + 0.5))


class ColorAdjuster:
    """
    Handles tonal adjustments for RGB images: brightness, contrast,
    saturation, hue, blur and sharpen. Every method goes through a
    VisionBackend and returns a new array.
    """

    @staticmethod
    def apply_brightness_contrast(backend, image, brightness=100, contrast=100):
        """
        Linear rescale per channel.
        brightness: int [0, 200], 100 is original (offset brightness - 100).
        contrast: int [0, 200], 100 is original (scale contrast / 100).
        """
        if brightness == 100 and contrast == 100:
            return image
        return backend.rescale(image, contrast / 100.0, float(brightness - 100))

    @staticmethod
    def to_hsv_channels(backend, image):
        return backend.split(backend.convert_color(image, 'RGB2HSV'))

    @staticmethod
    def from_hsv_channels(backend, channels):
        return backend.convert_color(backend.merge(channels), 'HSV2RGB')

    @staticmethod
    def apply_saturation(backend, channels, saturation=100):
        """
        Scales the S channel of split HSV channels.
        saturation: int [0, 200], 100 is original.
        """
        if saturation == 100:
            return channels
        h, s, v = channels
        s = backend.rescale(s, saturation / 100.0, 0.0)
        return [h, s, v]

    @staticmethod
    def hue_shift(backend, hue):
        """
        Maps degrees [0, 360] onto the backend's hue scale (0-179 for OpenCV).
        """
        return round_half_up(hue / 360.0 * (backend.hue_period - 1))

    @staticmethod
    def apply_hue(backend, channels, hue=0):
        """
        Rotates the H channel of split HSV channels.
        hue: int degrees [0, 360], 0 is original.
        """
        if hue == 0:
            return channels
        h, s, v = channels
        shift = ColorAdjuster.hue_shift(backend, hue)
        h = backend.add_cyclic(h, shift, backend.hue_period)
        return [h, s, v]

    @staticmethod
    def blur_ksize(blur):
        """Odd kernel size for a blur amount: 2 * round(blur) + 1."""
        return 2 * round_half_up(blur) + 1

    @staticmethod
    def apply_blur(backend, image, blur=0.0):
        """
        Gaussian blur.
        blur: float [0, 20], 0 is original.
        """
        if blur <= 0:
            return image
        return backend.gaussian_blur(image, ColorAdjuster.blur_ksize(blur))

    @staticmethod
    def apply_sharpen(backend, image, sharpen=0.0):
        """
        Unsharp mask.
        sharpen: float [0, 10], 0 is original.
        sharpened = original * (1 + amount) - blurred * amount, amount = sharpen / 5
        """
        if sharpen <= 0:
            return image
        amount = sharpen / 5.0
        blurred = backend.gaussian_blur(image, SHARPEN_MASK_KSIZE)
        return backend.add_weighted(image, 1.0 + amount, blurred, -amount, 0.0)
