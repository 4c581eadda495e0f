from abc import ABC, abstractmethod

from models import FilterName


class Filter(ABC):
    """
    Abstract Base Class for the named color filters.
    Filters take and return 3-channel RGB arrays.
    """
    @property
    @abstractmethod
    def name(self):
        pass

    @property
    @abstractmethod
    def description(self):
        pass

    @property
    @abstractmethod
    def label(self):
        pass

    @abstractmethod
    def apply(self, backend, image):
        """
        Apply filter to image through backend.
        """
        pass


class NormalFilter(Filter):
    name = FilterName.NORMAL
    label = "Normal"
    description = "No filter applied"

    def apply(self, backend, image):
        return image


class GrayscaleFilter(Filter):
    name = FilterName.GRAYSCALE
    label = "Grayscale"
    description = "Convert image to black and white"

    def apply(self, backend, image):
        gray = backend.convert_color(image, 'RGB2GRAY')
        return backend.convert_color(gray, 'GRAY2RGB')


class SepiaFilter(Filter):
    name = FilterName.SEPIA
    label = "Sepia"
    description = "Warm brownish tone"

    # Rows produce R, G, B from the input (R, G, B).
    MATRIX = (
        (0.393, 0.769, 0.189),
        (0.349, 0.686, 0.168),
        (0.272, 0.534, 0.131),
    )

    def apply(self, backend, image):
        return backend.transform(image, self.MATRIX)


class InvertFilter(Filter):
    name = FilterName.INVERT
    label = "Invert"
    description = "Invert all colors"

    def apply(self, backend, image):
        return backend.bitwise_not(image)


class ChannelBoostFilter(Filter):
    """
    Rescales a single RGB channel by 1.2 with offset 10.
    """
    channel = 0
    factor = 1.2
    offset = 10.0

    def apply(self, backend, image):
        channels = backend.split(image)
        channels[self.channel] = backend.rescale(channels[self.channel], self.factor, self.offset)
        return backend.merge(channels)


class CoolFilter(ChannelBoostFilter):
    name = FilterName.COOL
    label = "Cool"
    description = "Cool blue tone"
    channel = 2


class WarmFilter(ChannelBoostFilter):
    name = FilterName.WARM
    label = "Warm"
    description = "Warm orange tone"
    channel = 0


class FilterRegistry:
    _filters = {}

    @classmethod
    def register(cls, filter_class):
        instance = filter_class()
        cls._filters[instance.name] = instance

    @classmethod
    def get_filter(cls, name):
        return cls._filters.get(FilterName(name))

    @classmethod
    def get_filter_names(cls):
        # Declaration order of FilterName, which is the order shown in the gallery
        return [name for name in FilterName if name in cls._filters]


# Register all
FilterRegistry.register(NormalFilter)
FilterRegistry.register(GrayscaleFilter)
FilterRegistry.register(SepiaFilter)
FilterRegistry.register(InvertFilter)
FilterRegistry.register(CoolFilter)
FilterRegistry.register(WarmFilter)
