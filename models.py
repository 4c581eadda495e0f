from dataclasses import dataclass, fields, replace
from enum import Enum

import numpy as np


class FilterName(str, Enum):
    NORMAL = "normal"
    GRAYSCALE = "grayscale"
    SEPIA = "sepia"
    INVERT = "invert"
    COOL = "cool"
    WARM = "warm"


@dataclass(frozen=True, eq=False)
class RasterImage:
    """
    Immutable 8-bit RGBA raster.
    pixels: np.ndarray of shape (height, width, 4), dtype uint8.
    The array is copied on construction and marked read-only.
    """
    pixels: np.ndarray

    def __post_init__(self):
        pixels = np.array(self.pixels, dtype=np.uint8, copy=True)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) RGBA array, got shape {pixels.shape}")
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @classmethod
    def from_array(cls, array):
        """
        Builds a RasterImage from a grayscale (h, w), RGB (h, w, 3) or
        RGBA (h, w, 4) array. Missing alpha becomes fully opaque.
        """
        array = np.asarray(array, dtype=np.uint8)
        if array.ndim == 2:
            array = np.stack([array, array, array], axis=-1)
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Unsupported image shape {array.shape}")
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=-1)
        return cls(array)

    @property
    def width(self):
        return self.pixels.shape[1]

    @property
    def height(self):
        return self.pixels.shape[0]

    @property
    def size(self):
        return self.width, self.height

    def __repr__(self):
        return f"RasterImage({self.width}x{self.height})"


# Inclusive numeric domains of the slider-backed fields.
PARAMETER_RANGES = {
    "brightness": (0, 200),
    "contrast": (0, 200),
    "saturation": (0, 200),
    "blur": (0.0, 20.0),
    "sharpen": (0.0, 10.0),
    "hue": (0, 360),
}

INTEGER_PARAMETERS = ("brightness", "contrast", "saturation", "hue")
FLIP_PARAMETERS = ("flip_horizontal", "flip_vertical")


@dataclass(frozen=True)
class AdjustmentParameters:
    """
    Complete set of user adjustments for one render.
    Changing a field always yields a new, fully populated record.
    """
    brightness: int = 100
    contrast: int = 100
    saturation: int = 100
    blur: float = 0.0
    sharpen: float = 0.0
    hue: int = 0
    selected_filter: FilterName = FilterName.NORMAL
    flip_horizontal: bool = False
    flip_vertical: bool = False

    def __post_init__(self):
        for name in PARAMETER_RANGES:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{name} must be a number, got {value!r}")
            low, high = PARAMETER_RANGES[name]
            if not low <= value <= high:
                raise ValueError(f"{name}={value} is outside [{low}, {high}]")
            if name in INTEGER_PARAMETERS and isinstance(value, float):
                if not value.is_integer():
                    raise ValueError(f"{name} must be a whole number, got {value!r}")
                object.__setattr__(self, name, int(value))
        for name in FLIP_PARAMETERS:
            value = getattr(self, name)
            # Only real booleans; "false" from a preset must not mean True
            if not isinstance(value, (bool, np.bool_)):
                raise ValueError(f"{name} must be true or false, got {value!r}")
            object.__setattr__(self, name, bool(value))
        try:
            selected = FilterName(self.selected_filter)
        except ValueError:
            raise ValueError(f"Unknown filter {self.selected_filter!r}") from None
        object.__setattr__(self, "selected_filter", selected)

    def with_changes(self, **changes):
        return replace(self, **changes)

    @property
    def is_identity(self):
        return self == AdjustmentParameters()

    def to_dict(self):
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.init}
        data["selected_filter"] = self.selected_filter.value
        return data

    @classmethod
    def from_dict(cls, data):
        """
        Builds parameters from a mapping; unknown keys are ignored and
        missing keys keep their defaults.
        """
        known = {f.name for f in fields(cls) if f.init}
        return cls(**{k: v for k, v in data.items() if k in known})
