# Application settings
import os

# --- Upload ---
UPLOAD_DEFAULTS = {
    "accepted_formats": ("image/jpeg", "image/png", "image/webp"),
    "max_size_mb": 5,
}

# --- Export ---
EXPORT_DEFAULTS = {
    "jpeg_quality": 92,
    "default_filename": "edited-image.jpg",
    "preset_filename": "adjustments.json",
}

# --- UI Defaults ---
UI_DEFAULTS = {
    "debounce_ms": 200,
    "window_size": (1200, 800),
    "sidebar_min_width": 320,
}

# --- Logging ---
LOGGING_LEVEL = os.environ.get("IMGADJUST_LOG_LEVEL", "INFO") # DEBUG, INFO, WARNING, ERROR
LOGGING_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
