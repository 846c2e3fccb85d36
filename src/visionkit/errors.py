"""
Errors raised by visionkit.

Each error carries a stable ``code`` that the JSON tool contract reports to
callers.
"""


class VisionKitError(Exception):
    code = "visionkit_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidBoxError(VisionKitError, ValueError):
    code = "invalid_box"


class InvalidPolygonError(VisionKitError, ValueError):
    code = "invalid_polygon"


class ImageReadError(VisionKitError):
    code = "image_read_error"


class ModelLoadError(VisionKitError):
    code = "model_load_error"
