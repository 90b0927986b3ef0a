"""Exceptions raised by the OCR pipeline and its stages."""


class OCRError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(OCRError):
    """Invalid or missing configuration detected while building the pipeline.

    Raised for missing model files, an unreadable character dictionary, or a
    dictionary that does not match the recognition model's output space. A
    pipeline that raised this during construction is not usable.
    """


class StageInferenceError(OCRError):
    """A detection, classification or recognition call failed for one image."""

    def __init__(self, message: str, stage: str = ""):
        super().__init__(message)
        self.stage = stage


class DetectionError(StageInferenceError):
    """The detector was handed an image it cannot process."""

    def __init__(self, message: str):
        super().__init__(message, stage="det")


class DegenerateRegionError(OCRError):
    """A quadrilateral collapses to an empty crop."""
