"""
PP-OCR inference pipeline on ONNX Runtime

Three independent stages:
- TextDetector: Finds text regions in images
- TextClassifier: Corrects upside-down text
- TextRecognizer: Converts text images to strings

High-level interface:
- PPOCR: Runs the stages over one image or a list of images and keeps
  per-stage timing totals for benchmarking
"""

from .config import (
    ClassifierConfig,
    DetectorConfig,
    PipelineConfig,
    RecognizerConfig,
    SessionConfig,
)
from .errors import (
    ConfigurationError,
    DegenerateRegionError,
    DetectionError,
    OCRError,
    StageInferenceError,
)
from .pipeline import PPOCR
from .results import OCRPredictResult
from .text_classifier import TextClassifier
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .timing import PipelineTimer, StageTimer
from .utils import get_rotate_crop_image, sorted_boxes

__version__ = "0.1.0"
__all__ = [
    "PPOCR",
    "OCRPredictResult",
    "PipelineConfig",
    "DetectorConfig",
    "ClassifierConfig",
    "RecognizerConfig",
    "SessionConfig",
    "TextDetector",
    "TextClassifier",
    "TextRecognizer",
    "PipelineTimer",
    "StageTimer",
    "get_rotate_crop_image",
    "sorted_boxes",
    "OCRError",
    "ConfigurationError",
    "StageInferenceError",
    "DetectionError",
    "DegenerateRegionError",
]
