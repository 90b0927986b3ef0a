"""
Default model management.

Usage:
    from onnx_ppocr.models import registry

    path = registry.get("paddle_ocr", "recognizer")
"""

from .registry import DEFAULT_MODELS, HF_REPO, ModelRegistry, registry

__all__ = [
    "DEFAULT_MODELS",
    "HF_REPO",
    "ModelRegistry",
    "registry",
]
