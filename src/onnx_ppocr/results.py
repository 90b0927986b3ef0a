"""Per-region OCR result record."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class OCRPredictResult:
    """Everything the pipeline learned about one text region.

    Attributes:
        box: Region corners [[x, y] * 4], empty when detection was skipped
        text: Recognized text, empty when recognition was skipped or failed
        score: Recognition confidence in [0, 1], 0.0 when not recognized
        cls_label: Orientation label such as '0' or '180', None if not classified
        cls_score: Orientation confidence, None if not classified
    """
    box: List[List[int]] = field(default_factory=list)
    text: str = ""
    score: float = 0.0
    cls_label: Optional[str] = None
    cls_score: Optional[float] = None

    def __str__(self):
        parts = []
        if self.box:
            parts.append(f"det boxes: {self.box}")
        if self.text or self.score:
            parts.append(f"rec text: {self.text} rec score: {self.score:.6f}")
        if self.cls_label is not None:
            parts.append(f"cls label: {self.cls_label} cls score: {self.cls_score:.6f}")
        return " ".join(parts)
