"""Configuration classes for the OCR stages and the pipeline."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .errors import ConfigurationError


@dataclass
class DetectorConfig:
    """Configuration for text detection stage."""
    det_limit_side_len: int = 960  # Maximum side length for input images
    det_limit_type: str = "max"  # 'max' or 'min'
    det_db_thresh: float = 0.3  # Binarization threshold
    det_db_box_thresh: float = 0.6  # Box confidence threshold
    det_db_unclip_ratio: float = 1.5  # Text region expansion ratio
    det_db_score_mode: str = "fast"  # 'fast' (box mean) or 'slow' (contour mean)
    use_dilation: bool = False  # Apply dilation to binary mask


@dataclass
class ClassifierConfig:
    """Configuration for text orientation classification stage."""
    cls_image_shape: List[int] = None  # [C, H, W] e.g., [3, 48, 192]
    cls_batch_num: int = 6  # Batch size for classification
    cls_thresh: float = 0.9  # Confidence threshold for rotation
    label_list: List[str] = None  # e.g., ['0', '180']

    def __post_init__(self):
        if self.cls_image_shape is None:
            self.cls_image_shape = [3, 48, 192]
        if self.label_list is None:
            self.label_list = ['0', '180']


@dataclass
class RecognizerConfig:
    """Configuration for text recognition stage."""
    rec_image_shape: List[int] = None  # [C, H, W] e.g., [3, 48, 320]
    rec_batch_num: int = 6  # Batch size for recognition
    use_space_char: bool = True  # Include space character in vocabulary
    drop_score: float = 0.5  # Score below which results are hidden when drawing

    def __post_init__(self):
        if self.rec_image_shape is None:
            self.rec_image_shape = [3, 48, 320]


@dataclass
class SessionConfig:
    """Execution options shared by every ONNX Runtime session."""
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration
    enable_mkldnn: bool = True  # Prefer the oneDNN (MKL-DNN) CPU provider
    cpu_threads: int = 10  # Intra-op thread count for CPU inference


PathLike = Union[str, Path]


@dataclass
class PipelineConfig:
    """Construction options for :class:`~onnx_ppocr.pipeline.PPOCR`.

    Model paths left as ``None`` are resolved through the model registry
    (downloaded on first use). The ``det``/``rec``/``cls`` flags decide which
    stages get loaded at all; a stage that is not loaded cannot be requested
    per call.
    """
    det_model_path: Optional[PathLike] = None
    rec_model_path: Optional[PathLike] = None
    cls_model_path: Optional[PathLike] = None
    rec_char_dict_path: Optional[PathLike] = None

    use_gpu: bool = False
    use_tensorrt: bool = False
    cpu_threads: int = 10
    enable_mkldnn: bool = True

    det: bool = True
    rec: bool = True
    cls: bool = False

    detector: DetectorConfig = field(default_factory=DetectorConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)

    def session_config(self) -> SessionConfig:
        return SessionConfig(
            use_gpu=self.use_gpu,
            use_tensorrt=self.use_tensorrt,
            enable_mkldnn=self.enable_mkldnn,
            cpu_threads=self.cpu_threads,
        )

    def validate(self) -> None:
        """Check option values and explicitly configured paths.

        Raises:
            ConfigurationError: if any option is out of range or an explicit
                model/dictionary path does not exist.
        """
        if self.cpu_threads < 1:
            raise ConfigurationError(
                f"cpu_threads must be at least 1, got {self.cpu_threads}"
            )
        if self.detector.det_limit_type not in ("max", "min"):
            raise ConfigurationError(
                f"Unknown det_limit_type: {self.detector.det_limit_type}"
            )
        if self.detector.det_db_score_mode not in ("fast", "slow"):
            raise ConfigurationError(
                f"Unknown det_db_score_mode: {self.detector.det_db_score_mode}"
            )

        required = []
        if self.det:
            required.append((self.det_model_path, "detection model"))
        if self.rec:
            required.append((self.rec_model_path, "recognition model"))
            required.append((self.rec_char_dict_path, "character dictionary"))
        if self.cls:
            required.append((self.cls_model_path, "classification model"))

        for path, name in required:
            if path is not None and not Path(path).is_file():
                raise ConfigurationError(f"Required {name} not found at: {path}")
