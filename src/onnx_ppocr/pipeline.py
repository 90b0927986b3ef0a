"""
High-level OCR Pipeline

Sequences detection, orientation classification and recognition over one image
or a list of images, and accumulates per-stage timings for benchmarking.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

from .config import PipelineConfig
from .errors import DegenerateRegionError, OCRError, StageInferenceError
from .models import ModelRegistry, registry as default_registry
from .results import OCRPredictResult
from .text_classifier import TextClassifier
from .text_detector import TextDetector, as_bgr
from .text_recognizer import TextRecognizer
from .timing import PipelineTimer, format_summary
from .utils import get_rotate_crop_image

logger = logging.getLogger(__name__)


class PPOCR:
    """
    Complete OCR pipeline: detection → orientation classification → recognition.

    Stages are built from a :class:`PipelineConfig` unless pre-built stage
    objects are passed in. A stage left disabled in the config (and not passed
    in) is never loaded, and requesting it per call only logs a warning.

    Usage:
        ocr = PPOCR(PipelineConfig(cls=True))
        results = ocr.ocr(image)                 # List[OCRPredictResult]
        batches = ocr.ocr([image_a, image_b])    # List[List[OCRPredictResult]]
        ocr.benchmark_log(img_num=3)

    An instance keeps running timing totals and is meant to be used from one
    thread at a time.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        text_detector=None,
        text_classifier=None,
        text_recognizer=None,
        model_registry: Optional[ModelRegistry] = None,
    ):
        """
        Initialize OCR pipeline

        Args:
            config: Model paths, runtime options and stage enable flags
            text_detector: Pre-built detector exposing ``detect_single``
            text_classifier: Pre-built classifier, called with a crop list
            text_recognizer: Pre-built recognizer, called with a crop list
            model_registry: Where to resolve model paths left as None

        Raises:
            ConfigurationError: for invalid options, missing model files or a
                dictionary that does not fit the recognition model
        """
        if config is None:
            config = PipelineConfig()
        config.validate()

        self.config = config
        self._registry = model_registry or default_registry
        self._timer = PipelineTimer()
        session_config = config.session_config()

        if text_detector is None and config.det:
            text_detector = TextDetector(
                self._model_path(config.det_model_path, "detector"),
                config.detector,
                session_config,
            )
        if text_classifier is None and config.cls:
            text_classifier = TextClassifier(
                self._model_path(config.cls_model_path, "classifier"),
                config.classifier,
                session_config,
            )
        if text_recognizer is None and config.rec:
            text_recognizer = TextRecognizer(
                self._model_path(config.rec_model_path, "recognizer"),
                self._model_path(config.rec_char_dict_path, "dictionary"),
                config.recognizer,
                session_config,
            )

        self.text_detector = text_detector
        self.text_classifier = text_classifier
        self.text_recognizer = text_recognizer

    def _model_path(self, path, key: str) -> Path:
        if path is not None:
            return Path(path)
        logger.info("No path configured for %s, resolving from %s", key, self._registry.repo_id)
        return self._registry.get("paddle_ocr", key)

    @property
    def timer(self) -> PipelineTimer:
        """Running per-stage timing totals."""
        return self._timer

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ocr(
        self,
        img: Union[np.ndarray, Sequence[np.ndarray]],
        det: bool = True,
        rec: bool = True,
        cls: bool = True,
    ) -> Union[List[OCRPredictResult], List[List[OCRPredictResult]]]:
        """
        Perform OCR on one image or on a list of images

        Args:
            img: BGR image (H, W, C), or a list/tuple of such images
            det: Whether to detect text regions; if False the whole image is
                one region with an empty box
            rec: Whether to recognize text
            cls: Whether to correct upside-down regions before recognition

        Returns:
            For a single image, one OCRPredictResult per region in detection
            order. For a list, one such list per image, index-aligned.

            A list call never raises for an individual image: an image whose
            stage fails keeps the results produced before the failure. A
            single-image call propagates the StageInferenceError.
        """
        det, rec, cls = self._available_stages(det, rec, cls)

        if not isinstance(img, (list, tuple)):
            ocr_results = []
            self._ocr_single(img, det, rec, cls, ocr_results)
            return ocr_results

        all_results = []
        for idx, single_img in enumerate(img):
            ocr_results = []
            try:
                self._ocr_single(single_img, det, rec, cls, ocr_results)
            except StageInferenceError as e:
                logger.warning(
                    "OCR failed for image %d in %s stage, keeping %d partial result(s): %s",
                    idx, e.stage or "unknown", len(ocr_results), e,
                )
            all_results.append(ocr_results)
        return all_results

    def reset_timer(self) -> None:
        """Zero the detection, recognition and classification timing totals."""
        self._timer.reset()

    def benchmark_log(self, img_num: int) -> Dict[str, Dict[str, float]]:
        """Log and return average per-image milliseconds for every stage.

        Args:
            img_num: Number of images processed since the last reset
        """
        report = self._timer.summary(img_num)
        logger.info("%s", format_summary(report, img_num))
        return report

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _available_stages(self, det: bool, rec: bool, cls: bool):
        if det and self.text_detector is None:
            logger.warning("Text detector is not initialized, detection will be skipped")
            det = False
        if cls and self.text_classifier is None:
            logger.warning(
                "Since the angle classifier is not initialized, "
                "the angle classifier will not be used during the forward process"
            )
            cls = False
        if rec and self.text_recognizer is None:
            logger.warning("Text recognizer is not initialized, recognition will be skipped")
            rec = False
        return det, rec, cls

    def _ocr_single(self, img, det, rec, cls, ocr_results: List[OCRPredictResult]) -> None:
        """Fill ``ocr_results`` stage by stage for one image."""
        img = as_bgr(img)
        if det:
            dt_boxes = self._run_stage(
                "det", self.text_detector.detect_single, img, timer=self._timer.det
            )
            logger.debug("Detected %d text region(s)", len(dt_boxes))
            if len(dt_boxes) == 0:
                return
            ocr_results.extend(
                OCRPredictResult(box=np.round(box).astype(int).tolist()) for box in dt_boxes
            )
            if not (cls or rec):
                return
            crops = self._crop_regions(img, dt_boxes)
        else:
            ocr_results.append(OCRPredictResult())
            if not (cls or rec):
                return
            crops = [img]

        valid = [i for i, crop in enumerate(crops) if crop is not None]
        img_crop_list = [crops[i] for i in valid]
        if not img_crop_list:
            return

        if cls:
            img_crop_list, cls_res = self._run_stage(
                "cls", self.text_classifier, img_crop_list, timer=self._timer.cls
            )
            self._check_count("cls", cls_res, valid)
            for i, (label, score) in zip(valid, cls_res):
                ocr_results[i].cls_label = label
                ocr_results[i].cls_score = float(score)

        if rec:
            rec_res = self._run_stage(
                "rec", self.text_recognizer, img_crop_list, timer=self._timer.rec
            )
            self._check_count("rec", rec_res, valid)
            for i, (text, score) in zip(valid, rec_res):
                ocr_results[i].text = text
                ocr_results[i].score = float(score)

    @staticmethod
    def _crop_regions(img: np.ndarray, dt_boxes: np.ndarray) -> List[Optional[np.ndarray]]:
        """Rectify every region; degenerate regions become None."""
        crops = []
        for idx, box in enumerate(dt_boxes):
            try:
                crops.append(get_rotate_crop_image(img, box.copy()))
            except DegenerateRegionError as e:
                logger.debug("Skipping region %d: %s", idx, e)
                crops.append(None)
        return crops

    @staticmethod
    def _run_stage(stage: str, func, *args, **kwargs):
        """Call a stage, reporting any non-pipeline failure as StageInferenceError."""
        try:
            return func(*args, **kwargs)
        except OCRError:
            raise
        except Exception as e:
            raise StageInferenceError(f"{stage} stage failed: {e}", stage=stage) from e

    @staticmethod
    def _check_count(stage: str, results: list, valid: List[int]) -> None:
        if len(results) != len(valid):
            raise StageInferenceError(
                f"{stage} stage returned {len(results)} result(s) for {len(valid)} region(s)",
                stage=stage,
            )

    def __repr__(self):
        return (
            f"PPOCR(\n"
            f"  detector={self.text_detector},\n"
            f"  classifier={self.text_classifier},\n"
            f"  recognizer={self.text_recognizer}\n"
            f")"
        )
