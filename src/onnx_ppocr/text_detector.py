"""
Text Detection Module - Stage 1 of OCR Pipeline

Detects text regions in images using DBNet architecture.
"""

from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from .config import DetectorConfig, SessionConfig
from .errors import DetectionError
from .onnx_base import ONNXInferenceBase
from .postprocess import DBPostProcess
from .preprocess import create_operators, transform
from .timing import StageTimer
from .utils import sorted_boxes


def as_bgr(image) -> np.ndarray:
    """Validate a detector input and return it as a 3-channel BGR array.

    Raises:
        DetectionError: if the image is missing, empty or has an unsupported shape
    """
    if not isinstance(image, np.ndarray):
        raise DetectionError(f"Expected a numpy image, got {type(image).__name__}")
    if image.size == 0:
        raise DetectionError(f"Empty image with shape {image.shape}")
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 1:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    if image.ndim == 3 and image.shape[2] == 3:
        return image
    raise DetectionError(f"Unsupported image shape {image.shape}")


class TextDetector:
    """Text detection module.

    Takes an image and returns its text quadrilaterals sorted top-to-bottom,
    left-to-right.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        config: DetectorConfig = None,
        session_config: SessionConfig = None,
    ):
        """Initialize text detector.

        Args:
            model_path: Path to detection ONNX model (det.onnx)
            config: Detector configuration (uses defaults if None)
            session_config: Runtime provider/thread options
        """
        if config is None:
            config = DetectorConfig()

        self.config = config
        self.session = ONNXInferenceBase(model_path, session_config, stage="det")

        self.preprocess_ops = create_operators([
            {
                "DetResizeForTest": {
                    "limit_side_len": config.det_limit_side_len,
                    "limit_type": config.det_limit_type,
                }
            },
            {
                "NormalizeImage": {
                    "std": [0.229, 0.224, 0.225],
                    "mean": [0.485, 0.456, 0.406],
                    "scale": "1./255.",
                    "order": "hwc",
                }
            },
            {"ToCHWImage": None},
            {"KeepKeys": {"keep_keys": ["image", "shape"]}},
        ])

        self.postprocess_op = DBPostProcess(
            thresh=config.det_db_thresh,
            box_thresh=config.det_db_box_thresh,
            max_candidates=1000,
            unclip_ratio=config.det_db_unclip_ratio,
            use_dilation=config.use_dilation,
            score_mode=config.det_db_score_mode,
        )

    def preprocess(self, image: np.ndarray) -> tuple:
        """Resize and normalize a BGR image.

        Returns:
            Tuple of (CHW float image, [src_h, src_w, ratio_h, ratio_w])
        """
        data = {"image": image.copy()}
        result = transform(data, self.preprocess_ops)
        if result is None:
            raise DetectionError(f"Preprocessing rejected image of shape {image.shape}")
        return result

    def detect_single(
        self,
        image: np.ndarray,
        timer: Optional[StageTimer] = None,
    ) -> np.ndarray:
        """Detect text in a single image.

        Args:
            image: Input image as numpy array (H, W, C) in BGR
            timer: Accumulator receiving the elapsed phase times

        Returns:
            Sorted bounding boxes array of shape (N, 4, 2)

        Raises:
            DetectionError: for malformed input images
            StageInferenceError: if the model call fails
        """
        if timer is None:
            timer = StageTimer()

        with timer.measure("preprocess"):
            image = as_bgr(image)
            img, shape_info = self.preprocess(image)
            img = np.expand_dims(img, axis=0)
            shape_list = np.expand_dims(shape_info, axis=0)

        with timer.measure("inference"):
            outputs = self.session.run(self.session.get_input_feed(img))

        with timer.measure("postprocess"):
            post_result = self.postprocess_op({"maps": outputs[0]}, shape_list)
            dt_boxes = self.filter_tag_det_res(post_result[0]["points"], image.shape)
            dt_boxes = sorted_boxes(dt_boxes)

        return dt_boxes

    @staticmethod
    def order_points_clockwise(pts):
        """Order 4 points clockwise starting from top-left."""
        rect = np.zeros((4, 2), dtype="float32")
        s = pts.sum(axis=1)
        rect[0] = pts[np.argmin(s)]
        rect[2] = pts[np.argmax(s)]
        tmp = np.delete(pts, (np.argmin(s), np.argmax(s)), axis=0)
        diff = np.diff(np.array(tmp), axis=1)
        rect[1] = tmp[np.argmin(diff)]
        rect[3] = tmp[np.argmax(diff)]
        return rect

    @staticmethod
    def clip_det_res(points, img_height, img_width):
        """Clip points to image boundaries."""
        points[:, 0] = np.clip(points[:, 0], 0, img_width - 1).astype(int)
        points[:, 1] = np.clip(points[:, 1], 0, img_height - 1).astype(int)
        return points

    def filter_tag_det_res(self, dt_boxes, image_shape) -> np.ndarray:
        """Order, clip, and drop boxes with a side of 3 px or less."""
        img_height, img_width = image_shape[0:2]
        dt_boxes_new = []

        for box in dt_boxes:
            box = self.order_points_clockwise(np.asarray(box))
            box = self.clip_det_res(box, img_height, img_width)

            rect_width = int(np.linalg.norm(box[0] - box[1]))
            rect_height = int(np.linalg.norm(box[0] - box[3]))
            if rect_width <= 3 or rect_height <= 3:
                continue

            dt_boxes_new.append(box)

        if not dt_boxes_new:
            return np.zeros((0, 4, 2), dtype=np.float32)
        return np.array(dt_boxes_new)
