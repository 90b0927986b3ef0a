"""
Text Orientation Classification Module - Stage 2 of OCR Pipeline

Detects and corrects upside-down text (0° or 180°).
"""

import math
from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from .config import ClassifierConfig, SessionConfig
from .onnx_base import ONNXInferenceBase
from .postprocess import ClsPostProcess
from .timing import StageTimer


class TextClassifier:
    """Text orientation classification module with batch processing.

    Takes a batch of text crops and returns an orientation label for each,
    rotating the crops judged upside-down.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        config: ClassifierConfig = None,
        session_config: SessionConfig = None,
    ):
        """Initialize text classifier.

        Args:
            model_path: Path to classification ONNX model (cls.onnx)
            config: Classifier configuration (uses defaults if None)
            session_config: Runtime provider/thread options
        """
        if config is None:
            config = ClassifierConfig()

        self.config = config
        self.cls_image_shape = config.cls_image_shape
        self.cls_batch_num = config.cls_batch_num
        self.cls_thresh = config.cls_thresh

        self.session = ONNXInferenceBase(model_path, session_config, stage="cls")
        self.postprocess_op = ClsPostProcess(label_list=config.label_list)

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize to the classifier height, normalize to [-1, 1], pad to width.

        Returns:
            Processed image (C, H, W)
        """
        imgC, imgH, imgW = self.cls_image_shape
        h, w = img.shape[:2]
        ratio = w / float(h)

        if math.ceil(imgH * ratio) > imgW:
            resized_w = imgW
        else:
            resized_w = int(math.ceil(imgH * ratio))

        resized_image = cv2.resize(img, (resized_w, imgH)).astype("float32")

        if imgC == 1:
            resized_image = resized_image / 255
            resized_image = resized_image[np.newaxis, :]
        else:
            resized_image = resized_image.transpose((2, 0, 1)) / 255

        resized_image -= 0.5
        resized_image /= 0.5

        padding_im = np.zeros((imgC, imgH, imgW), dtype=np.float32)
        padding_im[:, :, 0:resized_w] = resized_image

        return padding_im

    def __call__(
        self,
        img_list: List[np.ndarray],
        auto_rotate: bool = True,
        timer: Optional[StageTimer] = None,
    ) -> Tuple[List[np.ndarray], List[Tuple[str, float]]]:
        """Classify and optionally rotate batch of text images.

        Args:
            img_list: List of text image patches (BGR format)
            auto_rotate: If True, rotate images confidently classified as 180°
            timer: Accumulator receiving the elapsed phase times

        Returns:
            Tuple of:
            - List of (possibly rotated) images, in input order
            - List of (label, confidence) tuples, in input order
        """
        if not img_list:
            return [], []
        if timer is None:
            timer = StageTimer()

        img_list = [img.copy() for img in img_list]
        img_num = len(img_list)

        # Similar aspect ratios share a batch
        width_list = [img.shape[1] / float(img.shape[0]) for img in img_list]
        indices = np.argsort(np.array(width_list))

        cls_res = [("", 0.0)] * img_num

        for beg_img_no in range(0, img_num, self.cls_batch_num):
            end_img_no = min(img_num, beg_img_no + self.cls_batch_num)

            with timer.measure("preprocess"):
                norm_img_batch = np.concatenate([
                    self.resize_norm_img(img_list[indices[ino]])[np.newaxis, :]
                    for ino in range(beg_img_no, end_img_no)
                ])

            with timer.measure("inference"):
                outputs = self.session.run(self.session.get_input_feed(norm_img_batch))

            with timer.measure("postprocess"):
                cls_result = self.postprocess_op(outputs[0])
                for rno, (label, score) in enumerate(cls_result):
                    original_idx = indices[beg_img_no + rno]
                    cls_res[original_idx] = (label, score)

                    if auto_rotate and "180" in label and score > self.cls_thresh:
                        img_list[original_idx] = cv2.rotate(
                            img_list[original_idx],
                            cv2.ROTATE_180
                        )

        return img_list, cls_res

    def classify_only(self, img_list: List[np.ndarray]) -> List[Tuple[str, float]]:
        """Classify orientation without rotating images."""
        _, cls_res = self(img_list, auto_rotate=False)
        return cls_res
