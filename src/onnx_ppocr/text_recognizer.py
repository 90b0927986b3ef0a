"""
Text Recognition Module - Stage 3 of OCR Pipeline

Recognizes text from oriented text image patches with a CTC model.
"""

import math
from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from .config import RecognizerConfig, SessionConfig
from .errors import ConfigurationError
from .onnx_base import ONNXInferenceBase
from .postprocess import CTCLabelDecode
from .timing import StageTimer


class TextRecognizer:
    """Text recognition module with batch processing.

    Takes a batch of text crops and returns a (text, confidence) pair for each.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        char_dict_path: Union[str, Path],
        config: RecognizerConfig = None,
        session_config: SessionConfig = None,
    ):
        """Initialize text recognizer.

        Args:
            model_path: Path to recognition ONNX model (rec.onnx)
            char_dict_path: Path to character dictionary file
            config: Recognizer configuration (uses defaults if None)
            session_config: Runtime provider/thread options

        Raises:
            ConfigurationError: if the model or dictionary is missing, or the
                dictionary size does not match the model's output classes
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.rec_image_shape = config.rec_image_shape
        self.rec_batch_num = config.rec_batch_num

        if not Path(char_dict_path).is_file():
            raise ConfigurationError(f"Character dictionary not found: {char_dict_path}")

        self.session = ONNXInferenceBase(model_path, session_config, stage="rec")
        self.postprocess_op = CTCLabelDecode(
            character_dict_path=char_dict_path,
            use_space_char=config.use_space_char,
        )

        num_classes = self.session.output_width()
        if num_classes is not None and num_classes != self.postprocess_op.num_classes:
            raise ConfigurationError(
                f"Recognition model {model_path} predicts {num_classes} classes but "
                f"dictionary {char_dict_path} provides {self.postprocess_op.num_classes} "
                f"(including blank)"
            )

    def resize_norm_img(self, img: np.ndarray, max_wh_ratio: float) -> np.ndarray:
        """Resize keeping aspect ratio, normalize to [-1, 1], pad to batch width.

        Args:
            img: Input image (H, W, C) in BGR
            max_wh_ratio: Maximum width/height ratio in batch

        Returns:
            Processed image (C, H, W)
        """
        imgC, imgH, _ = self.rec_image_shape
        if img.ndim != 3 or img.shape[2] != imgC:
            raise ValueError(
                f"Recognizer expects {imgC}-channel crops, got shape {img.shape}"
            )
        imgW = int(imgH * max_wh_ratio)

        h, w = img.shape[:2]
        ratio = w / float(h)

        if math.ceil(imgH * ratio) > imgW:
            resized_w = imgW
        else:
            resized_w = int(math.ceil(imgH * ratio))

        resized_image = cv2.resize(img, (resized_w, imgH)).astype("float32")
        resized_image = resized_image.transpose((2, 0, 1)) / 255
        resized_image -= 0.5
        resized_image /= 0.5

        padding_im = np.zeros((imgC, imgH, imgW), dtype=np.float32)
        padding_im[:, :, 0:resized_w] = resized_image

        return padding_im

    def __call__(
        self,
        img_list: List[np.ndarray],
        timer: Optional[StageTimer] = None,
    ) -> List[Tuple[str, float]]:
        """Recognize text in batch of images.

        Args:
            img_list: List of text image patches (BGR format)
            timer: Accumulator receiving the elapsed phase times

        Returns:
            List of (text, confidence) tuples in input order
        """
        if not img_list:
            return []
        if timer is None:
            timer = StageTimer()

        img_num = len(img_list)

        # Similar aspect ratios share a batch so padding stays small
        width_list = [img.shape[1] / float(img.shape[0]) for img in img_list]
        indices = np.argsort(np.array(width_list))

        rec_res = [("", 0.0)] * img_num
        _, imgH, imgW = self.rec_image_shape[:3]

        for beg_img_no in range(0, img_num, self.rec_batch_num):
            end_img_no = min(img_num, beg_img_no + self.rec_batch_num)
            batch_indices = indices[beg_img_no:end_img_no]

            with timer.measure("preprocess"):
                max_wh_ratio = max(
                    [imgW / imgH] + [width_list[i] for i in batch_indices]
                )
                norm_img_batch = np.concatenate([
                    self.resize_norm_img(img_list[i], max_wh_ratio)[np.newaxis, :]
                    for i in batch_indices
                ])

            with timer.measure("inference"):
                outputs = self.session.run(self.session.get_input_feed(norm_img_batch))

            with timer.measure("postprocess"):
                rec_result = self.postprocess_op(outputs[0])
                for rno, original_idx in enumerate(batch_indices):
                    rec_res[original_idx] = rec_result[rno]

        return rec_res
