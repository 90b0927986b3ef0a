"""Postprocessing for detector, classifier and recognizer outputs."""

from pathlib import Path
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon

from .errors import ConfigurationError


class DBPostProcess:
    """Post-processing for DB (Differentiable Binarization) text detection.

    Converts probability maps to quadrilateral boxes in source-image pixels.
    """

    def __init__(
        self,
        thresh=0.3,
        box_thresh=0.7,
        max_candidates=1000,
        unclip_ratio=2.0,
        use_dilation=False,
        score_mode="fast",
    ):
        """Initialize DB post-processor.

        Args:
            thresh: Binarization threshold for probability map
            box_thresh: Minimum confidence score for boxes
            max_candidates: Maximum number of text boxes to detect
            unclip_ratio: Ratio for expanding text regions
            use_dilation: Apply morphological dilation
            score_mode: 'fast' (bounding box mean) or 'slow' (contour mean)
        """
        if score_mode not in ("fast", "slow"):
            raise ValueError(f"Unknown score_mode: {score_mode}")
        self.thresh = thresh
        self.box_thresh = box_thresh
        self.max_candidates = max_candidates
        self.unclip_ratio = unclip_ratio
        self.min_size = 3
        self.score_mode = score_mode
        self.dilation_kernel = np.array([[1, 1], [1, 1]]) if use_dilation else None

    def __call__(self, pred_dict, shape_list) -> List[dict]:
        """Convert prediction maps to bounding boxes.

        Args:
            pred_dict: Dictionary with 'maps' key, shape [N, 1, H, W]
            shape_list: Per-image [src_h, src_w, ratio_h, ratio_w]

        Returns:
            One dict per image with 'points' (boxes) and 'scores'
        """
        pred = pred_dict['maps'][:, 0, :, :]
        segmentation = pred > self.thresh

        boxes_batch = []
        for batch_index in range(pred.shape[0]):
            src_h, src_w = shape_list[batch_index][:2]
            mask = segmentation[batch_index]
            if self.dilation_kernel is not None:
                mask = cv2.dilate(mask.astype(np.uint8), self.dilation_kernel)

            boxes, scores = self.boxes_from_bitmap(
                pred[batch_index], mask, int(src_w), int(src_h)
            )
            boxes_batch.append({'points': boxes, 'scores': scores})

        return boxes_batch

    def boxes_from_bitmap(self, pred, bitmap, dest_width, dest_height):
        """Extract quad boxes from a 2-D binary bitmap."""
        height, width = bitmap.shape

        outs = cv2.findContours(
            (bitmap * 255).astype(np.uint8),
            cv2.RETR_LIST,
            cv2.CHAIN_APPROX_SIMPLE
        )
        # OpenCV 3 returns (image, contours, hierarchy)
        contours = outs[1] if len(outs) == 3 else outs[0]

        boxes = []
        scores = []
        for contour in contours[:self.max_candidates]:
            points, sside = self.get_mini_boxes(contour)
            if sside < self.min_size:
                continue

            points = np.array(points)
            if self.score_mode == "fast":
                score = self.box_score_fast(pred, points.reshape(-1, 2))
            else:
                score = self.box_score_slow(pred, contour)
            if score < self.box_thresh:
                continue

            expanded = self.unclip(points, self.unclip_ratio)
            if len(expanded) != 1:
                continue
            box, sside = self.get_mini_boxes(expanded.reshape(-1, 1, 2))
            if sside < self.min_size + 2:
                continue

            box = np.array(box)
            box[:, 0] = np.clip(np.round(box[:, 0] / width * dest_width), 0, dest_width)
            box[:, 1] = np.clip(np.round(box[:, 1] / height * dest_height), 0, dest_height)
            boxes.append(box.astype("int32"))
            scores.append(score)

        return np.array(boxes, dtype="int32").reshape(-1, 4, 2), scores

    @staticmethod
    def unclip(box, unclip_ratio):
        """Expand box using Vatti clipping algorithm."""
        poly = Polygon(box)
        distance = poly.area * unclip_ratio / poly.length
        offset = pyclipper.PyclipperOffset()
        offset.AddPath(box, pyclipper.JT_ROUND, pyclipper.ET_CLOSEDPOLYGON)
        return np.array(offset.Execute(distance))

    @staticmethod
    def get_mini_boxes(contour):
        """Minimum area rectangle as 4 points clockwise from top-left, plus its short side."""
        bounding_box = cv2.minAreaRect(contour)
        points = sorted(list(cv2.boxPoints(bounding_box)), key=lambda x: x[0])

        if points[1][1] > points[0][1]:
            index_1, index_4 = 0, 1
        else:
            index_1, index_4 = 1, 0
        if points[3][1] > points[2][1]:
            index_2, index_3 = 2, 3
        else:
            index_2, index_3 = 3, 2

        box = [points[index_1], points[index_2], points[index_3], points[index_4]]
        return box, min(bounding_box[1])

    @staticmethod
    def _score_window(bitmap, xs, ys):
        h, w = bitmap.shape[:2]
        xmin = int(np.clip(np.floor(xs.min()), 0, w - 1))
        xmax = int(np.clip(np.ceil(xs.max()), 0, w - 1))
        ymin = int(np.clip(np.floor(ys.min()), 0, h - 1))
        ymax = int(np.clip(np.ceil(ys.max()), 0, h - 1))
        return xmin, xmax, ymin, ymax

    def box_score_fast(self, bitmap, box):
        """Mean probability inside the box polygon."""
        box = box.copy()
        xmin, xmax, ymin, ymax = self._score_window(bitmap, box[:, 0], box[:, 1])

        mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
        box[:, 0] = box[:, 0] - xmin
        box[:, 1] = box[:, 1] - ymin
        cv2.fillPoly(mask, box.reshape(1, -1, 2).astype("int32"), 1)
        return cv2.mean(bitmap[ymin:ymax + 1, xmin:xmax + 1], mask)[0]

    def box_score_slow(self, bitmap, contour):
        """Mean probability inside the raw contour."""
        contour = np.reshape(contour.copy(), (-1, 2)).astype("float32")
        xmin, xmax, ymin, ymax = self._score_window(bitmap, contour[:, 0], contour[:, 1])

        mask = np.zeros((ymax - ymin + 1, xmax - xmin + 1), dtype=np.uint8)
        contour[:, 0] = contour[:, 0] - xmin
        contour[:, 1] = contour[:, 1] - ymin
        cv2.fillPoly(mask, contour.reshape(1, -1, 2).astype("int32"), 1)
        return cv2.mean(bitmap[ymin:ymax + 1, xmin:xmax + 1], mask)[0]


class ClsPostProcess:
    """Post-processing for text orientation classification."""

    def __init__(self, label_list=None):
        self.label_list = label_list if label_list else ['0', '180']

    def __call__(self, preds) -> List[Tuple[str, float]]:
        """Convert class probabilities [batch, num_labels] to (label, score) pairs."""
        if preds.shape[1] != len(self.label_list):
            raise ValueError(
                f"Classifier produced {preds.shape[1]} classes for "
                f"{len(self.label_list)} labels"
            )
        pred_idxs = preds.argmax(axis=1)
        return [
            (self.label_list[idx], float(preds[i, idx]))
            for i, idx in enumerate(pred_idxs)
        ]


class CTCLabelDecode:
    """Greedy CTC decoding for text recognition.

    Index 0 of the model output is the CTC blank; indices 1..N map to the
    lines of the character dictionary, optionally followed by a space.
    """

    def __init__(
        self,
        character_dict_path: Optional[Union[str, Path]] = None,
        use_space_char: bool = False,
    ):
        """Initialize CTC decoder.

        Args:
            character_dict_path: Path to character dictionary file, one
                character per line. None uses digits plus lowercase letters.
            use_space_char: Include space character in vocabulary

        Raises:
            ConfigurationError: if the dictionary cannot be read or is empty
        """
        if character_dict_path is None:
            characters = list("0123456789abcdefghijklmnopqrstuvwxyz")
        else:
            try:
                with open(character_dict_path, "rb") as fin:
                    characters = [
                        line.decode("utf-8").strip("\r\n") for line in fin.readlines()
                    ]
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigurationError(
                    f"Cannot read character dictionary {character_dict_path}: {e}"
                ) from e
            if not characters:
                raise ConfigurationError(
                    f"Character dictionary is empty: {character_dict_path}"
                )

        if use_space_char:
            characters.append(" ")

        self.character = ["blank"] + characters
        self.dict = {char: i for i, char in enumerate(self.character)}

    @property
    def num_classes(self) -> int:
        """Number of output classes the model must produce, blank included."""
        return len(self.character)

    def __call__(self, preds) -> List[Tuple[str, float]]:
        """Decode CTC predictions [batch, time, num_classes] to (text, confidence)."""
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]
        if preds.shape[-1] != self.num_classes:
            raise ValueError(
                f"Recognizer produced {preds.shape[-1]} classes, dictionary "
                f"has {self.num_classes}"
            )

        preds_idx = preds.argmax(axis=2)
        preds_prob = preds.max(axis=2)
        return self.decode(preds_idx, preds_prob, is_remove_duplicate=True)

    def decode(self, text_index, text_prob=None, is_remove_duplicate=False):
        """Convert text indices to strings."""
        result_list = []
        for batch_idx in range(len(text_index)):
            indices = np.asarray(text_index[batch_idx])
            selection = np.ones(len(indices), dtype=bool)
            if is_remove_duplicate:
                selection[1:] = indices[1:] != indices[:-1]
            selection &= indices != 0

            text = "".join(self.character[text_id] for text_id in indices[selection])

            if text_prob is not None:
                conf_list = np.asarray(text_prob[batch_idx])[selection]
            else:
                conf_list = np.ones(int(selection.sum()))
            score = float(np.mean(conf_list)) if len(conf_list) else 0.0

            result_list.append((text, score))

        return result_list
