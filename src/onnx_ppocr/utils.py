"""Geometry and drawing helpers shared by the pipeline stages."""

from typing import List, Optional

import cv2
import numpy as np

from .errors import DegenerateRegionError

# Crops at least this much taller than wide are treated as vertical text
VERTICAL_RATIO = 1.5


def get_rotate_crop_image(img: np.ndarray, points: np.ndarray) -> np.ndarray:
    """Cut a quadrilateral text region out of an image and rectify it.

    The destination width is the longer of the top/bottom edges and the height
    the longer of the left/right edges. The region is perspective-warped onto
    that rectangle, then turned 90 degrees when it is much taller than wide.

    Args:
        img: Source image (H, W, C)
        points: Region corners (4x2), clockwise from top-left

    Returns:
        Rectified crop that does not share memory with ``img``

    Raises:
        DegenerateRegionError: if the region has no width or height
    """
    points = np.asarray(points, dtype=np.float32).reshape(4, 2).copy()
    img_h, img_w = img.shape[:2]
    points[:, 0] = np.clip(points[:, 0], 0, img_w)
    points[:, 1] = np.clip(points[:, 1], 0, img_h)

    img_crop_width = int(
        max(
            np.linalg.norm(points[0] - points[1]),
            np.linalg.norm(points[2] - points[3])
        )
    )
    img_crop_height = int(
        max(
            np.linalg.norm(points[0] - points[3]),
            np.linalg.norm(points[1] - points[2])
        )
    )
    if img_crop_width < 1 or img_crop_height < 1:
        raise DegenerateRegionError(
            f"Region {points.tolist()} yields a {img_crop_width}x{img_crop_height} crop"
        )

    pts_std = np.float32([
        [0, 0],
        [img_crop_width, 0],
        [img_crop_width, img_crop_height],
        [0, img_crop_height]
    ])

    M = cv2.getPerspectiveTransform(points, pts_std)
    dst_img = cv2.warpPerspective(
        img,
        M,
        (img_crop_width, img_crop_height),
        borderMode=cv2.BORDER_REPLICATE,
        flags=cv2.INTER_CUBIC
    )

    dst_img_height, dst_img_width = dst_img.shape[0:2]
    if dst_img_height * 1.0 / dst_img_width >= VERTICAL_RATIO:
        dst_img = np.ascontiguousarray(np.rot90(dst_img))

    return dst_img


def sorted_boxes(dt_boxes: np.ndarray) -> np.ndarray:
    """Sort text boxes from top to bottom, left to right.

    Boxes whose top-left corners differ by less than 10 px vertically count as
    the same line and are ordered by x.

    Args:
        dt_boxes: Detection boxes array (N, 4, 2)

    Returns:
        Sorted boxes array
    """
    num_boxes = len(dt_boxes)
    if num_boxes == 0:
        return np.asarray(dt_boxes).reshape(0, 4, 2)

    _boxes = sorted(dt_boxes, key=lambda x: (x[0][1], x[0][0]))

    for i in range(num_boxes - 1):
        for j in range(i, -1, -1):
            if abs(_boxes[j + 1][0][1] - _boxes[j][0][1]) < 10 and \
               (_boxes[j + 1][0][0] < _boxes[j][0][0]):
                _boxes[j], _boxes[j + 1] = _boxes[j + 1], _boxes[j]
            else:
                break

    return np.array(_boxes)


def draw_ocr_boxes(
    image: np.ndarray,
    boxes: List,
    texts: Optional[List[str]] = None,
    scores: Optional[List[float]] = None,
    drop_score: float = 0.5,
    font_path: Optional[str] = None,
) -> np.ndarray:
    """Draw OCR results on a copy of a BGR image.

    Results scoring below ``drop_score`` are skipped. Empty boxes (detection
    disabled) outline the whole image.

    Returns:
        Annotated BGR image
    """
    from PIL import Image, ImageDraw, ImageFont

    img = Image.fromarray(cv2.cvtColor(image, cv2.COLOR_BGR2RGB))
    draw = ImageDraw.Draw(img)

    if font_path:
        font = ImageFont.truetype(font_path, 18)
    else:
        font = ImageFont.load_default()

    height, width = image.shape[:2]
    for idx, box in enumerate(boxes):
        if scores is not None and scores[idx] < drop_score:
            continue

        if len(box) == 0:
            box = [[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]]
        box = np.array(box).astype(np.int32).reshape(-1, 2)
        draw.polygon([tuple(int(v) for v in p) for p in box], outline=(0, 255, 0))

        if texts and idx < len(texts):
            box_height = int(np.linalg.norm(box[0] - box[3]))
            box_width = int(np.linalg.norm(box[0] - box[1]))
            # Vertical boxes are outlined only
            if box_height <= 2 * box_width:
                draw.text(
                    (int(box[0][0]), max(int(box[0][1]) - 20, 0)),
                    texts[idx],
                    fill=(255, 0, 0),
                    font=font,
                )

    return cv2.cvtColor(np.array(img), cv2.COLOR_RGB2BGR)
