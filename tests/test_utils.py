import numpy as np
import pytest

from onnx_ppocr.errors import DegenerateRegionError
from onnx_ppocr.utils import draw_ocr_boxes, get_rotate_crop_image, sorted_boxes

from fakes import quad


def _random_image(h=80, w=160):
    rng = np.random.default_rng(0)
    return rng.integers(0, 256, size=(h, w, 3), dtype=np.uint8)


def test_axis_aligned_crop_is_identity():
    img = _random_image()
    box = np.array(quad(20, 15, 110, 45), dtype=np.float32)

    crop = get_rotate_crop_image(img, box)

    np.testing.assert_array_equal(crop, img[15:45, 20:110])


def test_crop_does_not_share_memory_with_source():
    img = _random_image()
    crop = get_rotate_crop_image(img, np.array(quad(0, 0, 50, 20), dtype=np.float32))
    before = crop.copy()

    img[:] = 0

    np.testing.assert_array_equal(crop, before)


def test_tall_region_is_rotated_to_horizontal():
    img = _random_image()
    crop = get_rotate_crop_image(img, np.array(quad(30, 10, 50, 70), dtype=np.float32))

    assert crop.shape == (20, 60, 3)
    np.testing.assert_array_equal(crop, np.rot90(img[10:70, 30:50]))


def test_slightly_tall_region_is_not_rotated():
    img = _random_image()
    crop = get_rotate_crop_image(img, np.array(quad(30, 10, 60, 50), dtype=np.float32))

    assert crop.shape == (40, 30, 3)


def test_points_outside_image_are_clipped():
    img = _random_image(h=40, w=60)
    crop = get_rotate_crop_image(img, np.array(quad(-10, -5, 30, 20), dtype=np.float32))

    np.testing.assert_array_equal(crop, img[0:20, 0:30])


def test_degenerate_region_raises():
    img = _random_image()
    with pytest.raises(DegenerateRegionError):
        get_rotate_crop_image(img, np.array([[5, 5], [5, 5], [5, 40], [5, 40]], dtype=np.float32))


def test_sorted_boxes_orders_lines_then_columns():
    boxes = np.array([
        quad(100, 52, 150, 70),  # second line, right
        quad(80, 10, 150, 30),   # first line, right
        quad(10, 55, 90, 70),    # second line, left, slightly lower
        quad(10, 12, 60, 30),    # first line, left
    ], dtype=np.float32)

    ordered = sorted_boxes(boxes)

    assert [tuple(b[0]) for b in ordered] == [(10, 12), (80, 10), (10, 55), (100, 52)]


def test_sorted_boxes_handles_no_boxes():
    assert sorted_boxes(np.zeros((0, 4, 2), dtype=np.float32)).shape == (0, 4, 2)


def test_draw_ocr_boxes_returns_annotated_copy():
    img = np.full((60, 120, 3), 255, dtype=np.uint8)

    out = draw_ocr_boxes(
        img,
        [quad(10, 10, 100, 30), []],
        texts=["hello", "page"],
        scores=[0.9, 0.1],
    )

    assert out.shape == img.shape
    assert (out != 255).any()
    assert (img == 255).all()
