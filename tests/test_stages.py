import numpy as np
import onnxruntime
import pytest

from onnx_ppocr.config import ClassifierConfig, RecognizerConfig, SessionConfig
from onnx_ppocr.errors import ConfigurationError, DetectionError, StageInferenceError
from onnx_ppocr.onnx_base import ONNXInferenceBase
from onnx_ppocr.text_classifier import TextClassifier
from onnx_ppocr.text_detector import TextDetector
from onnx_ppocr.text_recognizer import TextRecognizer
from onnx_ppocr.timing import StageTimer

from fakes import session_factory


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "model.onnx"
    path.write_bytes(b"onnx")
    return path


@pytest.fixture
def dict_file(tmp_path):
    path = tmp_path / "dict.txt"
    path.write_text("a\nb\nc\n", encoding="utf-8")
    return path


def _use_session(monkeypatch, run_fn, output_shape=("batch", "T", "C")):
    monkeypatch.setattr(onnxruntime, "InferenceSession", session_factory(run_fn, output_shape))


def _ctc_by_top_left(batch):
    """One character per crop chosen from the first normalized pixel: a < 0 < c."""
    preds = np.zeros((batch.shape[0], 4, 4), dtype=np.float32)
    preds[:, 1:, 0] = 1.0
    for n, value in enumerate(batch[:, 0, 0, 0]):
        char_idx = 1 if value < -0.5 else 3 if value > 0.5 else 2
        preds[n, 0, char_idx] = 0.9
    return preds


# ---------------------------------------------------------------------------
# Session base
# ---------------------------------------------------------------------------

def test_missing_model_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        ONNXInferenceBase(tmp_path / "det.onnx")


def test_unloadable_model_is_configuration_error(monkeypatch, model_file):
    def broken(*args, **kwargs):
        raise RuntimeError("INVALID_PROTOBUF")

    monkeypatch.setattr(onnxruntime, "InferenceSession", broken)

    with pytest.raises(ConfigurationError, match="INVALID_PROTOBUF"):
        ONNXInferenceBase(model_file, stage="det")


def test_provider_priority_and_thread_count(monkeypatch, model_file):
    _use_session(monkeypatch, lambda x: x)
    monkeypatch.setattr(
        onnxruntime,
        "get_available_providers",
        lambda: ["DnnlExecutionProvider", "CPUExecutionProvider"],
    )

    base = ONNXInferenceBase(model_file, SessionConfig(use_gpu=True, cpu_threads=3))

    assert base.session.providers == ["DnnlExecutionProvider", "CPUExecutionProvider"]
    assert base.session.sess_options.intra_op_num_threads == 3


def test_runtime_failure_is_stage_inference_error(monkeypatch, model_file):
    def fail(x):
        raise RuntimeError("bad input shape")

    _use_session(monkeypatch, fail)
    base = ONNXInferenceBase(model_file, stage="rec")

    with pytest.raises(StageInferenceError) as excinfo:
        base.run(base.get_input_feed(np.zeros((1, 3, 4, 4), dtype=np.float32)))

    assert excinfo.value.stage == "rec"
    assert isinstance(excinfo.value.__cause__, RuntimeError)


# ---------------------------------------------------------------------------
# Recognizer
# ---------------------------------------------------------------------------

def test_recognizer_restores_input_order_across_batches(monkeypatch, model_file, dict_file):
    _use_session(monkeypatch, _ctc_by_top_left)
    recognizer = TextRecognizer(
        model_file, dict_file, RecognizerConfig(rec_batch_num=2, use_space_char=False)
    )
    crops = [
        np.full((32, 200, 3), 255, dtype=np.uint8),  # widest, sorted last
        np.full((32, 40, 3), 0, dtype=np.uint8),
        np.full((32, 100, 3), 128, dtype=np.uint8),
    ]
    timer = StageTimer()

    results = recognizer(crops, timer=timer)

    assert [text for text, _ in results] == ["c", "a", "b"]
    assert all(score == pytest.approx(0.9) for _, score in results)
    assert timer.inference > 0.0


def test_recognizer_empty_batch(monkeypatch, model_file, dict_file):
    _use_session(monkeypatch, _ctc_by_top_left)
    recognizer = TextRecognizer(model_file, dict_file, RecognizerConfig(use_space_char=False))

    assert recognizer([]) == []


def test_recognizer_dictionary_mismatch_is_configuration_error(monkeypatch, model_file, dict_file):
    _use_session(monkeypatch, _ctc_by_top_left, output_shape=("batch", "T", 6625))

    with pytest.raises(ConfigurationError, match="6625"):
        TextRecognizer(model_file, dict_file)


def test_recognizer_missing_dictionary_is_configuration_error(monkeypatch, model_file, tmp_path):
    _use_session(monkeypatch, _ctc_by_top_left)

    with pytest.raises(ConfigurationError, match="dictionary"):
        TextRecognizer(model_file, tmp_path / "missing.txt")


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

def _orientation_by_top_left(batch):
    upside_down = batch[:, 0, 0, 0] > 0.5
    return np.where(upside_down[:, None], [0.05, 0.95], [0.99, 0.01]).astype(np.float32)


def test_classifier_rotates_confident_upside_down_crops(monkeypatch, model_file):
    _use_session(monkeypatch, _orientation_by_top_left)
    classifier = TextClassifier(model_file, ClassifierConfig(cls_batch_num=1))

    flipped = np.zeros((32, 100, 3), dtype=np.uint8)
    flipped[:, :50] = 255
    upright = np.zeros((32, 60, 3), dtype=np.uint8)

    out, labels = classifier([flipped, upright])

    assert [label for label, _ in labels] == ["180", "0"]
    assert (out[0][:, :50] == 0).all() and (out[0][:, 50:] == 255).all()
    np.testing.assert_array_equal(out[1], upright)
    # inputs are left untouched
    assert (flipped[:, :50] == 255).all()


def test_classifier_keeps_crops_below_threshold(monkeypatch, model_file):
    _use_session(monkeypatch, _orientation_by_top_left)
    classifier = TextClassifier(model_file, ClassifierConfig(cls_thresh=0.99))

    flipped = np.zeros((32, 100, 3), dtype=np.uint8)
    flipped[:, :50] = 255

    out, labels = classifier([flipped])

    assert labels[0][0] == "180"
    np.testing.assert_array_equal(out[0], flipped)


def test_classify_only_never_rotates(monkeypatch, model_file):
    _use_session(monkeypatch, _orientation_by_top_left)
    classifier = TextClassifier(model_file)

    labels = classifier.classify_only([np.full((32, 100, 3), 255, dtype=np.uint8)])

    assert labels == [("180", pytest.approx(0.95))]


# ---------------------------------------------------------------------------
# Detector
# ---------------------------------------------------------------------------

def _text_lines_map(batch):
    """Probability map with three text regions on two lines of a 320x640 input."""
    _, _, h, w = batch.shape
    maps = np.zeros((1, 1, h, w), dtype=np.float32)
    maps[0, 0, 200:240, 50:300] = 1.0
    maps[0, 0, 100:140, 400:600] = 1.0
    maps[0, 0, 100:140, 50:300] = 1.0
    return maps


def test_detector_returns_sorted_boxes_in_source_coordinates(monkeypatch, model_file):
    _use_session(monkeypatch, _text_lines_map)
    detector = TextDetector(model_file)
    timer = StageTimer()

    boxes = detector.detect_single(np.zeros((320, 640, 3), dtype=np.uint8), timer=timer)

    assert boxes.shape == (3, 4, 2)
    top_left = [(int(b[0][0]), int(b[0][1])) for b in boxes]
    assert top_left[0][0] < 60 and top_left[0][1] < 100
    assert top_left[1][0] > 350 and top_left[1][1] < 100
    assert top_left[2][1] > 150
    assert timer.preprocess > 0.0 and timer.postprocess > 0.0


def test_detector_accepts_grayscale(monkeypatch, model_file):
    _use_session(monkeypatch, _text_lines_map)
    detector = TextDetector(model_file)

    assert detector.detect_single(np.zeros((320, 640), dtype=np.uint8)).shape == (3, 4, 2)


@pytest.mark.parametrize("image", [
    None,
    np.zeros((0, 0, 3), dtype=np.uint8),
    np.zeros((10, 10, 5), dtype=np.uint8),
    "page.png",
])
def test_detector_rejects_malformed_images(monkeypatch, model_file, image):
    _use_session(monkeypatch, _text_lines_map)
    detector = TextDetector(model_file)

    with pytest.raises(DetectionError):
        detector.detect_single(image)
