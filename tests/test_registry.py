import huggingface_hub
import pytest
from huggingface_hub.errors import LocalEntryNotFoundError

from onnx_ppocr.errors import ConfigurationError
from onnx_ppocr.models import DEFAULT_MODELS, ModelRegistry


def test_get_downloads_from_configured_repo(tmp_path, monkeypatch):
    requested = []

    def fake_download(repo_id, filename):
        requested.append((repo_id, filename))
        return str(tmp_path / filename)

    monkeypatch.setattr(huggingface_hub, "hf_hub_download", fake_download)

    path = ModelRegistry("someone/weights").get("paddle_ocr", "recognizer")

    assert requested == [("someone/weights", "paddle_ocr/rec.onnx")]
    assert path == tmp_path / "paddle_ocr" / "rec.onnx"


@pytest.mark.parametrize("group, key", [("yolox", "detector"), ("paddle_ocr", "layout")])
def test_unknown_names_are_configuration_errors(group, key):
    with pytest.raises(ConfigurationError, match="Unknown"):
        ModelRegistry().get(group, key)


def test_offline_download_is_configuration_error(monkeypatch):
    def offline(repo_id, filename):
        raise LocalEntryNotFoundError("no connection and no cached copy")

    monkeypatch.setattr(huggingface_hub, "hf_hub_download", offline)

    with pytest.raises(ConfigurationError, match="paddle_ocr/det.onnx") as excinfo:
        ModelRegistry().get("paddle_ocr", "detector")

    assert isinstance(excinfo.value.__cause__, LocalEntryNotFoundError)


def test_status_marks_cached_and_missing_files(tmp_path, monkeypatch):
    cached = {"paddle_ocr/det.onnx": str(tmp_path / "det.onnx")}
    monkeypatch.setattr(
        huggingface_hub,
        "try_to_load_from_cache",
        lambda repo_id, filename: cached.get(filename),
    )

    report = ModelRegistry("someone/weights").status().splitlines()

    assert report[0] == "Models from hf://someone/weights"
    rows = {line.split("]", 1)[1].split()[0]: line for line in report if line.startswith("  [")}
    assert set(rows) == set(DEFAULT_MODELS["paddle_ocr"])
    assert "[ cached]" in rows["detector"] and str(tmp_path / "det.onnx") in rows["detector"]
    assert "[missing]" in rows["recognizer"] and "paddle_ocr/rec.onnx" in rows["recognizer"]
