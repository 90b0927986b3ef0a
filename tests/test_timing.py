import pytest

from onnx_ppocr.timing import PipelineTimer, StageTimer, format_summary


def test_measure_adds_to_named_phase():
    timer = StageTimer()

    with timer.measure("inference"):
        pass
    first = timer.inference
    with timer.measure("inference"):
        pass

    assert timer.inference >= first >= 0.0
    assert timer.preprocess == 0.0
    assert timer.postprocess == 0.0


def test_measure_records_time_when_block_raises():
    timer = StageTimer()

    with pytest.raises(RuntimeError):
        with timer.measure("preprocess"):
            raise RuntimeError("boom")

    assert timer.preprocess >= 0.0


def test_unknown_phase_is_rejected():
    with pytest.raises(ValueError):
        with StageTimer().measure("warmup"):
            pass


def test_summary_averages_per_image_in_milliseconds():
    timer = PipelineTimer()
    timer.det.preprocess = 0.1
    timer.det.inference = 0.3
    timer.rec.postprocess = 0.2

    report = timer.summary(img_num=2)

    assert report["det"] == pytest.approx(
        {"preprocess": 50.0, "inference": 150.0, "postprocess": 0.0, "total": 200.0}
    )
    assert report["rec"]["total"] == pytest.approx(100.0)
    assert report["cls"]["total"] == 0.0
    assert report["all"]["total"] == pytest.approx(300.0)


def test_reset_zeroes_every_stage():
    timer = PipelineTimer()
    timer.det.inference = 1.0
    timer.cls.postprocess = 2.0

    timer.reset()
    timer.reset()

    assert timer.det.total == timer.rec.total == timer.cls.total == 0.0


def test_format_summary_lists_each_stage():
    timer = PipelineTimer()
    text = format_summary(timer.summary(1), 1)

    for stage in ("det", "rec", "cls", "all"):
        assert f"  {stage}" in text
