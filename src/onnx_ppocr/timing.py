"""Running-total timers used for benchmarking the OCR stages."""

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator

PHASES = ("preprocess", "inference", "postprocess")
STAGES = ("det", "rec", "cls")


@dataclass
class StageTimer:
    """Accumulated seconds spent in each phase of one stage."""
    preprocess: float = 0.0
    inference: float = 0.0
    postprocess: float = 0.0

    @contextmanager
    def measure(self, phase: str) -> Iterator[None]:
        """Add the wall time spent inside the block to ``phase``."""
        if phase not in PHASES:
            raise ValueError(f"Unknown timing phase: {phase}")
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            setattr(self, phase, getattr(self, phase) + elapsed)

    @property
    def total(self) -> float:
        return self.preprocess + self.inference + self.postprocess

    def reset(self) -> None:
        self.preprocess = 0.0
        self.inference = 0.0
        self.postprocess = 0.0

    def as_dict(self) -> Dict[str, float]:
        return {phase: getattr(self, phase) for phase in PHASES}


@dataclass
class PipelineTimer:
    """One :class:`StageTimer` per pipeline stage.

    Owned by a single pipeline instance. Only stage execution and
    :meth:`reset` change the totals.
    """
    det: StageTimer = field(default_factory=StageTimer)
    rec: StageTimer = field(default_factory=StageTimer)
    cls: StageTimer = field(default_factory=StageTimer)

    def reset(self) -> None:
        for stage in STAGES:
            getattr(self, stage).reset()

    def summary(self, img_num: int) -> Dict[str, Dict[str, float]]:
        """Average milliseconds per image for every stage and phase.

        Args:
            img_num: Number of images the accumulated totals cover

        Returns:
            ``{stage: {phase: ms, ..., "total": ms}}`` plus an ``"all"`` entry
            summing the three stages.
        """
        if img_num <= 0:
            raise ValueError(f"img_num must be positive, got {img_num}")

        report = {}
        overall = dict.fromkeys(PHASES, 0.0)
        for stage in STAGES:
            timer = getattr(self, stage)
            per_image = {
                phase: seconds * 1000.0 / img_num
                for phase, seconds in timer.as_dict().items()
            }
            per_image["total"] = timer.total * 1000.0 / img_num
            report[stage] = per_image
            for phase in PHASES:
                overall[phase] += per_image[phase]
        overall["total"] = sum(overall[phase] for phase in PHASES)
        report["all"] = overall
        return report


def format_summary(report: Dict[str, Dict[str, float]], img_num: int) -> str:
    """Render :meth:`PipelineTimer.summary` output as a text table."""
    lines = [
        f"OCR benchmark over {img_num} image(s), average ms per image",
        f"  {'stage':<6}{'preprocess':>12}{'inference':>12}{'postprocess':>13}{'total':>10}",
    ]
    for stage, row in report.items():
        lines.append(
            f"  {stage:<6}{row['preprocess']:>12.2f}{row['inference']:>12.2f}"
            f"{row['postprocess']:>13.2f}{row['total']:>10.2f}"
        )
    return "\n".join(lines)
