"""流水线状态：逐角度结果（不可变）与跨角度的跟踪历史（可变，仅 pipeline 持有）。"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from needlevis.errors import FailureKind
from needlevis.geometry.roi import FrameGeometry
from needlevis.models import CnrResult, CnrSamples, FrameFailure, LineFit, SampleRects
from needlevis.search.tip_tracker import SearchWindow


def _opt_float(x: float | None) -> float | None:
    return None if x is None else float(x)


def _pair(p: tuple[float, float] | None) -> list[float] | None:
    if p is None:
        return None
    return [float(p[0]), float(p[1])]


def _float_mat(x: np.ndarray) -> list[list[float]]:
    """样本像素转成 JSON 友好的嵌套列表。"""

    x = np.asarray(x, dtype=np.float64)
    return [[float(v) for v in row] for row in x]


@dataclass
class PipelineState:
    """跨角度共享的跟踪状态。

    Attributes:
        tip_history: 已跟踪到的针尖列（按角度顺序）；几何失败的角度不会追加。
        last_tip_row: 最近一次针尖行；为 None 时行估计取 ROI 半宽（即支点行）。
    """

    tip_history: list[int] = field(default_factory=list)
    last_tip_row: int | None = None

    def row_estimate(self, width: int) -> int:
        if self.last_tip_row is None:
            return int(width)
        return int(self.last_tip_row)

    def record_tip(self, x: int, y: int) -> None:
        self.tip_history.append(int(x))
        self.last_tip_row = int(y)


@dataclass(frozen=True, eq=False)
class PerFrameState:
    """单个目标角度的全部中间结果与输出。

    说明：
        - 任一步骤失败时 failure 非空，之前步骤的结果仍保留（便于排查）。
        - cnr 为 None 表示该角度没有有效 CNR。
    """

    index: int
    angle_deg: float
    frame_index: int
    geometry: FrameGeometry | None = None
    filtered_roi: np.ndarray | None = None
    peaks: np.ndarray | None = None
    fit: LineFit | None = None
    tip: tuple[int, int] | None = None
    tip_low_confidence: bool = False
    search_window: SearchWindow | None = None
    rects: SampleRects | None = None
    samples: CnrSamples | None = None
    cnr: CnrResult | None = None
    failure: FrameFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.cnr is not None

    @property
    def cnr_tip(self) -> float | None:
        return None if self.cnr is None else float(self.cnr.cnr_tip)

    @property
    def cnr_shaft(self) -> float | None:
        return None if self.cnr is None else float(self.cnr.cnr_shaft)

    def to_record(self, *, include_samples: bool = False) -> dict[str, Any]:
        """转成可 JSON 序列化的记录（jsonl 一行）。"""

        g = self.geometry
        c = self.cnr
        out: dict[str, Any] = {
            "index": int(self.index),
            "angle_deg": float(self.angle_deg),
            "frame_index": int(self.frame_index),
            "ok": bool(self.ok),
            "tip_global": _pair(g.tip_global) if g is not None else None,
            "distal_global": _pair(g.distal_global) if g is not None else None,
            "padding": [int(g.padding[0]), int(g.padding[1])] if g is not None else None,
            "fit_coefficients": [float(v) for v in self.fit.coefficients] if self.fit is not None else None,
            "tip": [int(self.tip[0]), int(self.tip[1])] if self.tip is not None else None,
            "tip_low_confidence": bool(self.tip_low_confidence),
            "search_window": (
                [int(self.search_window.start), int(self.search_window.stop)] if self.search_window is not None else None
            ),
            "rects": self.rects.as_dict() if self.rects is not None else None,
            "cnr_tip": self.cnr_tip,
            "cnr_shaft": self.cnr_shaft,
            "fg_tip_mean": _opt_float(c.fg_tip_mean) if c is not None else None,
            "fg_shaft_mean": _opt_float(c.fg_shaft_mean) if c is not None else None,
            "bg_mean": _opt_float(c.bg_mean) if c is not None else None,
            "bg_std": _opt_float(c.bg_std) if c is not None else None,
            "failure": self.failure.as_dict() if self.failure is not None else None,
            "warnings": [FailureKind.TRACKING_LOW_CONFIDENCE.value] if self.tip_low_confidence else [],
        }

        if include_samples and self.samples is not None:
            out["samples"] = {
                "fg_tip": _float_mat(self.samples.fg_tip),
                "fg_shaft": _float_mat(self.samples.fg_shaft),
                "bg": _float_mat(self.samples.bg),
            }
        return out
