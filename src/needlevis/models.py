"""needlevis 公共数据模型（高内聚：只放数据结构定义）。

坐标约定：
- 帧/ROI 像素坐标均为 0 基：x 向右为列，y 向下为行；点写作 (x, y)。
- 数组索引写作 [row, col]，即 [y, x]。
- 毫米到像素的换算统一采用“四舍五入（.5 远离 0）”，与历史数据保持一致。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterator, Sequence

import numpy as np

from needlevis.errors import CalibrationInconsistencyError, FailureKind


def round_half_away(x: float) -> int:
    """四舍五入到整数（.5 远离 0）。

    说明：Python 内置 round 是“银行家舍入”，会让 2.5 -> 2，这里显式避免。
    """

    return int(math.copysign(math.floor(abs(float(x)) + 0.5), float(x)))


@dataclass(frozen=True)
class CalibrationProfile:
    """一次分析运行的标定参数（不可变）。

    Attributes:
        px_per_mm: 像素/毫米比例（由超声深度标尺读出）。
        needle_diameter_mm: 针直径（mm），决定前景样本高度。
        tip_length_mm: 针尖前景样本长度（mm）。
        shaft_length_mm: 针杆前景样本长度（mm）。
        bg_shaft_length_mm: 针杆背景样本长度（mm）。
        bg_width_mm: 背景样本高度（mm）。
        fg_bg_gap_mm: 前景与背景样本之间的间隔（mm）。
        needle_length_mm: 参与评估的针长（mm）；针杆搜索不会超出该范围（避开针夹）。
        roi_half_width_px: ROI 半宽 width（px）；ROI 尺寸为 (2*width+1) x (4*width+1)。
        search_deviation_px: 行方向允许偏离上一帧估计的幅度（px）；None 表示取背景样本高度。
    """

    px_per_mm: float = 2.85
    needle_diameter_mm: float = 2.0
    tip_length_mm: float = 2.0
    shaft_length_mm: float = 20.0
    bg_shaft_length_mm: float = 40.0
    bg_width_mm: float = 2.0
    fg_bg_gap_mm: float = 2.0
    needle_length_mm: float = 45.0
    roi_half_width_px: int = 50
    search_deviation_px: int | None = None

    def __post_init__(self) -> None:
        if not (math.isfinite(float(self.px_per_mm)) and float(self.px_per_mm) > 0.0):
            raise CalibrationInconsistencyError(f"px_per_mm must be > 0, got {self.px_per_mm}")
        if int(self.roi_half_width_px) < 1:
            raise CalibrationInconsistencyError(f"roi_half_width_px must be >= 1, got {self.roi_half_width_px}")
        if float(self.fg_bg_gap_mm) < 0.0:
            raise CalibrationInconsistencyError(f"fg_bg_gap_mm must be >= 0, got {self.fg_bg_gap_mm}")

        # 换算后为 0 像素的样本尺寸没有意义（空样本），这里直接拒绝。
        for name in (
            "needle_diameter",
            "tip_length",
            "shaft_length",
            "bg_shaft_length",
            "bg_width",
            "needle_length",
        ):
            px = getattr(self, f"{name}_px")
            if px < 1:
                raise CalibrationInconsistencyError(f"{name} converts to {px} px (expected >= 1)")
        if self.search_deviation_px is not None and int(self.search_deviation_px) < 1:
            raise CalibrationInconsistencyError(f"search_deviation_px must be >= 1, got {self.search_deviation_px}")

    def _px(self, mm: float) -> int:
        return round_half_away(float(mm) * float(self.px_per_mm))

    @property
    def needle_diameter_px(self) -> int:
        return self._px(self.needle_diameter_mm)

    @property
    def tip_length_px(self) -> int:
        return self._px(self.tip_length_mm)

    @property
    def shaft_length_px(self) -> int:
        return self._px(self.shaft_length_mm)

    @property
    def bg_shaft_length_px(self) -> int:
        return self._px(self.bg_shaft_length_mm)

    @property
    def bg_width_px(self) -> int:
        return self._px(self.bg_width_mm)

    @property
    def fg_bg_gap_px(self) -> int:
        return self._px(self.fg_bg_gap_mm)

    @property
    def needle_length_px(self) -> int:
        return self._px(self.needle_length_mm)

    @property
    def row_deviation_px(self) -> int:
        if self.search_deviation_px is not None:
            return int(self.search_deviation_px)
        return self.bg_width_px

    @property
    def width(self) -> int:
        return int(self.roi_half_width_px)

    @property
    def roi_shape(self) -> tuple[int, int]:
        """ROI 形状 (rows, cols)。"""

        w = self.width
        return (2 * w + 1, 4 * w + 1)

    def with_needle_diameter(self, diameter_mm: float) -> "CalibrationProfile":
        return replace(self, needle_diameter_mm=float(diameter_mm))


def _atan_deg(dy: float, dx: float) -> float:
    """atan(dy/dx)（度），对竖直线段给出 ±90。"""

    if dx == 0.0:
        if dy == 0.0:
            raise CalibrationInconsistencyError("seed line segment has zero length")
        return math.copysign(90.0, dy)
    return math.degrees(math.atan(dy / dx))


@dataclass(frozen=True)
class LineSegment:
    """手动标注的一条针线段（两个端点，帧像素坐标）。"""

    p0: tuple[float, float]
    p1: tuple[float, float]

    def tip(self, frame_size: tuple[int, int]) -> tuple[float, float]:
        """离帧几何中心最近的端点视为针尖。

        Args:
            frame_size: (width, height)。
        """

        w, h = frame_size
        cx = 0.5 * (float(w) - 1.0)
        cy = 0.5 * (float(h) - 1.0)
        d0 = math.hypot(self.p0[0] - cx, self.p0[1] - cy)
        d1 = math.hypot(self.p1[0] - cx, self.p1[1] - cy)
        p = self.p0 if d0 <= d1 else self.p1
        return (float(p[0]), float(p[1]))

    def angle_deg(self, role: int) -> float:
        """由线段推导的插入角（相对竖直线，度）。

        两个参考帧分别位于旋转的前后两段，线段方向相反，因此换算公式按 role 区分：
        - role=1：90 - atan(dy/dx)，dx = x1 - x0
        - role=2：270 + atan(dy/dx)，dx = x0 - x1
        其中 dy = y0 - y1（图像 y 向下，这里换成向上为正）。
        """

        dy = float(self.p0[1]) - float(self.p1[1])
        if int(role) == 1:
            return 90.0 - _atan_deg(dy, float(self.p1[0]) - float(self.p0[0]))
        if int(role) == 2:
            return 270.0 + _atan_deg(dy, float(self.p0[0]) - float(self.p1[0]))
        raise ValueError(f"role must be 1 or 2, got {role}")


@dataclass(frozen=True)
class SeedReference:
    """一个手动参考：针尖点、采样角度与对应的视频帧号。"""

    tip: tuple[float, float]
    angle_deg: float
    frame_index: int
    segment: LineSegment | None = None

    @classmethod
    def from_segment(
        cls,
        *,
        segment: LineSegment,
        role: int,
        frame_index: int,
        frame_size: tuple[int, int],
        angle_deg: float | None = None,
    ) -> "SeedReference":
        """由标注线段构造参考；angle_deg 为 None 时由线段推导。"""

        ang = float(angle_deg) if angle_deg is not None else segment.angle_deg(role)
        return cls(
            tip=segment.tip(frame_size),
            angle_deg=ang,
            frame_index=int(frame_index),
            segment=segment,
        )


@dataclass(frozen=True)
class ManualSeed:
    """两个参考帧上的手动针估计。

    不变量：两个参考角度必须不同（插值时会除以角度跨度）。
    """

    first: SeedReference
    second: SeedReference

    def __post_init__(self) -> None:
        if not math.isfinite(self.angular_span) or abs(self.angular_span) < 1e-9:
            raise CalibrationInconsistencyError(
                f"manual seed angles must differ (got {self.first.angle_deg} and {self.second.angle_deg})"
            )

    @property
    def angular_span(self) -> float:
        return float(self.second.angle_deg) - float(self.first.angle_deg)

    @property
    def frame_span(self) -> int:
        return int(self.second.frame_index) - int(self.first.frame_index)

    @property
    def frames_per_degree(self) -> float:
        return float(self.frame_span) / self.angular_span


@dataclass(frozen=True)
class TargetAngleSet:
    """有序的目标角度序列（度）。顺序即跟踪顺序。"""

    angles: tuple[float, ...]

    def __post_init__(self) -> None:
        if not self.angles:
            raise ValueError("target angle set must not be empty")

    @classmethod
    def from_range(cls, start: float = 25.0, stop: float = 180.0, step: float = 5.0) -> "TargetAngleSet":
        """等步长角度序列（包含 stop）。"""

        if float(step) <= 0.0:
            raise ValueError(f"step must be > 0, got {step}")
        n = int(math.floor((float(stop) - float(start)) / float(step) + 1e-9)) + 1
        return cls(tuple(float(start) + i * float(step) for i in range(max(0, n))))

    @classmethod
    def of(cls, angles: Sequence[float]) -> "TargetAngleSet":
        return cls(tuple(float(a) for a in angles))

    def __len__(self) -> int:
        return len(self.angles)

    def __iter__(self) -> Iterator[float]:
        return iter(self.angles)

    def __getitem__(self, i: int) -> float:
        return self.angles[i]


@dataclass(frozen=True)
class LineFit:
    """针线拟合（多项式系数，最高次在前，与 np.polyval 一致）。

    说明：当前只构造 0 阶拟合（常数行）。下游只通过 evaluate/row_at 取值，
    因此换成高阶拟合不需要修改采样逻辑。
    """

    coefficients: tuple[float, ...]

    @classmethod
    def constant(cls, row: float) -> "LineFit":
        return cls((float(row),))

    @property
    def order(self) -> int:
        return len(self.coefficients) - 1

    def evaluate(self, x: float | np.ndarray) -> float | np.ndarray:
        return np.polyval(np.asarray(self.coefficients, dtype=np.float64), x)

    def row_at(self, x: float) -> int:
        return round_half_away(float(self.evaluate(float(x))))

    def line(self, length: int) -> np.ndarray:
        """列 0..length-1 上的取整行号。"""

        return np.asarray([self.row_at(c) for c in range(int(length))], dtype=np.int64)

    def slope(self, length: int) -> float:
        """整条线的平均倾角（弧度）。"""

        ln = self.line(length)
        if ln.size == 0:
            return 0.0
        return float(math.atan(float(ln[-1] - ln[0]) / float(ln.size)))


@dataclass(frozen=True)
class Rect:
    """ROI 坐标系下的矩形 (x0, y0, width, height)。"""

    x0: int
    y0: int
    width: int
    height: int

    @property
    def x1(self) -> int:
        return self.x0 + self.width

    @property
    def y1(self) -> int:
        return self.y0 + self.height

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (int(self.x0), int(self.y0), int(self.width), int(self.height))


@dataclass(frozen=True)
class SampleRects:
    """四个采样框：前景针尖/针杆与对应背景。"""

    fg_tip: Rect
    fg_shaft: Rect
    bg_tip: Rect
    bg_shaft: Rect

    def as_dict(self) -> dict[str, list[int]]:
        return {
            "fg_tip": list(self.fg_tip.as_tuple()),
            "fg_shaft": list(self.fg_shaft.as_tuple()),
            "bg_tip": list(self.bg_tip.as_tuple()),
            "bg_shaft": list(self.bg_shaft.as_tuple()),
        }


@dataclass(frozen=True, eq=False)
class CnrSamples:
    """原始 ROI 上取出的像素样本（rows x cols）。bg 为 bg_tip 与 bg_shaft 横向拼接。"""

    fg_tip: np.ndarray
    fg_shaft: np.ndarray
    bg: np.ndarray


@dataclass(frozen=True)
class FrameFailure:
    """单个角度的失败记录。"""

    kind: FailureKind
    message: str = ""

    def as_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "message": str(self.message)}


@dataclass(frozen=True)
class CnrResult:
    """针尖/针杆 CNR 以及计算所用的统计量。"""

    cnr_tip: float
    cnr_shaft: float
    fg_tip_mean: float
    fg_shaft_mean: float
    bg_mean: float
    bg_std: float
