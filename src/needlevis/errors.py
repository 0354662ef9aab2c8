"""needlevis 错误分类（高内聚：只放异常与失败类别定义）。

约定：
- 单个角度的失败（几何越界 / 背景退化 / 采样框越界）只影响该角度，
  pipeline 会记录失败类别并继续处理下一个角度。
- 种子校验失败（两个参考角度相同）或标定缺失/非法属于整次运行的致命错误，直接抛出。
"""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """逐角度记录的失败/告警类别（写入 JSON 记录时使用其字符串值）。"""

    GEOMETRY_OUT_OF_BOUNDS = "geometry_out_of_bounds"
    DEGENERATE_BACKGROUND = "degenerate_background"
    TRACKING_LOW_CONFIDENCE = "tracking_low_confidence"
    CALIBRATION_INCONSISTENCY = "calibration_inconsistency"


class NeedleVisError(RuntimeError):
    """needlevis 所有显式错误的基类。"""

    kind: FailureKind = FailureKind.CALIBRATION_INCONSISTENCY


class GeometryOutOfBoundsError(NeedleVisError):
    """预测针尖或旋转后的 ROI 落在可用像素之外。"""

    kind = FailureKind.GEOMETRY_OUT_OF_BOUNDS


class DegenerateBackgroundError(NeedleVisError):
    """背景样本标准差为 0（或非有限值），CNR 无定义。"""

    kind = FailureKind.DEGENERATE_BACKGROUND


class CalibrationInconsistencyError(NeedleVisError):
    """标定/种子参数互相矛盾，或推导出的采样框超出 ROI。"""

    kind = FailureKind.CALIBRATION_INCONSISTENCY


__all__ = [
    "CalibrationInconsistencyError",
    "DegenerateBackgroundError",
    "FailureKind",
    "GeometryOutOfBoundsError",
    "NeedleVisError",
]
