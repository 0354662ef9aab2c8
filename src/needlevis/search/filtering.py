"""基于位置先验的 ROI 增强（location bias）。

目的：压低远离预期针位置的亮度，帮助后续峰值搜索避开混响伪影与组织杂波。

权重形状（经验调参，不是物理模型；背景噪声特性不同时可整体替换）：
- 行方向：以行估计 y_est 为峰值 1 的二次曲线，|r - y_est| >= dev 处为 0
  （带外的行直接置 0）；
- 列方向：只作用于支点左侧的 width 列，左边缘为 0，二次上升到支点前一列为 1；
  支点及其右侧（针杆方向）不加权。

先乘行权重再乘列权重，结果夹紧到 >= 0。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from needlevis.models import CalibrationProfile


@dataclass(frozen=True)
class LocationBias:
    """行/列二次权重策略。

    Attributes:
        deviation: 行方向允许的最大偏离（px），即二次曲线的过零点。
        width: ROI 半宽；列权重只覆盖 [0, width)。
    """

    deviation: int
    width: int

    @classmethod
    def from_calibration(cls, calibration: CalibrationProfile) -> "LocationBias":
        return cls(deviation=int(calibration.row_deviation_px), width=int(calibration.width))

    def row_weights(self, n_rows: int, row_estimate: float) -> np.ndarray:
        r = np.arange(int(n_rows), dtype=np.float64)
        u = (r - float(row_estimate)) / float(self.deviation)
        w = 1.0 - u * u
        w[np.abs(r - float(row_estimate)) >= float(self.deviation)] = 0.0
        return np.maximum(w, 0.0)

    def column_weights(self, n_cols: int) -> np.ndarray:
        w = np.ones(int(n_cols), dtype=np.float64)
        k = min(int(self.width), int(n_cols))
        u = np.arange(1, k + 1, dtype=np.float64) / float(self.width)
        w[:k] = 2.0 * u - u * u
        return np.maximum(w, 0.0)

    def apply(self, roi: np.ndarray, row_estimate: float) -> np.ndarray:
        """返回加权后的 ROI（float64，>= 0）。"""

        img = np.asarray(roi, dtype=np.float64)
        if img.ndim != 2:
            raise ValueError(f"expected a 2-D ROI, got shape {img.shape}")

        n_rows, n_cols = img.shape
        out = img * self.row_weights(n_rows, row_estimate)[:, None]
        out = out * self.column_weights(n_cols)[None, :]
        return np.maximum(out, 0.0)
