"""全局坐标系与角度插值（高内聚：只做几何，不触碰图像）。

核心思路：
- 两个手动针尖的均值作为全局坐标系（gcs）原点，也是旋转中心；
- 第一个手动针尖在 gcs 中的向量，按第一个参考角度“反旋转”得到局部向量（lcs）；
- 旋转过程中假设 lcs 与 gcs 的偏移保持不变，于是任意目标角度的针尖预测只是
  把同一个局部向量按目标角度旋转一次（不是对记录位置做插值）。

帧号映射假设两参考帧之间角速度恒定：
    frame = round(f1 + (a - a1) * (f2 - f1) / (a2 - a1))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from needlevis.errors import CalibrationInconsistencyError
from needlevis.models import ManualSeed, round_half_away

# 仅用于可视化：沿针方向取一个远端点（px）。
DISTAL_DISPLAY_LENGTH_PX = 200.0


def _rot(theta: float) -> np.ndarray:
    """逆时针旋转矩阵（数学坐标系）。"""

    c = math.cos(theta)
    s = math.sin(theta)
    return np.array([[c, -s], [s, c]], dtype=np.float64)


@dataclass(frozen=True)
class GlobalCoordinateSystem:
    """由手动种子构造的全局坐标系。

    Attributes:
        origin: gcs 原点（两个手动针尖的均值），帧像素坐标 (x, y)。
        tip_local: 针尖在局部坐标系中的向量 (x, y)。
    """

    origin: tuple[float, float]
    tip_local: tuple[float, float]

    @classmethod
    def from_seed(cls, seed: ManualSeed) -> "GlobalCoordinateSystem":
        t1 = np.asarray(seed.first.tip, dtype=np.float64)
        t2 = np.asarray(seed.second.tip, dtype=np.float64)
        origin = 0.5 * (t1 + t2)

        # 反向旋转（转置）把 gcs 向量带到局部坐标系。
        theta = math.radians(float(seed.first.angle_deg))
        tip_local = _rot(theta).T @ (t1 - origin)
        return cls(
            origin=(float(origin[0]), float(origin[1])),
            tip_local=(float(tip_local[0]), float(tip_local[1])),
        )

    def predict_tip(self, angle_deg: float) -> tuple[float, float]:
        """目标角度下的针尖预测（帧像素坐标）。"""

        p = _rot(math.radians(float(angle_deg))) @ np.asarray(self.tip_local, dtype=np.float64)
        return (float(p[0] + self.origin[0]), float(p[1] + self.origin[1]))

    def predict_distal(self, angle_deg: float, length_px: float = DISTAL_DISPLAY_LENGTH_PX) -> tuple[float, float]:
        """沿针方向的远端点（仅用于可视化叠加）。"""

        v = np.asarray(self.tip_local, dtype=np.float64) + np.array([0.0, -float(length_px)])
        p = _rot(math.radians(float(angle_deg))) @ v
        return (float(p[0] + self.origin[0]), float(p[1] + self.origin[1]))


def frame_index_for_angle(seed: ManualSeed, angle_deg: float) -> int:
    """目标角度对应的源视频帧号。"""

    span = seed.angular_span
    if abs(span) < 1e-9:
        # ManualSeed 构造时已校验；这里保留一次检查，避免被绕过后除以 0。
        raise CalibrationInconsistencyError("manual seed angular span is zero")

    delta = (float(angle_deg) - float(seed.first.angle_deg)) * seed.frames_per_degree
    return round_half_away(float(seed.first.frame_index) + delta)


def frame_indices_for_angles(seed: ManualSeed, angles: Iterable[float]) -> list[int]:
    return [frame_index_for_angle(seed, a) for a in angles]
