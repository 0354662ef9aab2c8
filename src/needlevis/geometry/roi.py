"""帧规范化：补零对齐 -> 绕中心旋转 -> 截取固定尺寸 ROI。

说明：
- 旋转始终以图像中心为支点，因此先把帧补零，使预测针尖恰好落在画布中心像素上；
  补零量可正可负（正：补在左/上；负：补在右/下）。
- 旋转角为 270 + 目标角度（逆时针，最近邻插值，画布扩展到能容纳整幅旋转图像）。
  旋转后针尖位于 ROI 支点，针杆朝右。
- ROI 以支点为基准：上下各 width 行，左 1*width 列、右 3*width 列。
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import cv2
import numpy as np

from needlevis.errors import GeometryOutOfBoundsError
from needlevis.geometry.canonical import GlobalCoordinateSystem
from needlevis.models import round_half_away

CANONICAL_ROTATION_OFFSET_DEG = 270.0


@dataclass(frozen=True, eq=False)
class FrameGeometry:
    """单个目标角度的几何结果。

    Attributes:
        angle_deg: 目标角度（度）。
        tip_global: 预测针尖（原始帧像素坐标）。
        distal_global: 沿针方向的远端点（可视化用）。
        padding: (pad_x, pad_y) 补零量（正：补在左/上，负：补在右/下）。
        rotated_shape: 旋转后画布形状 (rows, cols)。
        pivot: 旋转后画布中针尖所在像素 (x, y)。
        roi: 原始（未滤波）ROI，形状 (2*width+1, 4*width+1)。
    """

    angle_deg: float
    tip_global: tuple[float, float]
    distal_global: tuple[float, float]
    padding: tuple[int, int]
    rotated_shape: tuple[int, int]
    pivot: tuple[int, int]
    roi: np.ndarray


def pad_to_pivot(frame: np.ndarray, tip: tuple[float, float]) -> tuple[np.ndarray, tuple[int, int]]:
    """补零，使取整后的针尖成为画布的正中心像素。

    Returns:
        (padded, (pad_x, pad_y))

    Raises:
        GeometryOutOfBoundsError: 预测针尖落在原始帧之外。
    """

    img = np.asarray(frame)
    if img.ndim != 2:
        raise ValueError(f"expected a 2-D grayscale frame, got shape {img.shape}")

    h, w = img.shape
    rx = round_half_away(tip[0])
    ry = round_half_away(tip[1])
    if not (0 <= rx < w and 0 <= ry < h):
        raise GeometryOutOfBoundsError(f"predicted tip ({tip[0]:.1f}, {tip[1]:.1f}) outside frame {w}x{h}")

    # 画布中心 (W'-1)/2 需要等于针尖在画布中的坐标。
    pad_x = (w - 1) - 2 * rx
    pad_y = (h - 1) - 2 * ry

    padded = np.zeros((h + abs(pad_y), w + abs(pad_x)), dtype=img.dtype)
    ox = pad_x if pad_x > 0 else 0
    oy = pad_y if pad_y > 0 else 0
    padded[oy : oy + h, ox : ox + w] = img
    return padded, (int(pad_x), int(pad_y))


def _odd_ceil(x: float) -> int:
    n = int(math.ceil(x - 1e-9))
    return n if n % 2 == 1 else n + 1


def rotate_about_center(image: np.ndarray, angle_deg: float) -> tuple[np.ndarray, tuple[int, int]]:
    """绕图像中心逆时针旋转（画布扩展，最近邻，补 0）。

    说明：输出画布尺寸取奇数，保证旋转中心仍落在整像素上。

    Returns:
        (rotated, pivot_xy)
    """

    img = np.ascontiguousarray(image)
    h, w = img.shape[:2]
    center = (0.5 * (w - 1), 0.5 * (h - 1))

    M = cv2.getRotationMatrix2D(center, float(angle_deg), 1.0)
    cos_a = abs(float(M[0, 0]))
    sin_a = abs(float(M[0, 1]))
    new_w = _odd_ceil(h * sin_a + w * cos_a)
    new_h = _odd_ceil(h * cos_a + w * sin_a)

    M[0, 2] += 0.5 * (new_w - 1) - center[0]
    M[1, 2] += 0.5 * (new_h - 1) - center[1]

    rotated = cv2.warpAffine(
        img,
        M,
        (new_w, new_h),
        flags=cv2.INTER_NEAREST,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=0,
    )
    return rotated, ((new_w - 1) // 2, (new_h - 1) // 2)


def extract_roi(rotated: np.ndarray, pivot: tuple[int, int], width: int) -> np.ndarray:
    """以支点为基准截取 (2*width+1) x (4*width+1) 的 ROI（左 1 份、右 3 份）。"""

    cx, cy = int(pivot[0]), int(pivot[1])
    w = int(width)
    r0, r1 = cy - w, cy + w + 1
    c0, c1 = cx - w, cx + 3 * w + 1

    rows, cols = rotated.shape[:2]
    if r0 < 0 or c0 < 0 or r1 > rows or c1 > cols:
        raise GeometryOutOfBoundsError(
            f"ROI rows {r0}:{r1} cols {c0}:{c1} exceed rotated image {rows}x{cols}"
        )
    return rotated[r0:r1, c0:c1].copy()


def prepare_frame(
    *,
    gcs: GlobalCoordinateSystem,
    frame: np.ndarray,
    angle_deg: float,
    width: int,
) -> FrameGeometry:
    """单个目标角度：预测针尖、补零、旋转并截取 ROI。"""

    tip = gcs.predict_tip(angle_deg)
    padded, padding = pad_to_pivot(frame, tip)
    rotated, pivot = rotate_about_center(padded, CANONICAL_ROTATION_OFFSET_DEG + float(angle_deg))
    roi = extract_roi(rotated, pivot, width)

    return FrameGeometry(
        angle_deg=float(angle_deg),
        tip_global=tip,
        distal_global=gcs.predict_distal(angle_deg),
        padding=padding,
        rotated_shape=(int(rotated.shape[0]), int(rotated.shape[1])),
        pivot=pivot,
        roi=roi,
    )


def prepare_frames(
    *,
    gcs: GlobalCoordinateSystem,
    frames: Sequence[np.ndarray],
    angles: Sequence[float],
    width: int,
) -> list[FrameGeometry]:
    """批量版本：按角度顺序逐帧规范化（任一角度越界即抛出）。

    说明：pipeline 逐角度调用 `prepare_frame` 以便隔离失败；这里用于一次性预览/调试。
    """

    if len(frames) != len(angles):
        raise ValueError(f"frames/angles length mismatch: {len(frames)} vs {len(angles)}")
    return [prepare_frame(gcs=gcs, frame=f, angle_deg=a, width=width) for f, a in zip(frames, angles)]
