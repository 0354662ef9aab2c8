"""从增强后的 ROI 中提取针线（0 阶拟合：常数行）。

做法：
- 把 ROI 按列优先展平成一维（逐列首尾相接），用 scipy 找局部极大；
- 最小峰间距取 ROI 行数的一半，大致保证每列最多贡献一两个峰；
- 取最亮的若干峰，行号中位数即为针线所在行。
"""

from __future__ import annotations

import logging

import numpy as np
from scipy.signal import find_peaks

from needlevis.models import LineFit, round_half_away

DEFAULT_MAX_PEAKS = 50


def find_line_peaks(filtered: np.ndarray, *, max_peaks: int = DEFAULT_MAX_PEAKS) -> np.ndarray:
    """返回最亮的峰，形状 (n, 3)，每行为 [col, row, value]，按 value 降序。"""

    img = np.asarray(filtered, dtype=np.float64)
    if img.ndim != 2:
        raise ValueError(f"expected a 2-D array, got shape {img.shape}")

    n_rows = int(img.shape[0])
    flat = img.ravel(order="F")
    distance = max(1, round_half_away(0.5 * n_rows))

    idx, _ = find_peaks(flat, distance=distance)
    if idx.size == 0:
        return np.zeros((0, 3), dtype=np.float64)

    values = flat[idx]
    # 稳定排序：亮度相同的峰保持展平顺序。
    order = np.argsort(-values, kind="stable")[: int(max_peaks)]
    idx = idx[order]

    rows = idx % n_rows
    cols = idx // n_rows
    return np.stack([cols, rows, flat[idx]], axis=1).astype(np.float64)


def extract_line_fit(
    filtered: np.ndarray,
    *,
    fallback_row: float,
    max_peaks: int = DEFAULT_MAX_PEAKS,
    logger: logging.Logger | None = None,
) -> tuple[LineFit, np.ndarray]:
    """峰值行号的中位数作为常数拟合。

    Args:
        filtered: 增强后的 ROI。
        fallback_row: 找不到任何峰时使用的行（通常为当前行估计）。
        max_peaks: 参与中位数的峰数上限。
        logger: 可选 logger；回退时记录 warning。

    Returns:
        (fit, peaks)
    """

    peaks = find_line_peaks(filtered, max_peaks=max_peaks)
    if peaks.shape[0] == 0:
        if logger is not None:
            logger.warning("no peaks in filtered ROI; falling back to row %s", fallback_row)
        return LineFit.constant(float(round_half_away(fallback_row))), peaks

    row = round_half_away(float(np.median(peaks[:, 1])))
    return LineFit.constant(float(row)), peaks
