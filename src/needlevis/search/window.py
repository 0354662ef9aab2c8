"""滑动平均窗口搜索（针尖搜索与针杆样本定位共用）。"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# 均值差在该相对容差内视为并列（取最左侧）。
_TIE_RTOL = 1e-9


@dataclass(frozen=True)
class WindowHit:
    """最亮窗口的位置。

    Attributes:
        offset: 窗口起始列（相对输入数组）。
        mean: 窗口内平均亮度；0 表示没有任何均值为正的窗口（offset 为默认值 0）。
    """

    offset: int
    mean: float

    @property
    def found(self) -> bool:
        return self.mean > 0.0


def best_window(values: np.ndarray, window: int) -> WindowHit:
    """在 (rows, cols) 数组上按列滑动固定长度窗口，返回均值最大的起始列。

    约定：
        - 只考虑完整落在数组内的窗口；
        - 只有均值严格大于 0 的窗口才算命中；
        - 并列时取最左侧窗口。
    """

    if int(window) < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr[None, :]
    if arr.ndim != 2:
        raise ValueError(f"expected a 1-D or 2-D array, got shape {arr.shape}")

    n_rows, n_cols = arr.shape
    win = int(window)
    if n_rows == 0 or n_cols < win:
        return WindowHit(offset=0, mean=0.0)

    # 每个窗口独立求和，避免累积和相减带来的末位误差；并列判定再留一点相对容差。
    col_sums = arr.sum(axis=0)
    sums = np.lib.stride_tricks.sliding_window_view(col_sums, win).sum(axis=1)
    means = sums / float(win * n_rows)

    top = float(means.max())
    if not top > 0.0:
        return WindowHit(offset=0, mean=0.0)
    best = int(np.flatnonzero(means >= top - _TIE_RTOL * max(1.0, abs(top)))[0])
    return WindowHit(offset=best, mean=float(means[best]))
