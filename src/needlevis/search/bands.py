"""沿针线取固定高度的像素带。"""

from __future__ import annotations

import numpy as np

from needlevis.errors import CalibrationInconsistencyError
from needlevis.models import LineFit


def take_band(
    image: np.ndarray,
    fit: LineFit,
    *,
    col_start: int,
    col_stop: int,
    top_offset: int,
    height: int,
) -> np.ndarray:
    """逐列取像素带：第 c 列取行 [row_at(c) + top_offset, row_at(c) + top_offset + height)。

    Returns:
        形状 (height, col_stop - col_start) 的数组（保持输入 dtype）。

    Raises:
        CalibrationInconsistencyError: 任一像素落在图像之外（不会越界读取）。
    """

    img = np.asarray(image)
    n_rows, n_cols = img.shape[:2]
    c0, c1 = int(col_start), int(col_stop)
    if c0 < 0 or c1 > n_cols or c0 > c1:
        raise CalibrationInconsistencyError(f"band columns {c0}:{c1} outside image width {n_cols}")

    cols = np.arange(c0, c1, dtype=np.int64)
    base = np.asarray([fit.row_at(c) for c in cols], dtype=np.int64) + int(top_offset)
    rows = base[None, :] + np.arange(int(height), dtype=np.int64)[:, None]

    if rows.size and (int(rows.min()) < 0 or int(rows.max()) >= n_rows):
        raise CalibrationInconsistencyError(
            f"band rows {int(rows.min())}..{int(rows.max())} outside image height {n_rows}"
        )
    return img[rows, cols[None, :]]
