"""视频读取（OpenCV）。

职责：
- 读取视频元信息（帧数/帧率/尺寸）；
- 按帧号取出灰度帧，产出 pipeline 统一格式（与目标角度同序的帧迭代器）。

说明：
- 该模块只做 IO，不做几何/跟踪。
- 帧号为 0 基；超出视频范围或解码失败的帧产出 None，由 pipeline 记录为失败。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Sequence

import cv2
import numpy as np

from needlevis.models import round_half_away

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VideoInfo:
    """视频元信息。"""

    path: Path
    frame_count: int
    fps: float
    width: int
    height: int

    @property
    def frame_size(self) -> tuple[int, int]:
        """(width, height)。"""

        return (int(self.width), int(self.height))

    @property
    def duration_s(self) -> float:
        if self.fps <= 0:
            return 0.0
        return float(self.frame_count) / float(self.fps)


def _open(path: str | Path) -> cv2.VideoCapture:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"video not found: {p}")
    cap = cv2.VideoCapture(str(p))
    if not cap.isOpened():
        cap.release()
        raise RuntimeError(f"cannot open video: {p}")
    return cap


def probe_video(path: str | Path) -> VideoInfo:
    """读取视频元信息。"""

    cap = _open(path)
    try:
        return VideoInfo(
            path=Path(path),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
            fps=float(cap.get(cv2.CAP_PROP_FPS)),
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )
    finally:
        cap.release()


def default_reference_frames(frame_count: int) -> tuple[int, int]:
    """默认参考帧：视频的 1/5 与 4/5 处。"""

    n = int(frame_count)
    if n < 2:
        raise ValueError(f"video must have at least 2 frames, got {n}")
    first = min(max(round_half_away(n / 5.0), 0), n - 1)
    second = min(max(round_half_away(4.0 * n / 5.0), 0), n - 1)
    return first, second


def to_gray(frame: np.ndarray) -> np.ndarray:
    """BGR/BGRA/灰度统一转成 uint8 灰度。"""

    img = np.asarray(frame)
    if img.ndim == 2:
        return img
    if img.ndim == 3 and img.shape[2] == 1:
        return img[:, :, 0]
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2GRAY)
    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    raise ValueError(f"unsupported frame shape: {img.shape}")


def read_frames(path: str | Path, indices: Sequence[int]) -> Iterator[np.ndarray | None]:
    """按给定顺序产出灰度帧。

    Args:
        path: 视频路径。
        indices: 帧号序列（0 基，可无序、可重复）。

    Yields:
        与 indices 同序的灰度帧；越界或解码失败为 None。
    """

    cap = _open(path)
    try:
        n = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        next_pos = -1
        for idx in indices:
            i = int(idx)
            if i < 0 or (n > 0 and i >= n):
                logger.warning("frame %d outside video (%d frames)", i, n)
                yield None
                continue

            # 顺序读取比 seek 稳定；只有跳跃时才 seek。
            if i != next_pos:
                cap.set(cv2.CAP_PROP_POS_FRAMES, float(i))
            ok, frame = cap.read()
            next_pos = i + 1
            if not ok or frame is None:
                logger.warning("failed to decode frame %d", i)
                next_pos = -1
                yield None
                continue
            yield to_gray(frame)
    finally:
        cap.release()


def read_frame(path: str | Path, index: int) -> np.ndarray | None:
    """读取单帧（灰度）。"""

    frames = read_frames(path, [int(index)])
    try:
        return next(frames)
    finally:
        frames.close()
