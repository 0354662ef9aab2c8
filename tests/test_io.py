"""单测：视频读取（OpenCV 写一段极小的合成视频）、JSONL 读写与日志配置。"""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np
import pytest

from needlevis.io import (
    default_reference_frames,
    iter_jsonl_records,
    open_jsonl_writer,
    probe_video,
    read_frame,
    read_frames,
    to_gray,
)
from needlevis.logging_utils import LoggingSettings, get_logger, logger_from_settings


def _write_clip(path: Path, n: int = 10, size: tuple[int, int] = (64, 48)) -> None:
    w, h = size
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (w, h))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    try:
        for i in range(n):
            frame = np.full((h, w, 3), 20 * i, dtype=np.uint8)
            writer.write(frame)
    finally:
        writer.release()


def test_default_reference_frames() -> None:
    assert default_reference_frames(100) == (20, 80)
    assert default_reference_frames(7) == (1, 6)
    with pytest.raises(ValueError):
        default_reference_frames(1)


def test_to_gray_handles_common_layouts() -> None:
    bgr = np.zeros((4, 5, 3), dtype=np.uint8)
    assert to_gray(bgr).shape == (4, 5)
    gray = np.zeros((4, 5), dtype=np.uint8)
    assert to_gray(gray) is gray
    with pytest.raises(ValueError):
        to_gray(np.zeros((4, 5, 2), dtype=np.uint8))


def test_probe_and_read_frames(tmp_path: Path) -> None:
    clip = tmp_path / "clip.avi"
    _write_clip(clip)

    info = probe_video(clip)
    assert info.frame_count == 10
    assert info.frame_size == (64, 48)
    assert info.duration_s == pytest.approx(1.0, abs=0.2)

    frames = list(read_frames(clip, [2, 50, 0, 3]))
    assert len(frames) == 4
    assert frames[1] is None
    for f, expected in ((frames[0], 40), (frames[2], 0), (frames[3], 60)):
        assert f is not None
        assert f.shape == (48, 64)
        assert abs(float(f.mean()) - expected) < 8.0

    single = read_frame(clip, 5)
    assert single is not None and abs(float(single.mean()) - 100) < 8.0


def test_probe_missing_video_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        probe_video(tmp_path / "missing.mp4")


def test_jsonl_writer_round_trip(tmp_path: Path) -> None:
    out = tmp_path / "sub" / "records.jsonl"
    with open_jsonl_writer(out) as writer:
        writer.write({"angle_deg": 30.0, "cnr_tip": 1.5, "note": "针尖"})
        writer.write({"angle_deg": 35.0, "cnr_tip": None})
        assert writer.records_written == 2

    recs = list(iter_jsonl_records(out))
    assert recs == [
        {"angle_deg": 30.0, "cnr_tip": 1.5, "note": "针尖"},
        {"angle_deg": 35.0, "cnr_tip": None},
    ]


def test_jsonl_writer_flushes_each_record(tmp_path: Path) -> None:
    out = tmp_path / "records.jsonl"
    with open_jsonl_writer(out) as writer:
        writer.write({"index": 0})
        # 退出上下文前，已写的记录就应落盘。
        assert list(iter_jsonl_records(out)) == [{"index": 0}]
        writer.write({"index": 1})
        assert len(out.read_text(encoding="utf-8").splitlines()) == 2


def test_get_logger_does_not_duplicate_handlers(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.log"
    a = get_logger("needlevis.test_io", file_output=True, log_file=log_file)
    b = get_logger("needlevis.test_io", file_output=True, log_file=log_file)

    assert a is b
    assert len(a.handlers) == 2
    assert a.level == logging.DEBUG
    a.info("hello")
    for h in a.handlers:
        h.flush()
    assert "hello" in log_file.read_text(encoding="utf-8")
    for h in list(a.handlers):
        h.close()
        a.removeHandler(h)


def test_logger_from_settings_applies_levels(tmp_path: Path) -> None:
    log_file = tmp_path / "analysis.log"
    settings = LoggingSettings(console_level="warning", file_level="INFO", file=log_file)
    logger = logger_from_settings(settings, name="needlevis.test_io_settings")
    try:
        levels = sorted(h.level for h in logger.handlers)
        assert levels == [logging.INFO, logging.WARNING]

        logger.debug("hidden")
        logger.info("shown")
        for h in logger.handlers:
            h.flush()
        text = log_file.read_text(encoding="utf-8")
        assert "shown" in text
        assert "hidden" not in text
    finally:
        for h in list(logger.handlers):
            h.close()
            logger.removeHandler(h)

    with pytest.raises(ValueError):
        LoggingSettings(console_level="LOUD")
