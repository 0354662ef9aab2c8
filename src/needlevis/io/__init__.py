"""输入/输出：视频读取与 JSONL 记录读写。"""

from __future__ import annotations

from needlevis.io.jsonl_output import JsonlWriter, iter_jsonl_records, open_jsonl_writer
from needlevis.io.video import (
    VideoInfo,
    default_reference_frames,
    probe_video,
    read_frame,
    read_frames,
    to_gray,
)

__all__ = [
    "JsonlWriter",
    "VideoInfo",
    "default_reference_frames",
    "iter_jsonl_records",
    "open_jsonl_writer",
    "probe_video",
    "read_frame",
    "read_frames",
    "to_gray",
]
