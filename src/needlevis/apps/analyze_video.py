"""离线：读取一段旋转扫描视频，逐角度跟踪针尖并计算 CNR，输出 JSONL。"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Optional

from needlevis.api import iter_visibility_from_video
from needlevis.config import load_analysis_config
from needlevis.io.jsonl_output import open_jsonl_writer
from needlevis.logging_utils import logger_from_settings
from needlevis.needles import parse_video_name


def build_arg_parser() -> argparse.ArgumentParser:
    # 说明：Windows 终端编码差异较大，这里尽量使用 ASCII，避免 --help 乱码。
    p = argparse.ArgumentParser(description="Offline: needle visibility (CNR) per insertion angle from an ultrasound video")
    p.add_argument(
        "--config",
        required=True,
        help="Analysis config file (.json/.yaml/.yml) with video, seed lines and calibration",
    )
    p.add_argument("--video", default="", help="Override the video path from the config")
    p.add_argument("--out-jsonl", default="", help="Override the output JSONL path from the config")
    p.add_argument(
        "--include-samples",
        action="store_true",
        help="Also write raw FG/BG pixel samples into each record",
    )
    p.add_argument("--log-level", default="", help="Override console log level from the config (DEBUG/INFO/WARNING)")
    p.add_argument("--log-file", default="", help="Override the log file from the config")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    cfg = load_analysis_config(Path(str(args.config)).resolve())
    if str(args.video).strip():
        cfg = replace(cfg, video=Path(str(args.video)).expanduser())
    if str(args.out_jsonl).strip():
        cfg = replace(cfg, out_jsonl=Path(str(args.out_jsonl)).expanduser())
    if bool(args.include_samples):
        cfg = replace(cfg, include_samples=True)

    settings = cfg.log
    if str(args.log_level).strip():
        settings = replace(settings, console_level=str(args.log_level))
    if str(args.log_file).strip():
        settings = replace(settings, file=Path(str(args.log_file)).expanduser())
    logger = logger_from_settings(settings)

    video = Path(cfg.video).resolve()
    out_path = Path(cfg.out_jsonl).resolve()
    cfg = replace(cfg, video=video)

    # 每条记录附带实验条件，便于多视频汇总。
    conditions = parse_video_name(video)
    header = {
        "video": conditions.filename,
        "needle": cfg.needle or conditions.needle,
        "needle_index": conditions.needle_index,
        "repetition": conditions.repetition,
    }

    angles_done = 0
    ok_done = 0
    with open_jsonl_writer(out_path) as writer:
        for result in iter_visibility_from_video(cfg, logger=logger):
            rec = dict(header)
            rec.update(result.to_record(include_samples=bool(cfg.include_samples)))
            writer.write(rec)
            angles_done += 1
            if result.ok:
                ok_done += 1

    logger.info("angles=%d ok=%d failed=%d", angles_done, ok_done, angles_done - ok_done)
    print(f"Done. angles={angles_done} ok={ok_done} out={out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
