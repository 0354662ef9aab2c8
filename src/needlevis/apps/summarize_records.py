"""离线：汇总多个视频的 CNR 记录（按针型、按角度），输出 JSON。"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Iterator, Optional

from needlevis.io.jsonl_output import iter_jsonl_records
from needlevis.summary import DEFAULT_VISIBILITY_THRESHOLD, summarize_records


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Summarize needle visibility JSONL records across repetitions")
    p.add_argument("inputs", nargs="+", help="JSONL files written by needlevis-analyze")
    p.add_argument(
        "--threshold",
        type=float,
        default=DEFAULT_VISIBILITY_THRESHOLD,
        help="CNR above which an angle counts as visible",
    )
    p.add_argument("--out-json", default="", help="Output JSON path (default: print to stdout)")
    return p


def _iter_all(paths: list[Path]) -> Iterator[dict[str, Any]]:
    for p in paths:
        yield from iter_jsonl_records(p)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    paths = [Path(str(x)).resolve() for x in args.inputs]
    summaries = summarize_records(_iter_all(paths), threshold=float(args.threshold))
    payload = {
        "threshold": float(args.threshold),
        "needles": [s.to_record() for s in summaries],
    }
    text = json.dumps(payload, ensure_ascii=False, indent=2)

    if str(args.out_json).strip():
        out_path = Path(str(args.out_json)).resolve()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text + "\n", encoding="utf-8")
        print(f"Done. needles={len(summaries)} out={out_path}")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
