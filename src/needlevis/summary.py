"""多次重复实验的 CNR 汇总（只做数值，不画图）。

输入为 analyze_video 写出的 JSONL 记录（每个角度一行，带 needle/repetition 字段）。

输出（按针型）：
- 每个角度在多次重复之间的 CNR 中位数与标准差（ddof=1；样本数 < 2 时为 0）；
- 可见角度范围：每次重复取 CNR > threshold 的最小/最大角度，再对各次重复取中位数并取整。
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import numpy as np

from needlevis.models import round_half_away
from needlevis.needles import needle_index

DEFAULT_VISIBILITY_THRESHOLD = 0.5


@dataclass(frozen=True)
class AngleStats:
    angle_deg: float
    n: int
    median: float
    std: float


@dataclass(frozen=True)
class NeedleSummary:
    """单个针型的汇总结果。"""

    needle: str
    repetitions: int
    tip: tuple[AngleStats, ...]
    shaft: tuple[AngleStats, ...]
    tip_range: tuple[int, int] | None
    shaft_range: tuple[int, int] | None

    def to_record(self) -> dict[str, Any]:
        def _stats(xs: Sequence[AngleStats]) -> list[dict[str, Any]]:
            return [
                {
                    "angle_deg": float(s.angle_deg),
                    "n": int(s.n),
                    "median": _finite(s.median),
                    "std": _finite(s.std),
                }
                for s in xs
            ]

        return {
            "needle": str(self.needle),
            "repetitions": int(self.repetitions),
            "tip": _stats(self.tip),
            "shaft": _stats(self.shaft),
            "tip_visible_range": list(self.tip_range) if self.tip_range is not None else None,
            "shaft_visible_range": list(self.shaft_range) if self.shaft_range is not None else None,
        }


def _finite(x: Any) -> float | None:
    if x is None:
        return None
    v = float(x)
    return v if math.isfinite(v) else None


def angle_stats(angle_deg: float, values: Iterable[float | None]) -> AngleStats:
    """单个角度的中位数/标准差；忽略 None 与非有限值。"""

    xs = np.asarray([v for v in (_finite(x) for x in values) if v is not None], dtype=np.float64)
    if xs.size == 0:
        return AngleStats(angle_deg=float(angle_deg), n=0, median=float("nan"), std=float("nan"))
    std = float(np.std(xs, ddof=1)) if xs.size >= 2 else 0.0
    return AngleStats(angle_deg=float(angle_deg), n=int(xs.size), median=float(np.median(xs)), std=std)


def visible_range(
    angles: Sequence[float],
    cnrs: Sequence[float | None],
    *,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> tuple[float, float] | None:
    """一次重复实验中 CNR 超过阈值的最小/最大角度；没有可见角度时返回 None。"""

    if len(angles) != len(cnrs):
        raise ValueError(f"angles/cnrs length mismatch: {len(angles)} vs {len(cnrs)}")

    visible = [float(a) for a, c in zip(angles, cnrs) if _finite(c) is not None and float(c) > float(threshold)]
    if not visible:
        return None
    return (min(visible), max(visible))


def median_range(ranges: Iterable[tuple[float, float] | None]) -> tuple[int, int] | None:
    """对多次重复的可见范围取中位数（下界、上界分别取），结果取整。"""

    rs = [r for r in ranges if r is not None]
    if not rs:
        return None
    lo = float(np.median(np.asarray([r[0] for r in rs], dtype=np.float64)))
    hi = float(np.median(np.asarray([r[1] for r in rs], dtype=np.float64)))
    return (round_half_away(lo), round_half_away(hi))


def summarize_needle(
    needle: str,
    runs: Sequence[Sequence[dict[str, Any]]],
    *,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> NeedleSummary:
    """汇总同一针型的多次重复。

    Args:
        needle: 针型名。
        runs: 每次重复的逐角度记录（含 angle_deg / cnr_tip / cnr_shaft）。
        threshold: 可见性阈值。
    """

    tip_by_angle: dict[float, list[float | None]] = defaultdict(list)
    shaft_by_angle: dict[float, list[float | None]] = defaultdict(list)
    tip_ranges: list[tuple[float, float] | None] = []
    shaft_ranges: list[tuple[float, float] | None] = []

    for run in runs:
        ordered = sorted(run, key=lambda r: float(r["angle_deg"]))
        angles = [float(r["angle_deg"]) for r in ordered]
        tips = [r.get("cnr_tip") for r in ordered]
        shafts = [r.get("cnr_shaft") for r in ordered]
        for a, t, s in zip(angles, tips, shafts):
            tip_by_angle[a].append(t)
            shaft_by_angle[a].append(s)
        tip_ranges.append(visible_range(angles, tips, threshold=threshold))
        shaft_ranges.append(visible_range(angles, shafts, threshold=threshold))

    return NeedleSummary(
        needle=str(needle),
        repetitions=len(runs),
        tip=tuple(angle_stats(a, tip_by_angle[a]) for a in sorted(tip_by_angle)),
        shaft=tuple(angle_stats(a, shaft_by_angle[a]) for a in sorted(shaft_by_angle)),
        tip_range=median_range(tip_ranges),
        shaft_range=median_range(shaft_ranges),
    )


def group_runs(records: Iterable[dict[str, Any]]) -> dict[str, list[list[dict[str, Any]]]]:
    """按 (needle, video) 把逐角度记录分组为多次重复。

    说明：缺少 needle 字段的记录归到 "unknown"。
    """

    by_needle: dict[str, dict[str, list[dict[str, Any]]]] = defaultdict(lambda: defaultdict(list))
    for r in records:
        if not isinstance(r, dict) or "angle_deg" not in r:
            continue
        needle = str(r.get("needle") or "unknown")
        run_key = str(r.get("video") or r.get("repetition") or "")
        by_needle[needle][run_key].append(r)
    return {k: list(v.values()) for k, v in by_needle.items()}


def summarize_records(
    records: Iterable[dict[str, Any]],
    *,
    threshold: float = DEFAULT_VISIBILITY_THRESHOLD,
) -> list[NeedleSummary]:
    """汇总全部记录；按针型目录顺序输出（未登记的针型排在最后）。"""

    grouped = group_runs(records)

    def _order(name: str) -> tuple[int, str]:
        idx = needle_index(name)
        return (idx if idx > 0 else 10**6, name)

    return [summarize_needle(n, grouped[n], threshold=threshold) for n in sorted(grouped, key=_order)]
