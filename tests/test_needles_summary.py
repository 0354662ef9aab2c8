"""单测：针型目录、文件名解析与多次重复的 CNR 汇总。"""

from __future__ import annotations

import math

import pytest

from needlevis.needles import NEEDLE_DIAMETERS_MM, needle_diameter_mm, needle_index, parse_video_name
from needlevis.summary import angle_stats, median_range, summarize_records, visible_range


def test_parse_video_name_standard_and_missing_space() -> None:
    c = parse_video_name("data/Steel_2mm 3 - 20171103T101500.MP4")
    assert c.filename == "Steel_2mm 3 - 20171103T101500.MP4"
    assert c.needle == "Steel_2mm"
    assert c.needle_index == 4
    assert c.repetition == 3
    assert c.timestamp == "20171103T101500"

    c2 = parse_video_name("Niti_2mm 10- 20171104T090000.MP4")
    assert c2.needle == "Niti_2mm"
    assert c2.repetition == 10
    assert c2.timestamp == "20171104T090000"


def test_unknown_needle_falls_back() -> None:
    c = parse_video_name("Mystery 1 - x.mp4")
    assert c.needle_index == 0
    assert needle_index("Mystery") == 0
    assert needle_diameter_mm("Mystery", 2.0) == 2.0
    assert needle_diameter_mm(None, 1.5) == 1.5


def test_needle_catalog() -> None:
    assert len(NEEDLE_DIAMETERS_MM) == 12
    assert needle_index("Bevel_22G") == 1
    assert needle_diameter_mm("Bevel_22G", 2.0) == 0.7
    assert needle_diameter_mm("Trocar_coat_18G", 2.0) == 1.3


def test_angle_stats_median_and_sample_std() -> None:
    s = angle_stats(30.0, [1.0, 2.0, 3.0, None, float("nan")])
    assert s.n == 3
    assert s.median == 2.0
    assert s.std == pytest.approx(1.0)

    one = angle_stats(30.0, [4.0])
    assert (one.n, one.median, one.std) == (1, 4.0, 0.0)

    empty = angle_stats(30.0, [None])
    assert empty.n == 0
    assert math.isnan(empty.median)


def test_visible_range_and_median_range() -> None:
    assert visible_range([25.0, 30.0, 35.0, 40.0], [0.2, 0.6, 1.0, 0.4]) == (30.0, 35.0)
    assert visible_range([25.0, 30.0], [0.1, None]) is None
    assert visible_range([25.0, 30.0], [0.6, 0.6], threshold=1.0) is None

    assert median_range([(30.0, 35.0), (25.0, 45.0), (30.0, 40.0), None]) == (30, 40)
    assert median_range([None]) is None


def _rec(needle: str, video: str, angle: float, tip: float | None, shaft: float | None) -> dict:
    return {"needle": needle, "video": video, "angle_deg": angle, "cnr_tip": tip, "cnr_shaft": shaft}


def test_summarize_records_groups_by_needle_and_repetition() -> None:
    records = [
        _rec("Steel_2mm", "a.MP4", 30.0, 1.0, 2.0),
        _rec("Steel_2mm", "a.MP4", 35.0, 0.2, 3.0),
        _rec("Steel_2mm", "b.MP4", 30.0, 3.0, 4.0),
        _rec("Steel_2mm", "b.MP4", 35.0, None, 5.0),
        _rec("Bevel_22G", "c.MP4", 30.0, 0.4, 0.6),
        {"note": "not an angle record"},
    ]
    out = summarize_records(records)

    assert [s.needle for s in out] == ["Bevel_22G", "Steel_2mm"]

    steel = out[1]
    assert steel.repetitions == 2
    assert [t.angle_deg for t in steel.tip] == [30.0, 35.0]
    assert steel.tip[0].median == pytest.approx(2.0)
    assert steel.tip[0].std == pytest.approx(math.sqrt(2.0))
    assert steel.tip[1].n == 1
    assert steel.tip_range == (30, 30)
    assert steel.shaft_range == (30, 35)

    bevel = out[0]
    assert bevel.tip_range is None
    assert bevel.shaft_range == (30, 30)

    rec = bevel.to_record()
    assert rec["tip_visible_range"] is None
    assert rec["tip"][0]["std"] == 0.0
