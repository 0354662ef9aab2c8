"""针线搜索：位置先验增强、线拟合与针尖跟踪。"""

from __future__ import annotations

from needlevis.search.bands import take_band
from needlevis.search.filtering import LocationBias
from needlevis.search.line_fit import DEFAULT_MAX_PEAKS, extract_line_fit, find_line_peaks
from needlevis.search.tip_tracker import (
    HISTORY_DEPTH,
    SearchWindow,
    TipTrack,
    directional_penalty,
    line_profile,
    search_window,
    track_tip,
)
from needlevis.search.window import WindowHit, best_window

__all__ = [
    "DEFAULT_MAX_PEAKS",
    "HISTORY_DEPTH",
    "LocationBias",
    "SearchWindow",
    "TipTrack",
    "WindowHit",
    "best_window",
    "directional_penalty",
    "extract_line_fit",
    "find_line_peaks",
    "line_profile",
    "search_window",
    "take_band",
    "track_tip",
]
