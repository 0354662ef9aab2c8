"""采样框推导与 CNR 计算。"""

from __future__ import annotations

from needlevis.sampling.cnr import compute_cnr, extract_samples
from needlevis.sampling.placement import place_samples

__all__ = [
    "compute_cnr",
    "extract_samples",
    "place_samples",
]
