"""针型目录与视频文件名元信息解析。

文件名约定（实验时的命名方式）：
    '<needle type> <repetition> - <timestamp>.MP4'
例如：'Steel_2mm 3 - 20171103T101500.MP4'。

说明：
- 部分历史文件在重复次数后漏了空格（例如 'Steel_2mm 3- 2017...'），这里做了兼容。
- 未登记的针型 needle_index=0，直径回退到标定里的默认值。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

# 实验中使用的针型及其直径（mm）。顺序即 needle_index（1 基）。
NEEDLE_DIAMETERS_MM: dict[str, float] = {
    "Bevel_22G": 0.7,
    "Trocar_18G": 1.3,
    "Steel_1mm": 1.0,
    "Steel_2mm": 2.0,
    "Niti_2mm": 2.0,
    "Steel_rough_2mm": 2.0,
    "Steel_1cut_2mm": 2.0,
    "Steel_2cut_2mm": 2.0,
    "Bevel_coat_22G": 0.7,
    "Trocar_coat_18G": 1.3,
    "RFA_2mm": 2.0,
    "RFA_coat_2mm": 2.0,
}

_REPETITION_RE = re.compile(r"^(\d+)")


@dataclass(frozen=True)
class VideoConditions:
    """从文件名解析出的实验条件。

    Attributes:
        filename: 原始文件名（不含目录）。
        needle: 针型名；解析失败时为 None。
        needle_index: 针型在目录中的序号（1 基）；0 表示未登记。
        repetition: 重复次数；解析失败时为 None。
        timestamp: 文件名中的时间戳字段（不含扩展名）；解析失败时为 None。
    """

    filename: str
    needle: str | None
    needle_index: int
    repetition: int | None
    timestamp: str | None


def needle_index(name: str) -> int:
    """针型序号（1 基）；未登记返回 0。"""

    for i, key in enumerate(NEEDLE_DIAMETERS_MM.keys(), start=1):
        if key == name:
            return i
    return 0


def needle_diameter_mm(name: str | None, default: float) -> float:
    """查询针直径（mm），未登记时返回 default。"""

    if name is None:
        return float(default)
    return float(NEEDLE_DIAMETERS_MM.get(str(name).strip(), default))


def parse_video_name(path: str | Path) -> VideoConditions:
    """解析视频文件名里的针型/重复次数/时间戳。

    解析失败不会抛错：对应字段置为 None，调用方自行决定是否回退默认值。
    """

    filename = Path(path).name
    stem = Path(filename).stem
    parts = stem.split()

    needle = parts[0].replace("'", "") if parts else None
    idx = needle_index(needle) if needle else 0

    repetition: int | None = None
    if len(parts) >= 2:
        m = _REPETITION_RE.match(parts[1])
        if m is not None:
            repetition = int(m.group(1))

    timestamp: str | None = None
    if "-" in parts:
        tail = parts[parts.index("-") + 1 :]
        timestamp = " ".join(tail) if tail else None
    elif len(parts) >= 3:
        timestamp = " ".join(parts[2:]).lstrip("-").strip() or None

    return VideoConditions(
        filename=filename,
        needle=needle,
        needle_index=idx,
        repetition=repetition,
        timestamp=timestamp,
    )
