"""JSONL 输出资源管理。

职责：
- 打开/关闭 JSONL 文件，逐条写入记录；
- 每条记录写完即 flush：离线分析一个角度一条记录，中途中断也能保留已完成的角度。

说明：
- 该模块属于 entry 层（IO），不应被 core 反向依赖。
"""

from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, TextIO


class JsonlWriter:
    """JSONL 写入器：逐条序列化并 flush。"""

    def __init__(self, *, f: TextIO) -> None:
        self._f = f
        self.records_written = 0

    def write(self, record: dict[str, Any]) -> None:
        self._f.write(json.dumps(record, ensure_ascii=False))
        self._f.write("\n")
        self._f.flush()
        self.records_written += 1


@contextmanager
def open_jsonl_writer(path: str | Path) -> Iterator[JsonlWriter]:
    """打开 JSONL writer（覆盖写，自动创建父目录）。"""

    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f_out:
        yield JsonlWriter(f=f_out)


def iter_jsonl_records(path: str | Path) -> Iterator[dict[str, Any]]:
    """逐行读取 JSONL（跳过空行与非 dict 行）。"""

    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)
            if isinstance(obj, dict):
                yield obj
