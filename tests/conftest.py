"""pytest 运行期配置。

仓库采用 src-layout（包代码在 ./src 下）。
为了在未安装（没有 `pip install -e .`）时也能直接在仓库根目录执行 `python -m pytest`，
这里在测试收集阶段把 ./src 注入到 sys.path，使 `needlevis` 可导入。
"""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_src_on_syspath() -> None:
    """将仓库的 ./src 目录加入 sys.path（若尚未存在）。"""

    src_str = str(Path(__file__).resolve().parents[1] / "src")
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_src_on_syspath()
