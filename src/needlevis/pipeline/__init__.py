"""逐角度可见性流水线。

- `core`：对每个目标角度执行规范化、针尖跟踪与 CNR 计算
- `state`：逐角度结果与跨角度跟踪历史

设计目标：让 `needlevis.apps.*` 只承担命令行参数解析与 I/O。
"""

from .core import process_roi, run_visibility_pipeline
from .state import PerFrameState, PipelineState

__all__ = [
    "PerFrameState",
    "PipelineState",
    "process_roi",
    "run_visibility_pipeline",
]
