"""needlevis：超声针可见性（CNR）分析库。

说明：
- 输入为一段针绕固定点旋转的超声视频，以及两个参考帧上的手动针标注；
- 本包提供几何规范化（geometry）、针线搜索与针尖跟踪（search）、采样与 CNR（sampling）、
  逐角度流水线（pipeline）以及应用入口（apps）。

对外推荐从 `needlevis.api` 导入少量稳定入口函数，避免外部项目依赖内部目录结构。
"""

from needlevis.api import build_calibration, build_seed, iter_visibility_from_video
from needlevis.pipeline import run_visibility_pipeline

__all__ = [
    "build_calibration",
    "build_seed",
    "iter_visibility_from_video",
    "run_visibility_pipeline",
]
