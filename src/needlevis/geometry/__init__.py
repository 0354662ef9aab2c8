"""几何引擎：全局坐标系、角度到帧号插值、帧规范化与 ROI 截取。"""

from .canonical import GlobalCoordinateSystem, frame_index_for_angle, frame_indices_for_angles
from .roi import FrameGeometry, extract_roi, pad_to_pivot, prepare_frame, prepare_frames, rotate_about_center

__all__ = [
    "FrameGeometry",
    "GlobalCoordinateSystem",
    "extract_roi",
    "frame_index_for_angle",
    "frame_indices_for_angles",
    "pad_to_pivot",
    "prepare_frame",
    "prepare_frames",
    "rotate_about_center",
]
