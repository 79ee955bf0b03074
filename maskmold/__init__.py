"""
maskmold - 实例分割网络的前后处理变换

- preprocess: 缩放 / 填充 / 减均值 / 平面化 / 批量堆叠
- postprocess: 哨兵截断 / 坐标逆变换 / mask 光栅化
"""

from .config import TransformConfig, load_config
from .context import DetectionResult, ImageMeta, MoldedBatch, Padding, ResizeResult, Window
from .errors import (
    FatalResourceError,
    InvalidInputError,
    MoldError,
    OutOfRangeError,
    ShapeMismatchError,
)
from .pipeline import DetectionPipeline, load_pipeline

__all__ = [
    "TransformConfig",
    "load_config",
    "DetectionResult",
    "ImageMeta",
    "MoldedBatch",
    "Padding",
    "ResizeResult",
    "Window",
    "MoldError",
    "InvalidInputError",
    "ShapeMismatchError",
    "OutOfRangeError",
    "FatalResourceError",
    "DetectionPipeline",
    "load_pipeline",
]
