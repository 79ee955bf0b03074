"""
Context - 变换流水线的数据结构

Window / Padding 是从 Molder 传递到 Unmolder 的唯一逆变换参数通道。
"""

from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
import torch

from .errors import ShapeMismatchError


class Window(NamedTuple):
    """填充画布中实际图像内容所占的区域 (top, left, bottom, right)"""

    top: int
    left: int
    bottom: int
    right: int

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def width(self) -> int:
        return self.right - self.left


class Padding(NamedTuple):
    """四边填充量 (top, bottom, left, right)，均非负"""

    top: int = 0
    bottom: int = 0
    left: int = 0
    right: int = 0

    def as_pad_width(self) -> list[tuple[int, int]]:
        """转换为 np.pad 的二维 pad_width 形式"""
        return [(self.top, self.bottom), (self.left, self.right)]

    @property
    def is_zero(self) -> bool:
        return not any(self)


@dataclass
class ResizeResult:
    """Resizer 输出"""

    image: np.ndarray      # 缩放 + 填充后的图像
    window: Window         # 图像内容在画布中的位置
    scale: float           # 等比缩放系数
    padding: Padding       # 四边填充量


# ImageMeta.to_array 的固定前缀长度: image_id, h, w, window(4)
META_HEADER_SIZE = 7


@dataclass
class ImageMeta:
    """单张图像的元信息"""

    image_id: int
    height: int                    # 原图高
    width: int                     # 原图宽
    window: Window
    active_class_ids: np.ndarray   # int32 (num_classes,)，由调用方填写

    @property
    def image_shape(self) -> tuple[int, int]:
        return (self.height, self.width)

    def to_array(self) -> np.ndarray:
        """
        展平为一维向量

        布局: [image_id, height, width, top, left, bottom, right, *active_class_ids]
        """
        header = [self.image_id, self.height, self.width, *self.window]
        return np.concatenate([
            np.asarray(header, dtype=np.int32),
            np.asarray(self.active_class_ids, dtype=np.int32)
        ])


def parse_image_meta(meta: np.ndarray) -> ImageMeta:
    """ImageMeta.to_array 的逆操作"""
    meta = np.asarray(meta)
    if meta.ndim != 1 or meta.shape[0] < META_HEADER_SIZE:
        raise ShapeMismatchError(f"image meta 向量长度不足: {meta.shape}")
    values = [int(v) for v in meta[:META_HEADER_SIZE]]
    return ImageMeta(
        image_id=values[0],
        height=values[1],
        width=values[2],
        window=Window(*values[3:7]),
        active_class_ids=meta[META_HEADER_SIZE:].astype(np.int32)
    )


@dataclass
class MoldedBatch:
    """Molder 输出：网络输入张量 + 逆变换所需的元信息"""

    images: torch.Tensor              # float32 [N, 3, H, W]
    image_metas: list[ImageMeta]
    windows: list[Window]
    scales: list[float] = field(default_factory=list)
    paddings: list[Padding] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.image_metas)

    def metas_array(self) -> np.ndarray:
        """所有 image meta 堆叠为 int32 [N, META_HEADER_SIZE + num_classes]"""
        return np.stack([meta.to_array() for meta in self.image_metas])


@dataclass
class DetectionResult:
    """单张图像的检测结果（原图坐标系）"""

    boxes: np.ndarray          # int32 (N, 4) - (y1, x1, y2, x2)
    class_ids: np.ndarray      # int32 (N,)
    scores: np.ndarray         # float32 (N, 1)
    masks: list[np.ndarray]    # N 个 uint8 (H, W)，取值 {0, 255}
    image_shape: tuple[int, int]

    def __len__(self) -> int:
        return int(self.class_ids.shape[0])

    @classmethod
    def empty(cls, image_shape: tuple[int, int]) -> "DetectionResult":
        """无检测时的标准空结果"""
        return cls(
            boxes=np.zeros((0, 4), dtype=np.int32),
            class_ids=np.zeros((0,), dtype=np.int32),
            scores=np.zeros((0, 1), dtype=np.float32),
            masks=[],
            image_shape=tuple(image_shape)
        )

    def stacked_masks(self) -> np.ndarray:
        """masks 堆叠为 uint8 (N, H, W)"""
        if not self.masks:
            return np.zeros((0, *self.image_shape), dtype=np.uint8)
        return np.stack(self.masks)
