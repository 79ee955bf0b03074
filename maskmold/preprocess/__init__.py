"""
Preprocess 模块 - 网络输入准备

职责：
- 等比缩放 + 居中填充，记录逆变换参数
- 减均值、通道平面化、批量堆叠
- 真值 mask 与图像同步缩放
"""

from .resizer import resize_image, compute_scale, compute_padding
from .molder import Molder, mold_image, unmold_image, to_planar, channel_permutation
from .mask_resizer import resize_mask, resize_masks

__all__ = [
    "resize_image",
    "compute_scale",
    "compute_padding",
    "Molder",
    "mold_image",
    "unmold_image",
    "to_planar",
    "channel_permutation",
    "resize_mask",
    "resize_masks",
]
