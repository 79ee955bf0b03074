"""
Postprocess 模块 - 网络输出还原

职责：
- 从哨兵填充的定长缓冲区中取出有效检测
- box 从 molded 空间逆变换回原图
- 小 mask 光栅化为原图尺寸的二值 mask
"""

from .rasterizer import unmold_mask, clip_box
from .unmolder import Unmolder

__all__ = ["unmold_mask", "clip_box", "Unmolder"]
