"""
Rasterizer - 小分辨率概率 mask → 全分辨率二值 mask

越界策略：
- clip=True: box 与对应的源区域一起裁剪到画布内再粘贴，完全越界得到全零画布
- clip=False: box 超出画布直接抛 OutOfRangeError
"""

import cv2
import numpy as np

from ..errors import InvalidInputError, OutOfRangeError


def clip_box(
    box: tuple[int, int, int, int],
    image_shape: tuple[int, int]
) -> tuple[int, int, int, int]:
    """
    将 (y1, x1, y2, x2) 裁剪到 [0,H] x [0,W]

    裁剪后可能出现 y2 <= y1（box 完全在画布外）。
    """
    h, w = image_shape
    y1, x1, y2, x2 = box
    return (
        min(max(y1, 0), h),
        min(max(x1, 0), w),
        min(max(y2, 0), h),
        min(max(x2, 0), w),
    )


def unmold_mask(
    mask: np.ndarray,
    box: tuple[int, int, int, int],
    image_shape: tuple[int, int],
    threshold: float = 0.5,
    clip: bool = True
) -> np.ndarray:
    """
    将网络输出的小 mask 放回原图尺寸

    Args:
        mask: float (mh, mw) 概率 mask，取值 [0,1]，通常 28x28
        box: 原图坐标 (y1, x1, y2, x2)，整数
        image_shape: 画布尺寸 (H, W)
        threshold: 二值化阈值（> 为前景）
        clip: 越界时是否裁剪

    Returns:
        uint8 (H, W)，前景 255，背景 0

    Raises:
        InvalidInputError: mask 不是二维或 box 宽高非正
        OutOfRangeError: clip=False 且 box 越界
    """
    if mask.ndim != 2:
        raise InvalidInputError(f"mask 必须是 (H,W) 格式，当前: {mask.shape}")
    h, w = image_shape[:2]
    if h <= 0 or w <= 0:
        raise InvalidInputError(f"画布尺寸必须为正，当前: ({h}, {w})")

    y1, x1, y2, x2 = (int(v) for v in box)
    box_h, box_w = y2 - y1, x2 - x1
    if box_h <= 0 or box_w <= 0:
        raise InvalidInputError(f"box 宽高必须为正: {(y1, x1, y2, x2)}")

    full_mask = np.zeros((h, w), dtype=np.uint8)

    cy1, cx1, cy2, cx2 = clip_box((y1, x1, y2, x2), (h, w))
    if (cy1, cx1, cy2, cx2) != (y1, x1, y2, x2) and not clip:
        raise OutOfRangeError(f"box {(y1, x1, y2, x2)} 超出画布 ({h}, {w})")
    if cy2 <= cy1 or cx2 <= cx1:
        return full_mask

    resized = cv2.resize(
        mask.astype(np.float32),
        (box_w, box_h),  # cv2.resize 使用 (width, height)
        interpolation=cv2.INTER_LINEAR
    )
    binary = np.where(resized > threshold, 255, 0).astype(np.uint8)

    # 源区域与 box 同步裁剪
    full_mask[cy1:cy2, cx1:cx2] = binary[cy1 - y1:cy2 - y1, cx1 - x1:cx2 - x1]
    return full_mask
