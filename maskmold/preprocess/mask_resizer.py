"""
MaskResizer - 真值 mask 的缩放与填充

与 resize_image 使用同一 scale / padding，保证图像与 mask 像素对齐。
"""

from typing import Sequence

import cv2
import numpy as np

from ..context import Padding
from ..errors import InvalidInputError, MoldError
from .resizer import round_half_up

# cv2.resize 双线性插值支持的 dtype
RESIZABLE_DTYPES = (np.uint8, np.uint16, np.int16, np.float32, np.float64)


def resize_mask(mask: np.ndarray, scale: float, padding: Padding) -> np.ndarray:
    """
    缩放并填充单个 mask

    Args:
        mask: (H,W) mask，bool / uint8 / uint16 / int16 / float32 / float64
        scale: resize_image 返回的缩放系数
        padding: resize_image 返回的填充量

    Returns:
        与输入同 dtype 的 (H',W') mask

    Raises:
        InvalidInputError: mask 不是二维、dtype 不受支持或 scale 非正
    """
    if mask.ndim != 2:
        raise InvalidInputError(f"mask 必须是 (H,W) 格式，当前: {mask.shape}")
    if scale <= 0:
        raise InvalidInputError(f"scale 必须为正: {scale}")

    padding = Padding(*padding)
    is_bool = mask.dtype == np.bool_
    work = mask.astype(np.uint8) if is_bool else mask
    if work.dtype not in RESIZABLE_DTYPES:
        raise InvalidInputError(f"不支持的 mask dtype: {mask.dtype}")

    h, w = work.shape
    if scale != 1.0:
        work = cv2.resize(
            work,
            (round_half_up(w * scale), round_half_up(h * scale)),
            interpolation=cv2.INTER_LINEAR
        )

    if not padding.is_zero:
        work = cv2.copyMakeBorder(
            work, padding.top, padding.bottom, padding.left, padding.right,
            cv2.BORDER_CONSTANT, value=0
        )

    return work.astype(bool) if is_bool else work


def resize_masks(
    masks: Sequence[np.ndarray] | np.ndarray,
    scale: float,
    padding: Padding
) -> list[np.ndarray] | np.ndarray:
    """
    批量缩放 mask

    Args:
        masks: mask 列表，或堆叠的 (H,W,N) 数组
        scale: 缩放系数
        padding: 填充量

    Returns:
        输入为列表时返回列表；输入为 (H,W,N) 数组时返回 (H',W',N) 数组
    """
    padding = Padding(*padding)
    if isinstance(masks, np.ndarray):
        if masks.ndim != 3:
            raise InvalidInputError(f"堆叠 mask 必须是 (H,W,N) 格式，当前: {masks.shape}")
        resized = [
            _resize_indexed(masks[:, :, i], scale, padding, i)
            for i in range(masks.shape[2])
        ]
        if not resized:
            h = round_half_up(masks.shape[0] * scale) + padding.top + padding.bottom
            w = round_half_up(masks.shape[1] * scale) + padding.left + padding.right
            return np.zeros((h, w, 0), dtype=masks.dtype)
        return np.stack(resized, axis=2)

    return [_resize_indexed(m, scale, padding, i) for i, m in enumerate(masks)]


def _resize_indexed(mask: np.ndarray, scale: float, padding: Padding, index: int) -> np.ndarray:
    try:
        return resize_mask(mask, scale, padding)
    except MoldError as e:
        raise e.with_context(detection_index=index)
