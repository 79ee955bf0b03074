"""
Resizer - 等比缩放与居中填充

核心功能：
- compute_scale: 按 (min_dim, max_dim) 约束计算等比缩放系数
- compute_padding: 居中填充到 max_dim x max_dim
- resize_image: 执行缩放 + 填充，返回逆变换所需的 window / scale / padding
"""

import math

import cv2
import numpy as np

from ..context import Padding, ResizeResult, Window
from ..errors import InvalidInputError


def round_half_up(value: float) -> int:
    """四舍五入（远离零），与 C 的 round 一致"""
    if value >= 0:
        return int(math.floor(value + 0.5))
    return -int(math.floor(-value + 0.5))


def compute_scale(h: int, w: int, min_dim: int = 0, max_dim: int = 0) -> float:
    """
    计算等比缩放系数

    Args:
        h, w: 原图尺寸
        min_dim: 短边目标值，0 表示不设（只放大不缩小）
        max_dim: 长边上限，0 表示不设（优先级高于 min_dim）

    Returns:
        缩放系数
    """
    if h <= 0 or w <= 0:
        raise InvalidInputError(f"图像尺寸必须为正，当前: ({h}, {w})")
    if min_dim < 0 or max_dim < 0:
        raise InvalidInputError(f"min_dim/max_dim 不能为负: {min_dim}, {max_dim}")

    scale = 1.0
    if min_dim:
        # 只放大，保留小图细节
        scale = max(1.0, min_dim / min(h, w))

    if max_dim:
        image_max = max(h, w)
        if round_half_up(image_max * scale) > max_dim:
            scale = max_dim / image_max

    return scale


def compute_padding(h: int, w: int, max_dim: int) -> Padding:
    """
    计算居中填充量

    Args:
        h, w: 缩放后尺寸
        max_dim: 画布边长
    """
    if h > max_dim or w > max_dim:
        raise InvalidInputError(f"缩放后尺寸 ({h}, {w}) 超出画布 {max_dim}")
    top = (max_dim - h) // 2
    left = (max_dim - w) // 2
    return Padding(
        top=top,
        bottom=max_dim - h - top,
        left=left,
        right=max_dim - w - left
    )


def resize_image(
    image: np.ndarray,
    min_dim: int = 0,
    max_dim: int = 0,
    padding: bool = False
) -> ResizeResult:
    """
    等比缩放图像，可选居中填充为 max_dim x max_dim

    Args:
        image: (H,W,3) 图像
        min_dim: 短边目标值，0 表示不设
        max_dim: 长边上限，0 表示不设
        padding: 是否填充为正方形画布（需要 max_dim）

    Returns:
        ResizeResult(image, window, scale, padding)

    Raises:
        InvalidInputError: 图像格式或尺寸参数非法
    """
    if image is None:
        raise InvalidInputError("输入图像不能为空")
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidInputError(f"输入图像必须是 (H,W,3) 格式，当前: {image.shape}")
    if padding and not max_dim:
        raise InvalidInputError("padding 需要设置 max_dim")

    h, w = image.shape[:2]
    scale = compute_scale(h, w, min_dim, max_dim)

    if scale != 1.0:
        image = cv2.resize(
            image,
            (round_half_up(w * scale), round_half_up(h * scale)),  # cv2.resize 使用 (width, height)
            interpolation=cv2.INTER_LINEAR
        )

    h, w = image.shape[:2]
    if not padding:
        return ResizeResult(image, Window(0, 0, h, w), scale, Padding())

    pad = compute_padding(h, w, max_dim)
    image = cv2.copyMakeBorder(
        image, pad.top, pad.bottom, pad.left, pad.right,
        cv2.BORDER_CONSTANT, value=(0, 0, 0)
    )
    window = Window(pad.top, pad.left, pad.top + h, pad.left + w)
    return ResizeResult(image, window, scale, pad)
