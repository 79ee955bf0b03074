"""
Molder - 网络输入整形

核心功能：
- mold_image: float32 转换 + 逐通道减均值（显式重排均值到图像通道顺序）
- to_planar: 交错 (H,W,C) → 平面 (C,H,W)，按给定通道置换输出
- Molder.mold_inputs: 缩放/减均值/平面化后堆叠为 [N,3,H,W] 张量，附带 ImageMeta 与 Window

通道约定（与训练模型绑定，不做推断）：
- mean_pixel 按 mean_pixel_order 给出
- 输入图像按 image_channel_order 存储（cv2 解码为 BGR）
- 网络输入平面按 network_channel_order 排列
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

import numpy as np
import torch

from ..config import TransformConfig
from ..context import ImageMeta, MoldedBatch, ResizeResult
from ..errors import FatalResourceError, InvalidInputError, MoldError, ShapeMismatchError
from .resizer import resize_image


def channel_permutation(src_order: str, dst_order: str) -> list[int]:
    """
    计算通道置换索引

    Args:
        src_order: 源通道顺序，如 "BGR"
        dst_order: 目标通道顺序，如 "RGB"

    Returns:
        索引列表 perm，满足 dst[i] = src[perm[i]]
    """
    src_order = src_order.upper()
    dst_order = dst_order.upper()
    if sorted(src_order) != sorted(dst_order) or len(set(src_order)) != len(src_order):
        raise InvalidInputError(f"通道顺序不兼容: {src_order!r} -> {dst_order!r}")
    return [src_order.index(c) for c in dst_order]


def to_planar(image: np.ndarray, permutation: Sequence[int]) -> np.ndarray:
    """
    交错像素缓冲区 → 通道平面缓冲区

    Args:
        image: (H,W,C) 图像
        permutation: 输出平面 i 取自输入通道 permutation[i]

    Returns:
        连续内存的 float32 (C,H,W)
    """
    if image.ndim != 3:
        raise InvalidInputError(f"图像必须是 (H,W,C) 格式，当前: {image.shape}")
    if sorted(permutation) != list(range(image.shape[2])):
        raise InvalidInputError(
            f"通道置换 {list(permutation)} 与通道数 {image.shape[2]} 不匹配"
        )
    planar = image[:, :, list(permutation)].transpose(2, 0, 1)
    return np.ascontiguousarray(planar, dtype=np.float32)


def mold_image(image: np.ndarray, config: TransformConfig) -> np.ndarray:
    """
    减均值

    Args:
        image: (H,W,3) 图像，通道顺序为 config.image_channel_order
        config: 变换配置

    Returns:
        float32 (H,W,3)，通道顺序不变
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise InvalidInputError(f"输入图像必须是 (H,W,3) 格式，当前: {image.shape}")
    # 均值按 mean_pixel_order 给出，先重排到图像的通道顺序
    perm = channel_permutation(config.mean_pixel_order, config.image_channel_order)
    mean = np.asarray(config.mean_pixel, dtype=np.float32)[perm]
    return image.astype(np.float32) - mean


def unmold_image(planar: np.ndarray | torch.Tensor, config: TransformConfig) -> np.ndarray:
    """
    mold 的逆操作：网络输入平面 → 原通道顺序的 uint8 图像（用于可视化）

    Args:
        planar: float32 (3,H,W)，平面顺序为 config.network_channel_order
        config: 变换配置

    Returns:
        uint8 (H,W,3)，通道顺序为 config.image_channel_order
    """
    if isinstance(planar, torch.Tensor):
        planar = planar.detach().cpu().numpy()
    if planar.ndim != 3 or planar.shape[0] != 3:
        raise InvalidInputError(f"平面张量必须是 (3,H,W) 格式，当前: {planar.shape}")
    perm = channel_permutation(config.network_channel_order, config.image_channel_order)
    image = planar[perm].transpose(1, 2, 0)
    mean_perm = channel_permutation(config.mean_pixel_order, config.image_channel_order)
    mean = np.asarray(config.mean_pixel, dtype=np.float32)[mean_perm]
    return np.clip(np.rint(image + mean), 0, 255).astype(np.uint8)


def resolve_device(device: str) -> str:
    """
    解析设备配置

    Args:
        device: "auto" | "cuda" | "cuda:N" | "cpu"

    Returns:
        实际使用的设备名
    """
    if device == "auto":
        return "cuda" if torch.cuda.is_available() else "cpu"
    return device


class Molder:
    """批量网络输入整形器"""

    def __init__(self, config: TransformConfig):
        """
        初始化整形器

        Args:
            config: 变换配置
        """
        self.config = config
        self.device = resolve_device(config.device)
        # 平面顺序是固定契约，初始化时即校验
        self.plane_permutation = channel_permutation(
            config.image_channel_order, config.network_channel_order
        )
        print(
            f"[Molder] {config.image_channel_order} -> {config.network_channel_order} planes, "
            f"device={self.device}"
        )

    def mold_one(self, image: np.ndarray) -> tuple[np.ndarray, ResizeResult]:
        """
        处理单张图像

        Returns:
            (float32 (3,H,W) 平面数组, ResizeResult)
        """
        cfg = self.config
        resized = resize_image(
            image,
            min_dim=cfg.image_min_dim,
            max_dim=cfg.image_max_dim,
            padding=cfg.image_padding
        )
        molded = mold_image(resized.image, cfg)
        return to_planar(molded, self.plane_permutation), resized

    def mold_inputs(self, images: Sequence[np.ndarray], to_device: bool = True) -> MoldedBatch:
        """
        批量整形

        Args:
            images: 图像列表，尺寸可以不同
            to_device: 是否搬运到配置的设备

        Returns:
            MoldedBatch

        Raises:
            InvalidInputError: 空批次或单张图像非法
            ShapeMismatchError: 整形后尺寸不一致（未开启 padding 时）
            FatalResourceError: 设备搬运失败
        """
        if len(images) == 0:
            raise InvalidInputError("输入图像列表不能为空")

        results = self._map(self._mold_indexed, list(enumerate(images)))

        first_shape = results[0][0].shape
        for i, (planar, _) in enumerate(results):
            if planar.shape != first_shape:
                raise ShapeMismatchError(
                    f"批内图像尺寸不一致: {planar.shape} vs image 0 {first_shape}，"
                    f"需要开启 image_padding",
                    image_index=i
                )

        image_metas = []
        windows = []
        for i, (image, (_, resized)) in enumerate(zip(images, results)):
            h, w = image.shape[:2]
            image_metas.append(ImageMeta(
                image_id=i,
                height=h,
                width=w,
                window=resized.window,
                active_class_ids=np.zeros([self.config.num_classes], dtype=np.int32)
            ))
            windows.append(resized.window)

        batch = torch.stack([torch.from_numpy(planar) for planar, _ in results])
        if to_device:
            batch = self.to_device(batch)

        return MoldedBatch(
            images=batch,
            image_metas=image_metas,
            windows=windows,
            scales=[resized.scale for _, resized in results],
            paddings=[resized.padding for _, resized in results]
        )

    def to_device(self, batch: torch.Tensor) -> torch.Tensor:
        """
        搬运到加速器，失败即致命错误，不重试

        Raises:
            FatalResourceError: 搬运失败（如显存不足，或 torch 未编译 CUDA 支持）
        """
        if self.device == "cpu":
            return batch
        try:
            return batch.to(self.device)
        except (RuntimeError, AssertionError) as e:
            raise FatalResourceError(f"张量搬运到 {self.device} 失败: {e}") from e

    def _mold_indexed(self, item: tuple[int, np.ndarray]):
        index, image = item
        try:
            return self.mold_one(image)
        except MoldError as e:
            raise e.with_context(image_index=index)

    def _map(self, fn, items: list) -> list:
        """按配置串行或线程池执行，结果保持输入顺序"""
        if self.config.num_workers <= 1 or len(items) <= 1:
            return [fn(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.config.num_workers) as executor:
            return list(executor.map(fn, items))
