"""
DetectionPipeline - 变换流水线入口

raw images → Molder → [网络推理，外部] → Unmolder → 原图坐标的检测结果
"""

from pathlib import Path
from typing import Callable, Sequence

import numpy as np
import torch
from omegaconf import DictConfig

from .config import TransformConfig, load_config
from .context import DetectionResult, MoldedBatch
from .errors import MoldError, ShapeMismatchError

# infer_fn(images [N,3,H,W]) -> (detections [N,capacity,6], mrcnn_mask [N,capacity,mh,mw,num_classes])
InferFn = Callable[[torch.Tensor], tuple]


class DetectionPipeline:
    """Mask R-CNN 前后处理流水线"""

    def __init__(self, cfg: DictConfig | TransformConfig | str | Path | None = None):
        """
        初始化 Pipeline

        Args:
            cfg: 配置对象、配置文件路径，或 None（使用包内 configs/default.yaml）
        """
        if isinstance(cfg, TransformConfig):
            self.config = cfg
        else:
            if not isinstance(cfg, DictConfig):
                cfg = load_config(cfg)
            self.config = TransformConfig.from_cfg(cfg)

        # 延迟加载
        self._molder = None
        self._unmolder = None

    @property
    def molder(self):
        """整形模块（懒加载）"""
        if self._molder is None:
            from .preprocess import Molder
            self._molder = Molder(self.config)
        return self._molder

    @property
    def unmolder(self):
        """还原模块（懒加载）"""
        if self._unmolder is None:
            from .postprocess import Unmolder
            self._unmolder = Unmolder(self.config)
        return self._unmolder

    def mold_inputs(self, images: Sequence[np.ndarray], to_device: bool = True) -> MoldedBatch:
        """批量整形为网络输入"""
        return self.molder.mold_inputs(images, to_device=to_device)

    def unmold_detections(
        self,
        detections,
        mrcnn_mask,
        batch: MoldedBatch
    ) -> list[DetectionResult]:
        """
        批量还原检测结果

        Args:
            detections: [N, capacity, 6]
            mrcnn_mask: [N, capacity, mh, mw, num_classes]
            batch: mold_inputs 的输出，提供原图尺寸与 window

        Returns:
            每张图像一个 DetectionResult
        """
        if len(detections) != len(batch) or len(mrcnn_mask) != len(batch):
            raise ShapeMismatchError(
                f"网络输出批大小 ({len(detections)}, {len(mrcnn_mask)}) 与输入 {len(batch)} 不一致"
            )

        results = []
        for i, meta in enumerate(batch.image_metas):
            try:
                results.append(self.unmolder.unmold_detections(
                    detections[i], mrcnn_mask[i], meta.image_shape, batch.windows[i]
                ))
            except MoldError as e:
                raise e.with_context(image_index=i)
        return results

    def detect(self, images: Sequence[np.ndarray], infer_fn: InferFn) -> list[DetectionResult]:
        """
        完整流程：整形 → 推理 → 还原

        Args:
            images: 原图列表
            infer_fn: 网络推理函数，返回 (detections, mrcnn_mask)

        Returns:
            每张图像一个 DetectionResult
        """
        batch = self.mold_inputs(images)
        with torch.no_grad():
            detections, mrcnn_mask = infer_fn(batch.images)
        return self.unmold_detections(detections, mrcnn_mask, batch)


def load_pipeline(config_path: str | Path | None = None) -> DetectionPipeline:
    """
    便捷函数：加载 Pipeline

    Args:
        config_path: 配置文件路径
    """
    return DetectionPipeline(config_path)
