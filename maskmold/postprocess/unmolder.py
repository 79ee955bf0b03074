"""
Unmolder - 网络输出 → 原图坐标系的检测结果

网络输出契约：
- detections: [capacity, (y1, x1, y2, x2, class_id, score)]，
  有效检测是连续前缀，之后以 class_id == 0 的哨兵行填充
- mrcnn_mask: [capacity, mh, mw, num_classes]，只有检测自身类别的通道有意义

class_id 0 被保留为“无检测”，模型不能把 0 当作前景类别。
有效行的 box 必须满足 y1 < y2 且 x1 < x2；两边同时反向的 box 面积为正，
不会被面积过滤掉，按非法输入报错（携带检测下标），不做翻转修正。
"""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import torch

from ..config import TransformConfig
from ..context import DetectionResult, Window
from ..errors import InvalidInputError, MoldError, ShapeMismatchError
from .rasterizer import unmold_mask

SENTINEL_CLASS_ID = 0


def _to_numpy(array) -> np.ndarray:
    if isinstance(array, torch.Tensor):
        return array.detach().cpu().numpy()
    return np.asarray(array)


def count_valid_detections(detections: np.ndarray) -> int:
    """
    有效检测数 = 第一个哨兵行的下标；没有哨兵时为 capacity

    哨兵之后的行一律忽略，即便 class_id 非零。
    """
    zero_ix = np.where(detections[:, 4] == SENTINEL_CLASS_ID)[0]
    return int(zero_ix[0]) if zero_ix.shape[0] > 0 else int(detections.shape[0])


def select_class_masks(mrcnn_mask: np.ndarray, class_ids: np.ndarray) -> np.ndarray:
    """
    为每个检测取其自身类别的 mask 通道

    Args:
        mrcnn_mask: [>=N, mh, mw, num_classes]
        class_ids: int (N,)

    Returns:
        (N, mh, mw)
    """
    n = class_ids.shape[0]
    num_classes = mrcnn_mask.shape[3]
    for i, class_id in enumerate(class_ids):
        if not 0 <= class_id < num_classes:
            raise InvalidInputError(
                f"class_id {int(class_id)} 超出 mask 通道范围 [0, {num_classes})",
                detection_index=i
            )
    return mrcnn_mask[np.arange(n), :, :, class_ids]


def window_to_original(
    boxes: np.ndarray,
    window: Window,
    image_shape: tuple[int, int]
) -> np.ndarray:
    """
    molded 坐标 → 原图坐标

    Args:
        boxes: float (N, 4) molded 空间的 (y1, x1, y2, x2)
        window: 图像内容在画布中的位置
        image_shape: 原图 (H, W)

    Returns:
        int32 (N, 4)
    """
    window = Window(*window)
    h, w = image_shape[:2]
    if h <= 0 or w <= 0:
        raise InvalidInputError(f"原图尺寸必须为正，当前: ({h}, {w})")
    if window.height <= 0 or window.width <= 0:
        raise InvalidInputError(f"window 宽高必须为正: {tuple(window)}")

    # 两个方向的比值理论上相同，取小者抵消取整误差
    h_scale = h / window.height
    w_scale = w / window.width
    scale = min(h_scale, w_scale)
    shifts = np.array([window.top, window.left, window.top, window.left], dtype=np.float64)

    original = (boxes.astype(np.float64) - shifts) * scale
    # 四舍五入（远离零）
    return (np.sign(original) * np.floor(np.abs(original) + 0.5)).astype(np.int32)


def filter_degenerate(boxes: np.ndarray) -> np.ndarray:
    """返回面积为正的检测下标（保持原顺序）"""
    areas = (boxes[:, 2] - boxes[:, 0]) * (boxes[:, 3] - boxes[:, 1])
    return np.where(areas > 0)[0]


def check_box_order(boxes: np.ndarray, source_ix: np.ndarray) -> None:
    """校验 y1 < y2 且 x1 < x2，在光栅化之前报出反向 box"""
    inverted = np.where((boxes[:, 2] <= boxes[:, 0]) | (boxes[:, 3] <= boxes[:, 1]))[0]
    if inverted.shape[0] > 0:
        i = int(inverted[0])
        raise InvalidInputError(
            f"box 坐标顺序必须为 y1 < y2, x1 < x2: {boxes[i].tolist()}",
            detection_index=int(source_ix[i])
        )


class Unmolder:
    """检测结果还原器"""

    def __init__(self, config: TransformConfig):
        """
        初始化还原器

        Args:
            config: 变换配置（mask 阈值、越界策略、并行度）
        """
        self.config = config

    def unmold_detections(
        self,
        detections,
        mrcnn_mask,
        image_shape: tuple[int, int],
        window: Window
    ) -> DetectionResult:
        """
        还原单张图像的检测结果

        Args:
            detections: [capacity, 6]，numpy 或 torch
            mrcnn_mask: [capacity, mh, mw, num_classes]，numpy 或 torch
            image_shape: 原图 (H, W)
            window: 该图像的 Window

        Returns:
            DetectionResult，boxes / class_ids / scores / masks 一一对应

        Raises:
            ShapeMismatchError: 输入张量形状不符合契约
            InvalidInputError: class_id 越界、box 坐标反向、window 或原图尺寸非法
        """
        detections = _to_numpy(detections)
        mrcnn_mask = _to_numpy(mrcnn_mask)
        image_shape = tuple(int(v) for v in image_shape[:2])

        if detections.ndim != 2 or detections.shape[1] != 6:
            raise ShapeMismatchError(
                f"detections 必须是 [capacity, 6] 格式，当前: {detections.shape}"
            )
        if mrcnn_mask.ndim != 4:
            raise ShapeMismatchError(
                f"mrcnn_mask 必须是 [capacity, mh, mw, num_classes] 格式，当前: {mrcnn_mask.shape}"
            )
        if mrcnn_mask.shape[0] < detections.shape[0]:
            raise ShapeMismatchError(
                f"mrcnn_mask 容量 {mrcnn_mask.shape[0]} 小于 detections 容量 {detections.shape[0]}"
            )

        n = count_valid_detections(detections)

        boxes = detections[:n, :4]
        class_ids = detections[:n, 4].astype(np.int32)
        scores = detections[:n, 5:6].astype(np.float32)
        masks = select_class_masks(mrcnn_mask, class_ids)

        boxes = window_to_original(boxes, window, image_shape)

        # 过滤面积为零的检测，通常只在训练早期出现
        include_ix = filter_degenerate(boxes)
        if include_ix.shape[0] == 0:
            return DetectionResult.empty(image_shape)
        boxes = boxes[include_ix]
        class_ids = class_ids[include_ix]
        scores = scores[include_ix]
        masks = masks[include_ix]
        check_box_order(boxes, include_ix)

        full_masks = self._rasterize(masks, boxes, image_shape, include_ix)

        return DetectionResult(
            boxes=boxes,
            class_ids=class_ids,
            scores=scores,
            masks=full_masks,
            image_shape=image_shape
        )

    def _rasterize(
        self,
        masks: np.ndarray,
        boxes: np.ndarray,
        image_shape: tuple[int, int],
        source_ix: np.ndarray
    ) -> list[np.ndarray]:
        """逐检测生成全尺寸 mask，结果保持检测顺序"""
        cfg = self.config

        def rasterize_one(i: int) -> np.ndarray:
            try:
                return unmold_mask(
                    masks[i], boxes[i], image_shape,
                    threshold=cfg.mask_threshold,
                    clip=cfg.clip_boxes
                )
            except MoldError as e:
                raise e.with_context(detection_index=int(source_ix[i]))

        indices = range(len(boxes))
        if cfg.num_workers <= 1 or len(boxes) <= 1:
            return [rasterize_one(i) for i in indices]
        with ThreadPoolExecutor(max_workers=cfg.num_workers) as executor:
            return list(executor.map(rasterize_one, indices))
