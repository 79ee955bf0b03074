"""
Config - 变换配置

从 OmegaConf 配置中读取 transform 段，固化为不可变的 TransformConfig，
显式传入每个组件，不使用进程级可变状态。
"""

from dataclasses import dataclass
from pathlib import Path

from omegaconf import DictConfig, OmegaConf

from .errors import InvalidInputError

DEFAULT_CONFIG_PATH = Path(__file__).parent / "configs" / "default.yaml"

CHANNELS = "RGB"


def _validate_order(name: str, order: str) -> str:
    order = str(order).upper()
    if len(order) != 3 or sorted(order) != sorted(CHANNELS):
        raise InvalidInputError(f"{name} 必须是 RGB 的一个排列，当前: {order!r}")
    return order


@dataclass(frozen=True)
class TransformConfig:
    """不可变的变换配置"""

    image_min_dim: int = 800
    image_max_dim: int = 1024
    image_padding: bool = True
    mean_pixel: tuple[float, float, float] = (123.7, 116.8, 103.9)
    mean_pixel_order: str = "RGB"
    image_channel_order: str = "BGR"
    network_channel_order: str = "RGB"
    num_classes: int = 81
    mask_threshold: float = 0.5
    clip_boxes: bool = True
    num_workers: int = 1
    device: str = "auto"

    def __post_init__(self):
        if self.image_min_dim < 0 or self.image_max_dim < 0:
            raise InvalidInputError(
                f"image_min_dim/image_max_dim 不能为负: "
                f"{self.image_min_dim}, {self.image_max_dim}"
            )
        if self.image_padding and self.image_max_dim == 0:
            raise InvalidInputError("image_padding 需要设置 image_max_dim")
        if len(self.mean_pixel) != 3:
            raise InvalidInputError(f"mean_pixel 需要 3 个通道值: {self.mean_pixel}")
        if self.num_classes <= 0:
            raise InvalidInputError(f"num_classes 必须为正: {self.num_classes}")
        if self.num_workers < 1:
            raise InvalidInputError(f"num_workers 至少为 1: {self.num_workers}")
        # frozen dataclass 只能通过 object.__setattr__ 规范化
        object.__setattr__(self, "mean_pixel", tuple(float(v) for v in self.mean_pixel))
        for name in ("mean_pixel_order", "image_channel_order", "network_channel_order"):
            object.__setattr__(self, name, _validate_order(name, getattr(self, name)))

    @classmethod
    def from_cfg(cls, cfg: DictConfig) -> "TransformConfig":
        """
        从 OmegaConf 配置创建

        Args:
            cfg: 配置对象，包含 transform 段，可选 global.device

        Returns:
            TransformConfig 实例
        """
        t_cfg = cfg.get("transform", {})
        # 'global' 是 Python 保留字
        global_cfg = cfg.get("global", {})
        defaults = cls()
        return cls(
            image_min_dim=int(t_cfg.get("image_min_dim", defaults.image_min_dim)),
            image_max_dim=int(t_cfg.get("image_max_dim", defaults.image_max_dim)),
            image_padding=bool(t_cfg.get("image_padding", defaults.image_padding)),
            mean_pixel=tuple(t_cfg.get("mean_pixel", defaults.mean_pixel)),
            mean_pixel_order=t_cfg.get("mean_pixel_order", defaults.mean_pixel_order),
            image_channel_order=t_cfg.get("image_channel_order", defaults.image_channel_order),
            network_channel_order=t_cfg.get("network_channel_order", defaults.network_channel_order),
            num_classes=int(t_cfg.get("num_classes", defaults.num_classes)),
            mask_threshold=float(t_cfg.get("mask_threshold", defaults.mask_threshold)),
            clip_boxes=bool(t_cfg.get("clip_boxes", defaults.clip_boxes)),
            num_workers=int(t_cfg.get("num_workers", defaults.num_workers)),
            device=str(global_cfg.get("device", defaults.device)),
        )


def load_config(config_path: str | Path | None = None) -> DictConfig:
    """
    加载 YAML 配置（只读）

    Args:
        config_path: 配置文件路径，默认使用包内 configs/default.yaml
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    cfg = OmegaConf.load(config_path)
    OmegaConf.set_readonly(cfg, True)
    return cfg
