"""
Errors - 变换流水线的异常类型

所有异常都继承 MoldError，并同时继承对应的内置异常，
便于调用方按 ValueError / IndexError / RuntimeError 捕获。
"""


class MoldError(Exception):
    """变换流水线异常基类，携带批次内的定位信息"""

    def __init__(
        self,
        message: str,
        image_index: int | None = None,
        detection_index: int | None = None
    ):
        self.message = message
        self.image_index = image_index
        self.detection_index = detection_index
        super().__init__(message)

    def with_context(
        self,
        image_index: int | None = None,
        detection_index: int | None = None
    ) -> "MoldError":
        """补充定位信息（已有的不覆盖），返回自身以便 raise"""
        if self.image_index is None:
            self.image_index = image_index
        if self.detection_index is None:
            self.detection_index = detection_index
        return self

    def __str__(self) -> str:
        where = []
        if self.image_index is not None:
            where.append(f"image={self.image_index}")
        if self.detection_index is not None:
            where.append(f"detection={self.detection_index}")
        if where:
            return f"{self.message} ({', '.join(where)})"
        return self.message


class InvalidInputError(MoldError, ValueError):
    """输入非法：通道数错误、尺寸非正、缓冲区类型不对等"""


class ShapeMismatchError(MoldError, ValueError):
    """形状不一致：批内图像尺寸不同、mask 张量秩或形状不匹配"""


class OutOfRangeError(MoldError, IndexError):
    """不裁剪策略下，box 超出画布范围"""


class FatalResourceError(MoldError, RuntimeError):
    """外部资源失败（如加速器传输 OOM），不可重试"""
