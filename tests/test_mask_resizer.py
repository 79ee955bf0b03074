"""
MaskResizer 单元测试
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest

from maskmold.context import Padding
from maskmold.errors import InvalidInputError
from maskmold.preprocess import resize_image, resize_mask, resize_masks


@pytest.fixture
def image_and_mask():
    """60x80 图像，[10:30, 20:50] 区域为白色，mask 同区域为 True"""
    image = np.zeros((60, 80, 3), dtype=np.uint8)
    image[10:30, 20:50] = 255
    mask = np.zeros((60, 80), dtype=bool)
    mask[10:30, 20:50] = True
    return image, mask


class TestResizeMask:
    """resize_mask 测试类"""

    def test_aligned_with_image(self, image_and_mask):
        """测试同一 scale / padding 下图像与 mask 像素对齐"""
        image, mask = image_and_mask
        resized = resize_image(image, min_dim=64, max_dim=128, padding=True)

        out = resize_mask(mask, resized.scale, resized.padding)

        assert out.shape == resized.image.shape[:2]
        assert out.dtype == bool
        agreement = np.mean(out == (resized.image[:, :, 0] > 127))
        assert agreement > 0.99

    def test_padding_region_empty(self, image_and_mask):
        image, mask = image_and_mask
        full = np.ones_like(mask)
        resized = resize_image(image, min_dim=64, max_dim=128, padding=True)

        out = resize_mask(full, resized.scale, resized.padding)
        top, left, bottom, right = resized.window

        assert out[top:bottom, left:right].all()
        assert not out[:top].any()
        assert not out[bottom:].any()

    def test_unit_scale_zero_padding_identity(self, image_and_mask):
        _, mask = image_and_mask
        out = resize_mask(mask.astype(np.uint8), 1.0, Padding())

        assert np.array_equal(out, mask.astype(np.uint8))

    def test_accepts_plain_tuple_padding(self):
        out = resize_mask(np.ones((4, 4), dtype=np.uint8), 1.0, (1, 2, 3, 4))
        assert out.shape == (7, 11)

    def test_invalid_rank(self):
        with pytest.raises(InvalidInputError):
            resize_mask(np.zeros((4, 4, 2)), 1.0, Padding())

    def test_invalid_scale(self):
        with pytest.raises(InvalidInputError):
            resize_mask(np.zeros((4, 4)), 0.0, Padding())

    def test_unsupported_dtype(self):
        """测试 cv2 无法缩放的 dtype 以非法输入报错"""
        with pytest.raises(InvalidInputError, match="int64"):
            resize_mask(np.ones((4, 4), dtype=np.int64), 2.0, Padding())


class TestResizeMasks:
    """批量 mask 测试"""

    def test_list_input(self):
        masks = [np.ones((60, 80), dtype=np.uint8) for _ in range(3)]
        out = resize_masks(masks, 2.0, Padding(4, 4, 0, 0))

        assert isinstance(out, list)
        assert len(out) == 3
        assert all(m.shape == (128, 160) for m in out)

    def test_stacked_input(self):
        masks = np.zeros((60, 80, 2), dtype=bool)
        masks[:30, :, 0] = True
        out = resize_masks(masks, 0.5, Padding(1, 1, 1, 1))

        assert out.shape == (32, 42, 2)
        assert out.dtype == bool
        assert out[1:16, 1:41, 0].all()
        assert not out[:, :, 1].any()

    def test_stacked_empty(self):
        out = resize_masks(np.zeros((60, 80, 0), dtype=bool), 0.5, Padding(1, 1, 1, 1))
        assert out.shape == (32, 42, 0)

    def test_error_reports_mask_index(self):
        masks = [np.ones((4, 4)), np.ones((4, 4, 1))]
        with pytest.raises(InvalidInputError) as exc_info:
            resize_masks(masks, 1.0, Padding())

        assert exc_info.value.detection_index == 1

    def test_stacked_unsupported_dtype_reports_index(self):
        masks = np.ones((4, 4, 2), dtype=np.int64)
        with pytest.raises(InvalidInputError) as exc_info:
            resize_masks(masks, 2.0, Padding())

        assert exc_info.value.detection_index == 0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
