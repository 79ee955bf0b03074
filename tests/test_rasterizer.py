"""
Rasterizer 单元测试
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest

from maskmold.errors import InvalidInputError, OutOfRangeError
from maskmold.postprocess import clip_box, unmold_mask


@pytest.fixture
def ones_mask():
    """28x28 全 1 概率 mask"""
    return np.ones((28, 28), dtype=np.float32)


class TestUnmoldMask:
    """unmold_mask 测试类"""

    def test_box_region_exact(self, ones_mask):
        """测试全 1 mask 放到 (10,10,20,30) 上恰好覆盖 [10,20) x [10,30)"""
        full = unmold_mask(ones_mask, (10, 10, 20, 30), (100, 100))

        expected = np.zeros((100, 100), dtype=np.uint8)
        expected[10:20, 10:30] = 255

        assert full.dtype == np.uint8
        assert full.shape == (100, 100)
        assert np.array_equal(full, expected)

    def test_zero_mask(self):
        full = unmold_mask(np.zeros((28, 28), dtype=np.float32), (10, 10, 50, 50), (100, 100))
        assert not full.any()

    def test_binary_values_only(self):
        mask = np.random.rand(28, 28).astype(np.float32)
        full = unmold_mask(mask, (5, 5, 90, 70), (100, 80))

        assert set(np.unique(full)) <= {0, 255}

    def test_spatial_layout_preserved(self):
        """测试左半前景的 mask 放回后仍在左半"""
        mask = np.zeros((28, 28), dtype=np.float32)
        mask[:, :14] = 1.0

        full = unmold_mask(mask, (0, 0, 28, 28), (28, 28))

        assert (full[:, :14] == 255).all()
        assert not full[:, 14:].any()

    def test_threshold(self):
        high = np.full((28, 28), 0.6, dtype=np.float32)
        low = np.full((28, 28), 0.4, dtype=np.float32)

        assert (unmold_mask(high, (0, 0, 10, 10), (10, 10)) == 255).all()
        assert not unmold_mask(low, (0, 0, 10, 10), (10, 10)).any()
        assert not unmold_mask(high, (0, 0, 10, 10), (10, 10), threshold=0.7).any()

    def test_threshold_is_strict(self):
        """测试恰好等于阈值的像素为背景"""
        half = np.full((28, 28), 0.5, dtype=np.float32)

        assert not unmold_mask(half, (0, 0, 10, 10), (10, 10)).any()
        assert not unmold_mask(half, (0, 0, 28, 28), (28, 28)).any()

    def test_accepts_float64(self):
        mask = np.ones((28, 28), dtype=np.float64)
        full = unmold_mask(mask, (0, 0, 4, 4), (8, 8))
        assert full[:4, :4].sum() == 16 * 255


class TestOutOfCanvas:
    """越界策略测试"""

    def test_partial_overlap_clipped(self, ones_mask):
        full = unmold_mask(ones_mask, (-5, -5, 10, 10), (50, 50))

        assert (full[:10, :10] == 255).all()
        assert np.count_nonzero(full) == 100

    def test_clip_uses_matching_source_region(self):
        """测试裁剪时源 mask 同步裁剪（不是整张 mask 缩放进剩余区域）"""
        mask = np.zeros((20, 20), dtype=np.float32)
        mask[:, 10:] = 1.0  # 右半前景

        # box 左半在画布外
        full = unmold_mask(mask, (0, -10, 20, 10), (20, 20))

        assert (full[:, :10] == 255).all()
        assert not full[:, 10:].any()

    def test_fully_outside_is_empty(self, ones_mask):
        full = unmold_mask(ones_mask, (200, 200, 210, 210), (100, 100))

        assert full.shape == (100, 100)
        assert not full.any()

    def test_no_clip_raises(self, ones_mask):
        with pytest.raises(OutOfRangeError):
            unmold_mask(ones_mask, (90, 90, 110, 110), (100, 100), clip=False)

    def test_no_clip_inside_ok(self, ones_mask):
        full = unmold_mask(ones_mask, (0, 0, 100, 100), (100, 100), clip=False)
        assert (full == 255).all()

    def test_out_of_range_is_index_error(self, ones_mask):
        with pytest.raises(IndexError):
            unmold_mask(ones_mask, (-1, 0, 10, 10), (100, 100), clip=False)


class TestInvalidInput:
    """非法输入测试"""

    def test_degenerate_box(self, ones_mask):
        with pytest.raises(InvalidInputError):
            unmold_mask(ones_mask, (10, 10, 10, 30), (100, 100))

    def test_mask_rank(self):
        with pytest.raises(InvalidInputError):
            unmold_mask(np.ones((28, 28, 2)), (0, 0, 10, 10), (100, 100))


class TestClipBox:
    """clip_box 测试"""

    def test_inside_unchanged(self):
        assert clip_box((1, 2, 3, 4), (10, 10)) == (1, 2, 3, 4)

    def test_clamped(self):
        assert clip_box((-5, -1, 20, 30), (10, 12)) == (0, 0, 10, 12)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
