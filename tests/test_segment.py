import sys
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from wound_measure.strategies.segment import (
    MaskFileSource,
    MaskSource,
    TorchScriptSegmenter,
    acquire_mask,
    resample_mask,
)


class FixedSource(MaskSource):
    def __init__(self, mask):
        self.mask = mask
        self.released = 0

    def predict(self, image):
        return self.mask

    def release(self):
        self.released += 1


def test_resample_mask_upscales_to_frame():
    small = np.zeros((4, 4), dtype=np.float32)
    small[1:3, 1:3] = 1.0
    big = resample_mask(small, (40, 60, 3))
    assert big.shape == (40, 60)
    assert big.dtype == np.uint8
    assert set(np.unique(big)) <= {0, 1}
    assert big[20, 30] == 1
    assert big[0, 0] == 0


def test_resample_mask_same_shape_thresholds():
    mask = np.array([[0.2, 0.7], [0.5, 0.9]])
    out = resample_mask(mask, (2, 2))
    assert out.tolist() == [[0, 1], [0, 1]]


def test_resample_mask_rejects_3d():
    with pytest.raises(ValueError):
        resample_mask(np.ones((2, 2, 2)), (4, 4))


def test_mask_file_source_reads_thresholded_mask(tmp_path):
    mask = np.zeros((10, 12), dtype=np.uint8)
    mask[2:6, 3:9] = 255
    path = tmp_path / "mask.png"
    cv2.imwrite(str(path), mask)

    out = MaskFileSource(path).predict(np.zeros((10, 12, 3), dtype=np.uint8))
    assert out.shape == (10, 12)
    assert int(out.sum()) == 24


def test_mask_file_source_missing_file(tmp_path):
    with pytest.raises(RuntimeError):
        MaskFileSource(tmp_path / "nope.png").predict(np.zeros((2, 2, 3), dtype=np.uint8))


def test_acquire_mask_yields_frame_sized_readonly_mask():
    source = FixedSource(np.ones((5, 5), dtype=np.uint8))
    image = np.zeros((10, 20, 3), dtype=np.uint8)

    with acquire_mask(source, image) as mask:
        assert mask.shape == (10, 20)
        assert not mask.flags.writeable
        assert source.released == 0

    assert source.released == 1


def test_acquire_mask_releases_on_error():
    source = FixedSource(np.ones((5, 5), dtype=np.uint8))
    with pytest.raises(KeyError):
        with acquire_mask(source, np.zeros((5, 5, 3), dtype=np.uint8)):
            raise KeyError("abandoned")
    assert source.released == 1


def test_torchscript_segmenter_without_torch(monkeypatch, tmp_path):
    monkeypatch.setitem(sys.modules, "torch", None)
    seg = TorchScriptSegmenter(tmp_path / "model.pt")
    with pytest.raises(RuntimeError, match="torch is not installed"):
        seg._load()


def test_torchscript_segmenter_prepare_normalizes():
    seg = TorchScriptSegmenter("model.pt", input_size=(8, 6))
    image = np.full((20, 30, 3), 255, dtype=np.uint8)
    x = seg._prepare(image)
    assert x.shape == (1, 3, 8, 6)
    assert x.dtype == np.float32
    assert np.allclose(x, 1.0)


def test_torchscript_segmenter_predict_picks_foreground_channel(monkeypatch):
    torch = pytest.importorskip("torch")

    logits = torch.zeros((1, 2, 4, 4))
    logits[0, 1, :2, :] = 5.0
    logits[0, 1, 2:, :] = -5.0
    model = MagicMock(return_value=logits)

    seg = TorchScriptSegmenter("model.pt", input_size=(4, 4))
    seg._model = model
    out = seg.predict(np.zeros((4, 4, 3), dtype=np.uint8))

    model.assert_called_once()
    assert out.tolist() == [[1] * 4, [1] * 4, [0] * 4, [0] * 4]
