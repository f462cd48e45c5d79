"""Segmentation model boundary.

The core measurement code only ever sees a finished binary mask at frame
resolution. Everything model-specific lives here:

- MaskFileSource: a mask already produced elsewhere, read from disk
- TorchScriptSegmenter: a TorchScript model run on the captured frame
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import cv2
import numpy as np


logger = logging.getLogger(__name__)


class MaskSource(ABC):
    """Produces a wound mask for a captured frame, at any resolution."""

    @abstractmethod
    def predict(self, image: np.ndarray) -> np.ndarray:
        """Return a 2-D mask (values > 0.5 are wound) for a BGR image."""
        ...

    def release(self) -> None:
        """Free transient buffers held after a prediction."""
        return None


class MaskFileSource(MaskSource):
    """Reads a pre-computed mask image; pixels brighter than 127 are wound."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def predict(self, image: np.ndarray) -> np.ndarray:
        raw = cv2.imread(str(self.path), cv2.IMREAD_GRAYSCALE)
        if raw is None:
            raise RuntimeError(f"Failed to read mask image: {self.path}")
        return (raw > 127).astype(np.uint8)


class TorchScriptSegmenter(MaskSource):
    """Runs a TorchScript segmentation model.

    The model takes an NCHW float tensor normalized to [-1, 1] and returns
    logits shaped (N, C, H, W) or (N, H, W). With more than one channel,
    channel 1 is taken as the wound class.
    """

    def __init__(
        self,
        model_path: str | Path,
        input_size: tuple[int, int] = (224, 224),
        device: str = "cpu",
        threshold: float = 0.5,
    ):
        self.model_path = Path(model_path)
        self.input_size = input_size  # (height, width)
        self.device = device
        self.threshold = threshold
        self._model = None

    def _load(self):
        if self._model is not None:
            return self._model
        try:
            import torch  # type: ignore
        except ImportError as exc:
            raise RuntimeError(
                "Segmentation model requested but torch is not installed. "
                "Install with: pip install torch"
            ) from exc
        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found: {self.model_path}")
        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self._model = model
        logger.info("Loaded segmentation model %s on %s", self.model_path, self.device)
        return model

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        h, w = self.input_size
        img = cv2.resize(image, (w, h), interpolation=cv2.INTER_LINEAR)
        if img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2RGB)
        else:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        x = (img.astype(np.float32) - 127.5) / 127.5
        return np.ascontiguousarray(x.transpose(2, 0, 1)[None])

    def predict(self, image: np.ndarray) -> np.ndarray:
        import torch  # type: ignore

        model = self._load()
        tensor = torch.from_numpy(self._prepare(image)).to(self.device)
        with torch.no_grad():
            out = model(tensor)
        logits = out.detach().cpu().numpy()

        if logits.ndim == 4:
            channel = 1 if logits.shape[1] > 1 else 0
            logits = logits[0, channel]
        elif logits.ndim == 3:
            logits = logits[0]
        else:
            raise RuntimeError(f"Unexpected model output shape: {logits.shape}")

        prob = 1.0 / (1.0 + np.exp(-logits))
        return (prob > self.threshold).astype(np.uint8)

    def release(self) -> None:
        if str(self.device).startswith("cuda"):
            import torch  # type: ignore

            torch.cuda.empty_cache()


def resample_mask(mask: np.ndarray, shape) -> np.ndarray:
    """
    Resize a model-native mask to frame resolution.

    Args:
        mask: 2-D mask at model resolution
        shape: target shape, only (height, width) is used

    Returns:
        uint8 {0, 1} mask of the target height and width
    """
    h, w = int(shape[0]), int(shape[1])
    src = np.asarray(mask)
    if src.ndim != 2:
        raise ValueError(f"mask must be 2-D, got shape {src.shape}")
    if src.shape == (h, w):
        return (src > 0.5).astype(np.uint8)
    resized = cv2.resize(src.astype(np.float32), (w, h), interpolation=cv2.INTER_LINEAR)
    return (resized > 0.5).astype(np.uint8)


@contextmanager
def acquire_mask(source: MaskSource, image: np.ndarray) -> Iterator[np.ndarray]:
    """Run the mask source on a frame and yield a frame-sized mask.

    The source's transient buffers are released when the block exits,
    whether or not the caller used the mask.
    """
    mask: Optional[np.ndarray] = None
    try:
        raw = source.predict(image)
        mask = resample_mask(raw, image.shape[:2])
        mask.setflags(write=False)
        yield mask
    finally:
        del mask
        source.release()
