from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from wound_measure.strategies.calibrate_qr import DEFAULT_QR_SIZE_CM, METHODS
from wound_measure.strategies.classify_trend import (
    DEFAULT_NOTIFY_THRESHOLD_CM2,
    DEFAULT_TREND_THRESHOLD_CM2,
)


@dataclass
class SegmentationConfig:
    """Settings for the TorchScript segmentation model."""

    input_height: int = 224
    input_width: int = 224
    device: str = "cpu"  # "cpu", "cuda", or "cuda:0"
    threshold: float = 0.5

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MonitorConfig:
    subject_key: str = "subject"
    provider_id: Optional[str] = None
    device: int | str = 0
    fps: int = 15
    width: int = 1280
    height: int = 720
    session_root: str = "data/sessions"
    duration_sec: float = 30.0
    max_frames: Optional[int] = None
    image_path: Optional[str] = None  # static image instead of a camera
    mask_path: Optional[str] = None  # pre-computed mask
    model_path: Optional[str] = None  # TorchScript segmentation model
    reference_size_cm: float = DEFAULT_QR_SIZE_CM
    calibration_method: str = "axis"  # "axis" or "edges"
    trend_threshold_cm2: float = DEFAULT_TREND_THRESHOLD_CM2
    notify_threshold_cm2: float = DEFAULT_NOTIFY_THRESHOLD_CM2
    require_calibration: bool = False
    capture_every_frames: Optional[int] = None
    dry_run: bool = False
    save_images: bool = True
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "MonitorConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        import yaml  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "YAML config requested but PyYAML is not installed. "
            "Install with: pip install pyyaml"
        ) from exc
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def _opt_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def load_config(path: str | Path) -> MonitorConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = MonitorConfig()
    cfg.subject_key = str(raw.get("subject_key", cfg.subject_key))
    cfg.provider_id = _opt_str(raw.get("provider_id", cfg.provider_id))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = _opt_int(raw.get("max_frames", cfg.max_frames))
    cfg.image_path = _opt_str(raw.get("image_path", cfg.image_path))
    cfg.mask_path = _opt_str(raw.get("mask_path", cfg.mask_path))
    cfg.model_path = _opt_str(raw.get("model_path", cfg.model_path))
    cfg.reference_size_cm = float(raw.get("reference_size_cm", cfg.reference_size_cm))
    if cfg.reference_size_cm <= 0:
        raise ValueError("reference_size_cm must be > 0")
    cfg.calibration_method = str(raw.get("calibration_method", cfg.calibration_method))
    if cfg.calibration_method not in METHODS:
        raise ValueError(f"calibration_method must be one of {METHODS}")
    cfg.trend_threshold_cm2 = float(raw.get("trend_threshold_cm2", cfg.trend_threshold_cm2))
    cfg.notify_threshold_cm2 = float(raw.get("notify_threshold_cm2", cfg.notify_threshold_cm2))
    cfg.require_calibration = bool(raw.get("require_calibration", cfg.require_calibration))
    cfg.capture_every_frames = _opt_int(raw.get("capture_every_frames", cfg.capture_every_frames))
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.save_images = bool(raw.get("save_images", cfg.save_images))

    seg_raw = raw.get("segmentation")
    if seg_raw is not None:
        if not isinstance(seg_raw, dict):
            raise ValueError("segmentation must be a mapping")
        seg = SegmentationConfig()
        seg.input_height = int(seg_raw.get("input_height", seg.input_height))
        seg.input_width = int(seg_raw.get("input_width", seg.input_width))
        seg.device = str(seg_raw.get("device", seg.device))
        seg.threshold = float(seg_raw.get("threshold", seg.threshold))
        cfg.segmentation = seg

    return cfg
