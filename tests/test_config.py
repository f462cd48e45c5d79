import json
from pathlib import Path

import pytest

from wound_monitor.config import MonitorConfig, SegmentationConfig, load_config


def test_load_config_json(tmp_path: Path):
    cfg_path = tmp_path / "monitor.json"
    cfg_path.write_text(
        json.dumps(
            {
                "subject_key": "patient-7",
                "provider_id": 42,
                "device": 2,
                "fps": 20,
                "width": 640,
                "height": 480,
                "mask_path": "masks/wound.png",
                "reference_size_cm": 3.0,
                "calibration_method": "edges",
                "capture_every_frames": 10,
                "segmentation": {"input_height": 256, "input_width": 320, "device": "cuda"},
            }
        ),
        encoding="utf-8",
    )

    cfg = load_config(cfg_path)
    assert cfg.subject_key == "patient-7"
    assert cfg.provider_id == "42"
    assert cfg.device == 2
    assert cfg.fps == 20
    assert (cfg.width, cfg.height) == (640, 480)
    assert cfg.mask_path == "masks/wound.png"
    assert cfg.model_path is None
    assert cfg.reference_size_cm == 3.0
    assert cfg.calibration_method == "edges"
    assert cfg.capture_every_frames == 10
    assert cfg.segmentation.input_height == 256
    assert cfg.segmentation.input_width == 320
    assert cfg.segmentation.device == "cuda"
    assert cfg.segmentation.threshold == 0.5

    cfg.apply_overrides(subject_key="patient-8", fps=10, mask_path=None)
    assert cfg.subject_key == "patient-8"
    assert cfg.fps == 10
    assert cfg.mask_path == "masks/wound.png"


def test_load_config_yaml(tmp_path: Path):
    pytest.importorskip("yaml")
    cfg_path = tmp_path / "monitor.yaml"
    cfg_path.write_text("subject_key: p9\nrequire_calibration: true\n", encoding="utf-8")
    cfg = load_config(cfg_path)
    assert cfg.subject_key == "p9"
    assert cfg.require_calibration is True


def test_config_defaults():
    cfg = MonitorConfig()
    assert cfg.session_root
    assert cfg.reference_size_cm == 2.5
    assert cfg.calibration_method == "axis"
    assert cfg.trend_threshold_cm2 == 0.1
    assert cfg.notify_threshold_cm2 == 5.0
    assert isinstance(cfg.segmentation, SegmentationConfig)
    assert cfg.as_dict()["segmentation"]["input_width"] == 224


def test_missing_config(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


@pytest.mark.parametrize(
    "raw",
    [
        [1, 2, 3],
        {"calibration_method": "perspective"},
        {"reference_size_cm": 0},
        {"segmentation": "fast"},
    ],
)
def test_invalid_config(tmp_path: Path, raw):
    cfg_path = tmp_path / "bad.json"
    cfg_path.write_text(json.dumps(raw), encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)
