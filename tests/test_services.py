import json
from pathlib import Path

import numpy as np
import pytest

from wound_measure.services.csv_writer import CsvWriter
from wound_measure.services.progress import ProgressLog
from wound_measure.services.storage import ScanStorage
from wound_measure.wm_types import Measurement, ScanRecord, Trend


@pytest.fixture
def storage(tmp_path):
    s = ScanStorage(tmp_path, name="demo")
    s.begin()
    return s


def test_scan_storage_creates_dirs_and_manifest(tmp_path):
    """ScanStorage should create directories, save images, and emit config."""
    storage = ScanStorage(tmp_path, name="demo")
    session_dir = Path(storage.begin())
    assert (session_dir / "scans").exists()
    assert (session_dir / "logs").exists()

    path = storage.save_image("patient/7", 1700000000.25, np.zeros((4, 4, 3), dtype=np.uint8))
    assert path.endswith("1700000000250.jpg")
    assert Path(path).parent.name == "patient_7"
    assert storage.last_path == path

    storage.write_manifest({"name": "demo"})
    manifest = json.loads((session_dir / "config.json").read_text())
    assert manifest["name"] == "demo"


def test_storage_requires_begin(tmp_path):
    storage = ScanStorage(tmp_path)
    with pytest.raises(RuntimeError):
        storage.records_path


def test_records_roundtrip_through_jsonl(storage, make_record):
    calibrated = make_record("p1", 10, 0.25)
    uncalibrated = make_record("p2", 11, 0, calibrated=False)
    storage.append_record(calibrated)
    storage.append_record(uncalibrated)

    records = list(storage.iter_records())
    assert records == [calibrated, uncalibrated]
    assert records[1].measurement.area_cm2 is None
    assert storage.records_for("p2") == [uncalibrated]


def test_scan_record_dict_shape():
    rec = ScanRecord("abc", "p1", 1.0, Measurement(100, 36, 0.25, 1.8, True), "img.jpg", "qr", 20.0)
    d = rec.as_dict()
    assert d["measurement"] == {
        "area_pixels": 100,
        "perimeter_pixels": 36,
        "area_cm2": 0.25,
        "perimeter_cm": 1.8,
        "calibrated": True,
    }
    assert ScanRecord.from_dict(json.loads(json.dumps(d))) == rec


def test_csv_writer_persists_rows_and_formats_lines(tmp_path):
    csv_path = tmp_path / "measurements.csv"
    writer = CsvWriter(str(csv_path))
    writer.open()
    writer.append(1.5, 3, "p1", Measurement(100, 36, 0.25, 1.8, True), 20.0, "/tmp/img.jpg")
    writer.append(2.0, 4, "p1", Measurement(100, 36, None, None, False), None, None)
    writer.close()

    lines = csv_path.read_text().strip().splitlines()
    assert lines[0].startswith("recorded_at,frame_idx,subject_key")
    assert lines[1] == "1.500000,3,p1,100,36,0.250000,1.800000,1,20.000000,/tmp/img.jpg"
    assert lines[2] == "2.000000,4,p1,100,36,,,0,,"

    inline = CsvWriter.to_csv_line(3.0, 5, "p2", Measurement(0, 0, 0.0, 0.0, True), 20.0, "img")
    assert inline == "3.000000,5,p2,0,0,0.000000,0.000000,1,20.000000,img"


def test_progress_scans_newest_first(storage, make_record):
    for ts, area in [(1, 5.0), (3, 4.8), (2, 5.0)]:
        storage.append_record(make_record("p1", ts, area))
    storage.append_record(make_record("other", 4, 1.0))

    log = ProgressLog(storage)
    assert [r.timestamp for r in log.scans("p1")] == [3.0, 2.0, 1.0]


def test_progress_timeline_compares_with_previous_scan(storage, make_record):
    for ts, area in [(1, 5.0), (2, 5.5), (3, 5.45), (4, 5.0)]:
        storage.append_record(make_record("p1", ts, area))

    statuses = [e.status for e in ProgressLog(storage).timeline("p1")]
    # newest first: 5.0 vs 5.45, 5.45 vs 5.5, 5.5 vs 5.0, oldest
    assert statuses == [Trend.IMPROVING, Trend.STABLE, Trend.CONCERNING, Trend.STABLE]


def test_progress_timeline_uncalibrated_is_stable(storage, make_record):
    storage.append_record(make_record("p1", 1, 5.0))
    storage.append_record(make_record("p1", 2, 0, calibrated=False))
    statuses = [e.status for e in ProgressLog(storage).timeline("p1")]
    assert statuses == [Trend.STABLE, Trend.STABLE]


def test_progress_summary_improving(storage, make_record):
    storage.append_record(make_record("p1", 1, 5.0))
    storage.append_record(make_record("p1", 2, 4.8))

    summary = ProgressLog(storage).summary("p1")
    assert summary.scans == 2
    assert summary.latest.timestamp == 2.0
    assert summary.trend is Trend.IMPROVING
    assert summary.recommendations[2].title == "Positive Progress"
    assert summary.notify_provider is False


def test_progress_summary_single_scan_has_no_trend(storage, make_record):
    storage.append_record(make_record("p1", 1, 6.0))
    summary = ProgressLog(storage).summary("p1")
    assert summary.trend is None
    assert summary.recommendations == []
    assert summary.notify_provider is True


def test_progress_trend_skips_uncalibrated(storage, make_record):
    storage.append_record(make_record("p1", 1, 2.0))
    storage.append_record(make_record("p1", 2, 3.0))
    storage.append_record(make_record("p1", 3, 0, calibrated=False))
    assert ProgressLog(storage).latest_trend("p1") is Trend.CONCERNING


def test_progress_thresholds_configurable(storage, make_record):
    storage.append_record(make_record("p1", 1, 2.0))
    storage.append_record(make_record("p1", 2, 2.3))
    log = ProgressLog(storage, trend_threshold_cm2=0.5, notify_threshold_cm2=2.0)
    assert log.latest_trend("p1") is Trend.STABLE
    assert log.summary("p1").notify_provider is True


def test_history_outlives_sessions(tmp_path, make_record):
    first = ScanStorage(tmp_path, name="p1_session")
    first.begin()
    first.append_record(make_record("p1", 1, 5.0))

    second = ScanStorage(tmp_path, name="p1_session")
    second.begin()
    second.append_record(make_record("p1", 2, 4.0))
    second.append_record(make_record("p 2", 3, 1.0))

    assert first.session_dir != second.session_dir
    assert [r.timestamp for r in second.records_for("p1")] == [2]
    assert [r.timestamp for r in second.history_for("p1")] == [1, 2]
    assert second.history_path("p 2") == tmp_path / "subjects" / "p_2" / "scans.jsonl"
    assert ScanStorage(tmp_path).history_for("p1") == first.history_for("p1")
    assert ProgressLog(second).latest_trend("p1") is Trend.IMPROVING
