import csv
import io

from ..wm_types import Measurement


def _fmt(value):
    return "" if value is None else f"{value:.6f}"


class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "subject_key",
        "area_px", "perimeter_px",
        "area_cm2", "perimeter_cm",
        "calibrated", "pixels_per_cm",
        "image_path"
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @classmethod
    def _row(cls, ts_unix, frame_idx, subject_key, m: Measurement, pixels_per_cm, img_path):
        # Uncalibrated physical fields stay empty so they never read as 0.0
        return [
            f"{ts_unix:.6f}",
            frame_idx, subject_key,
            m.area_pixels, m.perimeter_pixels,
            _fmt(m.area_cm2), _fmt(m.perimeter_cm),
            int(m.calibrated), _fmt(pixels_per_cm),
            img_path if img_path is not None else ""
        ]

    def append(self, ts_unix, frame_idx, subject_key, measurement, pixels_per_cm, img_path):
        self._w.writerow(self._row(ts_unix, frame_idx, subject_key, measurement, pixels_per_cm, img_path))
        self._fh.flush()

    @classmethod
    def to_csv_line(cls, ts_unix, frame_idx, subject_key, measurement, pixels_per_cm, img_path):
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(cls._row(ts_unix, frame_idx, subject_key, measurement, pixels_per_cm, img_path))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
