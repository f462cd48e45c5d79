from __future__ import annotations

import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from wound_measure.services.progress import ProgressLog
from wound_measure.services.storage import ScanStorage
from wound_measure.strategies.calibrate_qr import QRCalibrate
from wound_measure.strategies.classify_trend import needs_provider_notification
from wound_measure.strategies.detect_qr import QRDetect
from wound_measure.strategies.measure_mask import MaskMeasure
from wound_measure.strategies.segment import (
    MaskFileSource,
    MaskSource,
    TorchScriptSegmenter,
    acquire_mask,
)
from wound_measure.wm_types import CalibrationState, Frame, QRDetection, ScanRecord

from .capture import BaseCapture, StaticImageCapture, SyntheticCapture, USBOpenCVCapture
from .config import MonitorConfig
from .context import CalibrationContext
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, OutputSink


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    frames_calibrated: int
    scans: int
    csv_path: str
    records_path: str
    log_path: str
    avg_fps: float
    errors: int


@dataclass
class CaptureResult:
    frame_idx: int
    record: ScanRecord
    notify_provider: bool


class NoDetect:
    def detect(self, f: Frame) -> Optional[QRDetection]:
        return None


class ScanWorker:
    """
    Frame loop for one subject.

    Every frame is run through QR detection and calibration, replacing the
    calibration context. Captures (requested from any thread, scheduled
    every N frames, or taken once for a static image) are serviced on the
    loop thread against the calibration of the frame being captured.
    """

    def __init__(
        self,
        config: MonitorConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        detector=None,
        mask_source: Optional[MaskSource] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.subject_key, config.provider_id)
        self.outputs = outputs if outputs is not None else [CsvOutput()]
        self.capture = capture
        self.detector = detector
        self.mask_source = mask_source if mask_source is not None else self._build_mask_source()
        self.clock = clock

        self.context = CalibrationContext()
        self.calibrator = QRCalibrate(config.reference_size_cm, config.calibration_method)
        self.measurer = MaskMeasure()
        self.storage: Optional[ScanStorage] = None
        self.results: list[CaptureResult] = []

        self._stop_event = threading.Event()
        self._requests_lock = threading.Lock()
        self._requests: list[str] = []

    def stop(self) -> None:
        self._stop_event.set()

    def request_capture(self, subject_key: Optional[str] = None) -> None:
        """Ask the loop to capture on its next frame. Safe from any thread."""
        with self._requests_lock:
            self._requests.append(subject_key or self.config.subject_key)

    def _take_requests(self) -> list[str]:
        with self._requests_lock:
            pending, self._requests = self._requests, []
        return pending

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.image_path:
            return StaticImageCapture(self.config.image_path)
        if self.config.dry_run:
            return SyntheticCapture(self.config.fps, self.config.width, self.config.height)
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
        )

    def _build_detector(self):
        if self.detector is not None:
            return self.detector
        if self.config.dry_run:
            return NoDetect()
        return QRDetect()

    def _build_mask_source(self) -> Optional[MaskSource]:
        if self.config.mask_path:
            return MaskFileSource(self.config.mask_path)
        if self.config.model_path:
            seg = self.config.segmentation
            return TorchScriptSegmenter(
                self.config.model_path,
                input_size=(seg.input_height, seg.input_width),
                device=seg.device,
                threshold=seg.threshold,
            )
        return None

    def progress(self) -> ProgressLog:
        if self.storage is None:
            raise RuntimeError("no session storage; run() has not started")
        return ProgressLog(
            self.storage,
            trend_threshold_cm2=self.config.trend_threshold_cm2,
            notify_threshold_cm2=self.config.notify_threshold_cm2,
        )

    def process_frame(self, f: Frame) -> Optional[CalibrationState]:
        """Detect the QR fiducial in one frame and replace the calibration."""
        detector = self.detector if self.detector is not None else NoDetect()
        det = detector.detect(f)
        state = self.calibrator.apply(det)
        previous = self.context.update(state, det, f.idx)

        if state is not None and previous is None:
            self.logger.debug("frame=%d calibration acquired: %.2f px/cm", f.idx, state.pixels_per_cm)
        elif state is None and previous is not None:
            self.logger.debug("frame=%d calibration lost", f.idx)
        return state

    def capture_frame(self, f: Frame, subject_key: Optional[str] = None) -> Optional[CaptureResult]:
        """
        Segment, measure and store one frame.

        Returns None when the capture cannot be taken (no mask source, or
        calibration required but absent). Mask shape mismatches and mask
        source failures propagate.
        """
        if self.storage is None:
            raise RuntimeError("no session storage; run() has not started")
        subject = subject_key or self.config.subject_key

        if self.mask_source is None:
            self.logger.warning("frame=%d capture skipped: no segmentation model or mask", f.idx)
            return None

        state, det = self.context.snapshot()
        if state is None and self.config.require_calibration:
            self.logger.warning("frame=%d capture skipped: QR code not visible for calibration", f.idx)
            return None

        with acquire_mask(self.mask_source, f.image) as mask:
            measurement = self.measurer.measure(mask, state, f.image.shape[:2])

        ts = self.clock()
        image_ref = None
        if self.config.save_images:
            image_ref = self.storage.save_image(subject, ts, f.image)

        record = ScanRecord(
            id=ScanStorage.new_id(),
            subject_key=subject,
            timestamp=ts,
            measurement=measurement,
            image_ref=image_ref,
            qr_data=det.data if det is not None else None,
            calibration_scale=state.pixels_per_cm if state is not None else None,
            provider_id=self.config.provider_id,
        )
        self.storage.append_record(record)
        for out in self.outputs:
            out.write_scan(f.idx, record)

        notify = needs_provider_notification(measurement, self.config.notify_threshold_cm2)
        if measurement.calibrated:
            self.logger.info(
                "frame=%d scan=%s area=%.2fcm2 perimeter=%.2fcm",
                f.idx, record.id, measurement.area_cm2, measurement.perimeter_cm,
            )
        else:
            self.logger.info(
                "frame=%d scan=%s area=%dpx perimeter=%dpx (uncalibrated)",
                f.idx, record.id, measurement.area_pixels, measurement.perimeter_pixels,
            )
        if notify:
            self.logger.warning(
                "Large wound area detected: %.2f cm2 exceeds %.2f cm2; provider notification required",
                measurement.area_cm2, self.config.notify_threshold_cm2,
            )

        result = CaptureResult(f.idx, record, notify)
        self.results.append(result)
        return result

    def _capture_safely(self, f: Frame, subject_key: Optional[str] = None) -> bool:
        try:
            return self.capture_frame(f, subject_key) is not None
        except (ValueError, RuntimeError, OSError) as e:
            self.logger.warning("frame=%d capture failed: %s", f.idx, e)
            return False

    def run(self) -> SessionSummary:
        storage = ScanStorage(self.config.session_root, name=f"{self.config.subject_key}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())
        self.storage = storage

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(
            self.logger, self.config.subject_key, log_file, self.config.provider_id
        )

        cap: Optional[BaseCapture] = None
        t0 = time.time()
        frames = 0
        calibrated_frames = 0
        scans = 0
        errors = 0

        try:
            for out in self.outputs:
                out.open(Path(storage.session_dir))

            cap = self._build_capture()
            self.detector = self._build_detector()
            static = isinstance(cap, StaticImageCapture)

            self.logger.info("session started: %s", session_path)
            self.logger.info("config: %s", self.config.as_dict())

            cap.start()
            t0 = time.time()

            while True:
                if self._stop_event.is_set():
                    break
                if not static and self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                    break
                if self.config.max_frames and frames >= self.config.max_frames:
                    break

                f = cap.next_frame()
                if f is None:
                    if cap.exhausted:
                        break
                    errors += 1
                    continue

                state = self.process_frame(f)
                if state is not None:
                    calibrated_frames += 1

                pending = self._take_requests()
                every = self.config.capture_every_frames
                if static or (every and f.idx % every == 0):
                    pending.append(self.config.subject_key)

                for subject in pending:
                    if self._capture_safely(f, subject):
                        scans += 1
                    else:
                        errors += 1

                self.logger.debug(
                    "frame=%d calibrated=%s px_per_cm=%s",
                    f.idx,
                    state is not None,
                    f"{state.pixels_per_cm:.2f}" if state is not None else "-",
                )
                frames += 1

            avg = frames / max(1e-6, (time.time() - t0))
            self.logger.info(
                "summary frames=%d calibrated=%d scans=%d avg_fps=%.2f errors=%d",
                frames, calibrated_frames, scans, avg, errors,
            )

        finally:
            if cap is not None:
                try:
                    cap.stop()
                except Exception as e:
                    self.logger.warning("capture stop failed: %s", e)

            for out in self.outputs:
                try:
                    out.close()
                except Exception as e:
                    self.logger.warning("output close failed: %s", e)

            self.logger.removeHandler(file_handler)
            file_handler.close()

        csv_path = str(Path(storage.session_dir) / "measurements.csv")
        return SessionSummary(
            str(session_path),
            frames,
            calibrated_frames,
            scans,
            csv_path,
            str(storage.records_path),
            log_file,
            avg,
            errors,
        )
