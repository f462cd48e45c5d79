import argparse
import signal
import sys

from .config import MonitorConfig, load_config
from .worker import ScanWorker


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Run the wound scan loop for one subject")
    ap.add_argument("--config", required=True, help="Path to JSON/YAML config")

    ap.add_argument("--subject")
    ap.add_argument("--provider")
    ap.add_argument("--device")
    ap.add_argument("--fps", type=int)
    ap.add_argument("--width", type=int)
    ap.add_argument("--height", type=int)
    ap.add_argument("--out")
    ap.add_argument("--duration", type=float)
    ap.add_argument("--max-frames", type=int)
    ap.add_argument("--image", help="Measure a static image instead of a camera stream")
    ap.add_argument("--mask", help="Pre-computed wound mask image")
    ap.add_argument("--model", help="TorchScript segmentation model")
    ap.add_argument("--reference-size-cm", type=float)
    ap.add_argument("--calibration-method", choices=["axis", "edges"])
    ap.add_argument("--capture-every", type=int)
    ap.add_argument("--require-calibration", action="store_true")
    ap.add_argument("--dry-run", action="store_true")
    ap.add_argument("--no-save-images", action="store_true")

    return ap


def _apply_args(cfg: MonitorConfig, args: argparse.Namespace) -> MonitorConfig:
    device = args.device
    if isinstance(device, str) and device.isdigit():
        device = int(device)

    cfg.apply_overrides(
        subject_key=args.subject,
        provider_id=args.provider,
        device=device,
        fps=args.fps,
        width=args.width,
        height=args.height,
        session_root=args.out,
        duration_sec=args.duration,
        max_frames=args.max_frames,
        image_path=args.image,
        mask_path=args.mask,
        model_path=args.model,
        reference_size_cm=args.reference_size_cm,
        calibration_method=args.calibration_method,
        capture_every_frames=args.capture_every,
        require_calibration=True if args.require_calibration else None,
        dry_run=True if args.dry_run else None,
        save_images=False if args.no_save_images else None,
    )
    return cfg


def _print_progress(worker: ScanWorker) -> None:
    summary = worker.progress().summary(worker.config.subject_key)
    trend = summary.trend.value if summary.trend is not None else "n/a"
    print(f"subject={summary.subject_key} scans={summary.scans} trend={trend}")
    for rec in summary.recommendations:
        print(f"  - {rec.title}: {rec.text}")
    if summary.notify_provider:
        print("  ! Large wound area detected; provider should be notified")


def main() -> int:
    ap = _build_parser()
    args = ap.parse_args()

    cfg = load_config(args.config)
    cfg = _apply_args(cfg, args)

    worker = ScanWorker(cfg)

    def _handle_signal(_sig, _frame):
        worker.stop()

    def _handle_capture(_sig, _frame):
        worker.request_capture()

    signal.signal(signal.SIGINT, _handle_signal)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handle_signal)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, _handle_capture)

    summary = worker.run()
    print(summary)
    if summary.scans:
        _print_progress(worker)
    return 0


if __name__ == "__main__":
    sys.exit(main())
