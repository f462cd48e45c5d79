#!/usr/bin/env python3
"""Generate printable QR fiducials for wound scale calibration.

Each subject gets a QR code encoding its key, rendered so that the code
prints at the reference size the scan loop assumes (2.5 cm by default).
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2

from wound_measure.fiducial import create_qr_fiducial, fiducial_size_px
from wound_measure.strategies.calibrate_qr import DEFAULT_QR_SIZE_CM


def main():
    parser = argparse.ArgumentParser(
        description="Generate QR fiducials of a known printed size"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="fiducials",
        help="Output directory (default: fiducials)"
    )
    parser.add_argument(
        "--subjects",
        nargs="+",
        required=True,
        help="Subject keys to encode (one fiducial each)"
    )
    parser.add_argument(
        "--size-cm",
        type=float,
        default=DEFAULT_QR_SIZE_CM,
        help=f"Printed side length in cm (default: {DEFAULT_QR_SIZE_CM})"
    )
    parser.add_argument(
        "--dpi",
        type=int,
        default=300,
        help="Print resolution (default: 300)"
    )

    args = parser.parse_args()

    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    side = fiducial_size_px(args.size_cm, args.dpi)
    print(f"Fiducial size: {args.size_cm} cm = {side}px at {args.dpi} dpi")
    print(f"Output directory: {output_dir}")
    print()

    for subject in args.subjects:
        try:
            img = create_qr_fiducial(subject, args.size_cm, args.dpi)
        except (ValueError, RuntimeError) as e:
            print(f"Error: {subject}: {e}", file=sys.stderr)
            return 1
        safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in subject)
        output_path = output_dir / f"qr_{safe}.png"
        cv2.imwrite(str(output_path), img)
        print(f"✓ Created fiducial: {output_path}")

    print()
    print("Print at 100% scale (no fit-to-page) and check the code measures "
          f"{args.size_cm} cm before use.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
