from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pydevice.api import open_from_yaml
from pydevice.contracts import DEVICE_OK
from pydevice.devices import PyCamera


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Initialize a scripted device from YAML.")
    parser.add_argument("device_yaml", type=Path, help="Path to device YAML")
    parser.add_argument(
        "--exposure",
        type=float,
        default=None,
        help="Optional exposure in milliseconds to set before snapping (cameras only)",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    device = open_from_yaml(args.device_yaml)
    code = device.initialize()
    if code != DEVICE_OK:
        print(f"{device.get_name()}: initialize failed ({code}): {device.get_error_text(code)}")
        return 1

    try:
        if isinstance(device, PyCamera):
            if args.exposure is not None:
                device.set_exposure(args.exposure)
            code = device.snap_image()
            if code != DEVICE_OK:
                print(f"snap failed ({code}): {device.get_error_text(code)}")
                return 1
            print(
                f"{device.get_name()}: {device.get_image_width()}x{device.get_image_height()} "
                f"{device.get_bit_depth()} bit, exposure {device.get_exposure()} ms, "
                f"{device.get_image_buffer_size()} bytes"
            )
        else:
            print(f"{device.get_name()}: initialized")
    finally:
        device.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
