"""Command-line entry point for the capture client."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from livedigest.capture.client import run_capture
from livedigest.capture.source import CaptureError, list_input_devices
from livedigest.pipeline_config import CaptureConfig

logger = logging.getLogger(__name__)


def _device(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    defaults = CaptureConfig()
    parser = argparse.ArgumentParser(description="Record audio and upload it in fixed-length chunks")
    parser.add_argument("--device", type=_device, default=None, help="Input device index or name")
    parser.add_argument("--list-devices", action="store_true", help="List input devices and exit")
    parser.add_argument("--server", default=defaults.server_url, help="Upload endpoint URL")
    parser.add_argument("--source-key", default=defaults.source_key)
    parser.add_argument("--channels", type=int, default=defaults.channels)
    parser.add_argument("--sample-rate", type=int, default=defaults.sample_rate)
    parser.add_argument(
        "--dtype",
        default=defaults.dtype,
        choices=["int8", "int16", "int32", "float32"],
    )
    parser.add_argument("--chunk-seconds", type=float, default=defaults.chunk_seconds)
    parser.add_argument(
        "--relay-seconds",
        type=float,
        default=defaults.relay_seconds,
        help="Audio the relay can hold while an upload is in flight",
    )
    parser.add_argument("--timeout", type=float, default=defaults.upload_timeout)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list_devices:
        for dev in list_input_devices():
            print(f"{dev['index']:>3}  {dev['name']}  ({dev['channels']} ch, {dev['sample_rate']:.0f} Hz)")
        return 0

    config = CaptureConfig(
        server_url=args.server,
        source_key=args.source_key,
        device=args.device,
        channels=args.channels,
        sample_rate=args.sample_rate,
        dtype=args.dtype,
        chunk_seconds=args.chunk_seconds,
        relay_seconds=args.relay_seconds,
        upload_timeout=args.timeout,
    )
    try:
        asyncio.run(run_capture(config))
    except KeyboardInterrupt:
        return 0
    except CaptureError as exc:
        logger.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
