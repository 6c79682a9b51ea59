#!/usr/bin/env python3
"""
Command Line Interface for the RTSP client

Plays one media resource for a fixed time and prints the session report.
"""

import sys
import time
import logging
import argparse
from pathlib import Path
from typing import Optional

from .config import load_config
from .connection import RTSPConnection
from .exceptions import RTSPError
from .frame import Frame
from .version import get_version_string

logger = logging.getLogger(__name__)


class FrameSaver:
    """Frame consumer that counts frames and optionally writes payloads to disk"""

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir
        self.frames = 0
        self.bytes = 0
        if output_dir is not None:
            output_dir.mkdir(parents=True, exist_ok=True)

    def process_frame(self, frame: Frame) -> None:
        self.frames += 1
        self.bytes += frame.payload_length
        if self.output_dir is not None:
            path = self.output_dir / f"frame_{frame.sequence_number:05d}.bin"
            path.write_bytes(frame.payload)


def configure_logging(debug: bool = False):
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
        root_logger.addHandler(handler)
    else:
        for handler in root_logger.handlers:
            handler.setLevel(root_logger.level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rtsp-client',
        description='Stream a media resource from an RTSP server and report playback statistics',
    )
    parser.add_argument('server', help='RTSP server hostname or address')
    parser.add_argument('port', type=int, help='RTSP server TCP port')
    parser.add_argument('media', help='Media resource to play (e.g. movie.Mjpeg)')
    parser.add_argument('--duration', '-t', type=float, default=10.0,
                        help='Seconds to play before tearing down (default: 10)')
    parser.add_argument('--config', '-c', help='Configuration file path (TOML)')
    parser.add_argument('--save-frames', metavar='DIR', help='Write each frame payload into DIR')
    parser.add_argument('--debug', '-d', action='store_true', help='Enable DEBUG logging')
    return parser


def main(argv=None) -> int:
    """Main entry point for the rtsp-client command"""
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)
    logger.info(get_version_string())

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"❌ Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}", file=sys.stderr)
        return 1

    saver = FrameSaver(Path(args.save_frames) if args.save_frames else None)

    try:
        with RTSPConnection(saver, args.server, args.port, config=config) as conn:
            conn.setup(args.media)
            conn.play()
            try:
                time.sleep(args.duration)
            except KeyboardInterrupt:
                logger.info("Interrupted, tearing down")
            conn.teardown()
            print(conn.stats.format_report())
    except RTSPError as e:
        logger.error(f"{e}")
        return 1

    logger.info(f"Received {saver.frames} frames ({saver.bytes} payload bytes)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
