"""
RTSP Client - RTSP control channel with RTP frame reception

Drives an RTSP server through SETUP / PLAY / PAUSE / TEARDOWN, receives
RTP-framed media over UDP, and keeps per-session playback statistics
(frames played, out-of-order frames, playback time, frame rate).

Quick Start:
    from rtsp_client import RTSPConnection

    class Printer:
        def process_frame(self, frame):
            print(frame.sequence_number, frame.timestamp, len(frame.payload))

    with RTSPConnection(Printer(), 'localhost', 5554) as conn:
        conn.setup('movie.Mjpeg')
        conn.play()
        ...
        conn.teardown()
        print(conn.stats.format_report())
"""

from .version import CLIENT_VERSION as __version__

from .config import ClientConfig, load_config
from .connection import ConnectionState, RTSPConnection
from .exceptions import (
    RTSPError,
    RTSPConnectionError,
    HostResolutionError,
    HostUnreachableError,
    ConnectTimeoutError,
    TransportError,
    ControlIOError,
    ProtocolError,
    MalformedFrameError,
)
from .frame import Frame, FrameConsumer
from .frame_codec import HEADER_LENGTH, decode_frame, encode_header
from .periodic import PeriodicTask
from .response import RTSPResponse
from .ring_buffer import RingBuffer
from .session_stats import (
    SessionStatistics,
    SessionStat,
    SessionRecord,
    SessionReport,
)

__all__ = [
    "__version__",
    # Connection
    "RTSPConnection",
    "ConnectionState",
    "ClientConfig",
    "load_config",
    # Frames
    "Frame",
    "FrameConsumer",
    "decode_frame",
    "encode_header",
    "HEADER_LENGTH",
    # Statistics
    "SessionStatistics",
    "SessionStat",
    "SessionRecord",
    "SessionReport",
    "RingBuffer",
    "PeriodicTask",
    "RTSPResponse",
    # Errors
    "RTSPError",
    "RTSPConnectionError",
    "HostResolutionError",
    "HostUnreachableError",
    "ConnectTimeoutError",
    "TransportError",
    "ControlIOError",
    "ProtocolError",
    "MalformedFrameError",
]
