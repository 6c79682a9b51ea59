#!/usr/bin/env python3
"""
RTP Fixed Header Decoding

Turns a received datagram into a Frame. Only the fixed 12-byte header is
interpreted; CSRC lists and header extensions are not used by the servers
this client talks to and are left inside the payload.

Header layout (big-endian):
    byte 0      version / padding / extension / CSRC count (ignored)
    byte 1      marker (high bit), payload type (low 7 bits)
    bytes 2-3   sequence number
    bytes 4-7   timestamp
    bytes 8-11  SSRC (not surfaced)
"""

import struct
from typing import Optional, Union

from .exceptions import MalformedFrameError
from .frame import Frame

HEADER = struct.Struct('>BBHII')
HEADER_LENGTH = HEADER.size  # 12

MARKER_MASK = 0x80
PAYLOAD_TYPE_MASK = 0x7F

SEQUENCE_MODULUS = 1 << 16
TIMESTAMP_MODULUS = 1 << 32


def decode_frame(data: Union[bytes, bytearray, memoryview], length: Optional[int] = None) -> Frame:
    """
    Decode a datagram into a Frame.

    Args:
        data: Receive buffer
        length: Number of valid bytes in data (defaults to len(data))

    Returns:
        Frame whose payload is a view of data[12:length]

    Raises:
        MalformedFrameError: If fewer than 12 bytes were received
    """
    if length is None:
        length = len(data)
    if length < HEADER_LENGTH:
        raise MalformedFrameError(length, HEADER_LENGTH)

    _, b1, sequence, timestamp, _ssrc = HEADER.unpack_from(data, 0)

    return Frame(
        payload_type=b1 & PAYLOAD_TYPE_MASK,
        marker=bool(b1 & MARKER_MASK),
        sequence_number=sequence,
        timestamp=timestamp,
        payload=memoryview(data)[HEADER_LENGTH:length],
    )


def encode_header(payload_type: int, sequence_number: int, timestamp: int,
                  marker: bool = False, ssrc: int = 0) -> bytes:
    """Build a version-2 fixed header (used by test servers and tools)"""
    b1 = (MARKER_MASK if marker else 0) | (payload_type & PAYLOAD_TYPE_MASK)
    return HEADER.pack(
        0x80,
        b1,
        sequence_number % SEQUENCE_MODULUS,
        timestamp % TIMESTAMP_MODULUS,
        ssrc,
    )
