"""
Media frame model and the consumer interface frames are delivered to
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Frame:
    """One decoded datagram"""
    payload_type: int       # 7-bit payload type
    marker: bool
    sequence_number: int    # 16-bit, wraps
    timestamp: int          # 32-bit, wraps
    payload: memoryview     # view into the receive buffer, not a copy

    @property
    def payload_length(self) -> int:
        return len(self.payload)


class FrameConsumer(Protocol):
    """
    Receives every successfully decoded frame.

    Called on the receive task's thread, so implementations should hand
    heavy work off rather than block.
    """

    def process_frame(self, frame: Frame) -> None:
        ...
