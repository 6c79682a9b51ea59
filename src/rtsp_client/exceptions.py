"""
Exception hierarchy for the RTSP client

Every error raised by this package derives from RTSPError, so callers
that only want to know "did the streaming operation fail" can catch one
type. Data-path problems (timeouts, bad datagrams) are handled inside the
receive task and never reach the caller.
"""

from typing import Optional


class RTSPError(Exception):
    """Base class for all client errors"""


class RTSPConnectionError(RTSPError):
    """Control channel could not be opened"""

    def __init__(self, message: str, host: str, port: int):
        super().__init__(message)
        self.host = host
        self.port = port


class HostResolutionError(RTSPConnectionError):
    """Server name did not resolve"""


class HostUnreachableError(RTSPConnectionError):
    """Server refused or could not be reached"""


class ConnectTimeoutError(RTSPConnectionError):
    """Connect attempt exceeded its time bound"""


class TransportError(RTSPError):
    """Local datagram socket could not be created or configured"""


class ControlIOError(RTSPError):
    """Read or write failure on the control stream"""


class ProtocolError(RTSPError):
    """
    Server answered a control request with a non-success status.

    Attributes:
        code: Status code from the response line
        message: Reason phrase from the response line
    """

    def __init__(self, code: int, message: str = "", method: Optional[str] = None):
        self.code = code
        self.message = message
        self.method = method
        prefix = f"{method} failed: " if method else ""
        super().__init__(f"{prefix}{code} {message}".rstrip())


class MalformedFrameError(RTSPError):
    """Datagram too short to carry a frame header"""

    def __init__(self, length: int, required: int):
        super().__init__(f"datagram of {length} bytes is shorter than the {required}-byte header")
        self.length = length
        self.required = required
