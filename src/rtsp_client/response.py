"""
RTSP response reading

Reads one response from the control stream: a status line, header lines
up to the first blank line, and a body when Content-Length says there is
one. Header names are case-insensitive.
"""

import logging
from typing import BinaryIO, Dict, Optional

from .exceptions import ControlIOError

logger = logging.getLogger(__name__)

SUCCESS = 200


class RTSPResponse:
    """A parsed control-channel response"""

    def __init__(self, version: str, code: int, message: str,
                 headers: Optional[Dict[str, str]] = None, body: bytes = b""):
        self.version = version
        self.code = code
        self.message = message
        self.headers = {k.upper(): v for k, v in (headers or {}).items()}
        self.body = body

    @property
    def ok(self) -> bool:
        return self.code == SUCCESS

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.upper(), default)

    @property
    def session_id(self) -> Optional[str]:
        """Session header with any ';timeout=...' parameters removed"""
        value = self.get_header('Session')
        if value is None:
            return None
        return value.split(';', 1)[0].strip()

    @property
    def cseq(self) -> Optional[int]:
        value = self.get_header('CSeq')
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None

    @classmethod
    def read(cls, reader: BinaryIO) -> 'RTSPResponse':
        """
        Read one response.

        Args:
            reader: Buffered binary reader over the control socket

        Raises:
            ControlIOError: On EOF or a malformed status line
            OSError: If the underlying read fails
        """
        status_line = cls._read_line(reader)
        # Tolerate stray blank lines between responses
        while status_line == "":
            status_line = cls._read_line(reader)

        parts = status_line.split(' ', 2)
        if len(parts) < 2 or not parts[0].startswith('RTSP/'):
            raise ControlIOError(f"Malformed status line: {status_line!r}")
        try:
            code = int(parts[1])
        except ValueError as e:
            raise ControlIOError(f"Malformed status code in: {status_line!r}") from e
        message = parts[2] if len(parts) > 2 else ""

        headers: Dict[str, str] = {}
        while True:
            line = cls._read_line(reader)
            if line == "":
                break
            name, sep, value = line.partition(':')
            if not sep:
                logger.debug(f"Ignoring malformed header line: {line!r}")
                continue
            headers[name.strip()] = value.strip()

        response = cls(parts[0], code, message, headers)

        length = response.get_header('Content-Length')
        if length:
            try:
                size = int(length)
            except ValueError:
                size = 0
            if size > 0:
                response.body = reader.read(size)
                if len(response.body) < size:
                    raise ControlIOError("Connection closed while reading response body")

        logger.debug(f"Response: {code} {message} headers={headers}")
        return response

    @staticmethod
    def _read_line(reader: BinaryIO) -> str:
        raw = reader.readline()
        if not raw:
            raise ControlIOError("Connection closed by server")
        return raw.decode('utf-8', errors='replace').rstrip('\r\n')
