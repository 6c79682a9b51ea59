#!/usr/bin/env python3
"""
RTSP Connection

Client side of one RTSP control connection and the RTP data channel that
goes with it.

State machine:
    INIT --setup--> READY --play--> PLAYING
    PLAYING --pause--> READY
    READY/PLAYING --teardown--> INIT

Each operation is a silent no-op when called in a state it does not
apply to; in that case no request is sent and no CSeq is used. A failed
operation (I/O error or non-200 response) leaves the state unchanged.

While PLAYING, a periodic task polls the data socket, decodes each
datagram, hands the frame to the consumer and records it in the
connection's SessionStatistics.

Locking: all control operations hold one connection lock. Periodic
tasks never take it; they are cancelled (and joined) under the lock
before the data socket is closed.
"""

import socket
import threading
import logging
from enum import Enum
from typing import Optional

from .config import ClientConfig
from .exceptions import ControlIOError, MalformedFrameError, ProtocolError, RTSPError
from .frame import FrameConsumer
from .frame_codec import decode_frame
from .periodic import PeriodicTask
from .response import RTSPResponse
from .session_stats import SessionStatistics
from .transport import open_control_channel, open_data_socket
from .version import PROTOCOL_VERSION

logger = logging.getLogger(__name__)

CRLF = "\r\n"


class ConnectionState(Enum):
    """RTSP session states"""
    INIT = "init"          # No session set up
    READY = "ready"        # Session set up, not streaming
    PLAYING = "playing"    # Streaming


class RTSPConnection:
    """
    A connection to an RTSP server.

    Opening the connection only establishes the control channel; no
    request is sent until setup().

    Example:
        with RTSPConnection(consumer, 'localhost', 5554) as conn:
            conn.setup('movie.Mjpeg')
            conn.play()
            time.sleep(10)
            conn.teardown()
            print(conn.stats.format_report())
    """

    def __init__(self, consumer: FrameConsumer, server: str, port: int,
                 config: Optional[ClientConfig] = None):
        """
        Connect to an RTSP server.

        Args:
            consumer: Receives every decoded frame (on the receive thread)
            server: Hostname or IP address of the server
            port: TCP port the server listens on
            config: Timeouts and tuning; defaults if None

        Raises:
            RTSPConnectionError: If the control channel cannot be opened
        """
        self.consumer = consumer
        self.server = server
        self.port = port
        self.config = config or ClientConfig()

        self.stats = SessionStatistics(
            history_size=self.config.history_size,
            accrual_interval_ms=self.config.accrual_interval_ms,
            max_timestamp_gap=self.config.max_timestamp_gap,
            detect_loss=self.config.detect_loss,
        )

        self.state = ConnectionState.INIT
        self.session_id: Optional[str] = None
        self.media_name: Optional[str] = None
        self._request_count = 0

        self._data_socket: Optional[socket.socket] = None
        self._receive_task: Optional[PeriodicTask] = None
        self._lock = threading.Lock()
        self._closed = False

        self._control_socket = open_control_channel(server, port, self.config.connect_timeout_s)
        self._control_socket.settimeout(self.config.control_timeout_s)
        self._reader = self._control_socket.makefile('rb')

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @property
    def request_count(self) -> int:
        """Requests sent in the current session lifecycle"""
        return self._request_count

    @property
    def data_port(self) -> Optional[int]:
        """Local UDP port frames arrive on, while a session is set up"""
        if self._data_socket is None:
            return None
        return self._data_socket.getsockname()[1]

    @property
    def closed(self) -> bool:
        return self._closed

    def setup(self, media_name: str) -> None:
        """
        Send SETUP for a media resource.

        Opens the data socket on an ephemeral UDP port and advertises that
        port to the server. On success the session id from the response is
        kept for subsequent requests.

        Args:
            media_name: Name of the media resource to set up

        Raises:
            TransportError: If the data socket could not be created
            ControlIOError: If sending or receiving failed
            ProtocolError: If the server did not answer 200
        """
        with self._lock:
            if self.state != ConnectionState.INIT:
                logger.debug(f"Ignoring SETUP in state {self.state.value}")
                return
            self._ensure_open()

            data_socket = open_data_socket(self.config.data_timeout_s)
            client_port = data_socket.getsockname()[1]
            try:
                response = self._exchange('SETUP', media_name, client_port=client_port)
                session_id = response.session_id
                if not session_id:
                    raise ProtocolError(response.code, "response carried no Session header", 'SETUP')
            except ProtocolError:
                data_socket.close()
                # Answered, so no session exists and nothing is outstanding
                self._request_count = 0
                raise
            except RTSPError:
                # An unanswered SETUP keeps its CSeq so a late reply is not
                # mistaken for the answer to the next one
                data_socket.close()
                raise

            self._data_socket = data_socket
            self.session_id = session_id
            self.media_name = media_name
            self.stats.begin_session(session_id, media_name)
            self._set_state(ConnectionState.READY)

    def play(self) -> None:
        """
        Send PLAY and start receiving frames.

        Raises:
            ControlIOError: If sending or receiving failed
            ProtocolError: If the server did not answer 200
        """
        with self._lock:
            if self.state != ConnectionState.READY:
                logger.debug(f"Ignoring PLAY in state {self.state.value}")
                return
            self._exchange('PLAY', self.media_name, session_id=self.session_id)
            self._start_receiving()
            self.stats.begin_playback()
            self._set_state(ConnectionState.PLAYING)

    def pause(self) -> None:
        """
        Send PAUSE and stop receiving frames.

        Raises:
            ControlIOError: If sending or receiving failed
            ProtocolError: If the server did not answer 200
        """
        with self._lock:
            if self.state != ConnectionState.PLAYING:
                logger.debug(f"Ignoring PAUSE in state {self.state.value}")
                return
            self._exchange('PAUSE', self.media_name, session_id=self.session_id)
            self._stop_receiving()
            self.stats.pause_playback()
            self._set_state(ConnectionState.READY)

    def teardown(self) -> None:
        """
        Send TEARDOWN, finalize the session and close the data socket.

        The control connection stays open, so a new setup() is allowed.

        Raises:
            ControlIOError: If sending or receiving failed
            ProtocolError: If the server did not answer 200
        """
        with self._lock:
            self._teardown()

    def close(self) -> None:
        """
        Tear down any active session and release the control connection.

        Never raises; safe to call more than once.
        """
        with self._lock:
            if self._closed:
                return

            if self.state != ConnectionState.INIT:
                try:
                    self._teardown()
                except RTSPError as e:
                    logger.warning(f"TEARDOWN during close failed: {e}")
                    self._release_session()

            for resource in (self._reader, self._control_socket):
                try:
                    resource.close()
                except OSError as e:
                    logger.debug(f"Error closing control channel: {e}")

            self._closed = True
            logger.info(f"Connection to {self.server}:{self.port} closed")

    def __enter__(self) -> 'RTSPConnection':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ------------------------------------------------------------------
    # Internals (called with the lock held)
    # ------------------------------------------------------------------

    def _teardown(self):
        if self.state == ConnectionState.INIT:
            logger.debug("Ignoring TEARDOWN in state init")
            return
        self._exchange('TEARDOWN', self.media_name, session_id=self.session_id)
        self._release_session()

    def _release_session(self):
        """Stop tasks, finalize statistics, close the data socket, back to INIT"""
        self._stop_receiving()
        if self.stats.current_session() is not None:
            self.stats.set_request_count(self._request_count)
            self.stats.end_session()

        if self._data_socket is not None:
            self._data_socket.close()
            self._data_socket = None

        self.session_id = None
        self.media_name = None
        self._request_count = 0
        self._set_state(ConnectionState.INIT)

    def _set_state(self, new_state: ConnectionState):
        if new_state != self.state:
            logger.info(f"State {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _ensure_open(self):
        if self._closed:
            raise ControlIOError("Connection is closed")

    def _exchange(self, method: str, resource: str, session_id: Optional[str] = None,
                  client_port: Optional[int] = None) -> RTSPResponse:
        """
        Send one request and read its response; raises unless the status is 200.

        Responses carrying a different CSeq answer an earlier request whose
        read timed out; they are discarded.
        """
        self._ensure_open()
        cseq = self._send_request(method, resource, session_id=session_id, client_port=client_port)

        while True:
            response = self._read_response(method, cseq)
            if response.cseq is None or response.cseq == cseq:
                break
            logger.warning(
                f"Discarding response for CSeq {response.cseq} "
                f"({response.code} {response.message}) while waiting for {method} CSeq {cseq}"
            )

        if not response.ok:
            raise ProtocolError(response.code, response.message, method)
        return response

    def _read_response(self, method: str, cseq: int) -> RTSPResponse:
        try:
            return RTSPResponse.read(self._reader)
        except socket.timeout as e:
            # A reader that timed out refuses every later read
            self._reader.close()
            self._reader = self._control_socket.makefile('rb')
            raise ControlIOError(
                f"Timed out after {self.config.control_timeout_s:.1f}s waiting for "
                f"{method} response (CSeq {cseq}); a late reply will be discarded"
            ) from e
        except OSError as e:
            raise ControlIOError(f"Failed to read {method} response: {e}") from e

    def _send_request(self, method: str, resource: str, session_id: Optional[str] = None,
                      client_port: Optional[int] = None) -> int:
        """
        Write one request and return its CSeq. The counter only advances
        once the request has been written in full.
        """
        cseq = self._request_count + 1
        lines = [
            f"{method} {resource} {PROTOCOL_VERSION}",
            f"CSeq: {cseq}",
        ]
        if client_port is not None:
            lines.append(f"Transport: RTP/UDP; client_port={client_port}")
        if session_id is not None:
            lines.append(f"Session: {session_id}")
        request = CRLF.join(lines) + CRLF + CRLF

        try:
            self._control_socket.sendall(request.encode('utf-8'))
        except OSError as e:
            raise ControlIOError(f"Cannot send {method} request for '{resource}': {e}") from e

        self._request_count += 1
        logger.debug(f"Sent {method} {resource} (CSeq {cseq})")
        return cseq

    def _start_receiving(self):
        self._receive_task = PeriodicTask(
            name=f"rtp-receive-{self.session_id}",
            func=self._receive_frame,
            interval_s=self.config.receive_interval_ms / 1000.0,
        )
        self._receive_task.start()
        logger.info(f"Receiving frames on UDP port {self.data_port}")

    def _stop_receiving(self):
        if self._receive_task is None:
            return
        self._receive_task.cancel()
        self._receive_task = None
        logger.info("Stopped receiving frames")

    # ------------------------------------------------------------------
    # Receive task (runs on the task thread, never holds the lock)
    # ------------------------------------------------------------------

    def _receive_frame(self):
        """
        Receive and process one datagram. A timeout means nothing arrived
        this tick; other socket errors are logged and the tick is skipped.
        """
        sock = self._data_socket
        if sock is None:
            return

        buf = bytearray(self.config.receive_buffer_size)
        try:
            nbytes = sock.recv_into(buf)
        except socket.timeout:
            return
        except OSError as e:
            logger.error(f"Error receiving RTP packet: {e}")
            return

        try:
            frame = decode_frame(buf, nbytes)
        except MalformedFrameError as e:
            logger.warning(f"Dropping malformed datagram: {e}")
            return

        self.consumer.process_frame(frame)
        self.stats.record_frame(frame)
