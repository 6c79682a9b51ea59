"""
Socket primitives for the control and data channels

The control channel is a TCP stream opened with a bounded connect; the
data channel is a receive-only UDP socket bound to an ephemeral port
with a short receive timeout so polling never blocks indefinitely.
"""

import socket
import threading
import time
import logging
from typing import List, Tuple

from .exceptions import (
    ConnectTimeoutError,
    HostResolutionError,
    HostUnreachableError,
    TransportError,
)

logger = logging.getLogger(__name__)


def resolve_address(host: str, port: int, timeout: float) -> List[Tuple]:
    """
    Look up a TCP endpoint, giving up after timeout seconds.

    getaddrinfo() itself cannot be interrupted, so the lookup runs on a
    daemon thread that is abandoned if it overruns.

    Raises:
        HostResolutionError: If the name does not resolve
        ConnectTimeoutError: If the lookup exceeds timeout
    """
    result = {}

    def lookup():
        try:
            result['addresses'] = socket.getaddrinfo(host, port, 0, socket.SOCK_STREAM)
        except OSError as e:
            result['error'] = e

    worker = threading.Thread(target=lookup, name=f"resolve-{host}", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise ConnectTimeoutError(
            f"Looking up '{host}' timed out after {timeout:.1f} seconds", host, port
        )
    if 'error' in result:
        e = result['error']
        raise HostResolutionError(f"Invalid host:port '{host}:{port}': {e}", host, port) from e
    return result['addresses']


def open_control_channel(host: str, port: int, timeout: float) -> socket.socket:
    """
    Connect to an RTSP server.

    The timeout covers the whole attempt: name lookup plus connecting to
    each resolved address in turn.

    Args:
        host: Server hostname or IP address
        port: Server TCP port
        timeout: Seconds allowed for the connect attempt

    Returns:
        Connected TCP socket

    Raises:
        HostResolutionError: If the name does not resolve
        ConnectTimeoutError: If the attempt exceeds timeout
        HostUnreachableError: If the server refuses or cannot be reached
    """
    deadline = time.monotonic() + timeout
    addresses = resolve_address(host, port, timeout)

    last_error = None
    for _family, _type, _proto, _name, sockaddr in addresses:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            sock = socket.create_connection(sockaddr[:2], timeout=remaining)
        except OSError as e:
            logger.debug(f"Connect to {sockaddr[0]}:{sockaddr[1]} failed: {e}")
            last_error = e
            continue
        logger.info(f"Control channel connected to {host}:{port}")
        return sock

    if last_error is None or isinstance(last_error, socket.timeout):
        raise ConnectTimeoutError(
            f"Connection attempt to '{host}:{port}' timed out after {timeout:.1f} seconds",
            host, port,
        ) from last_error
    raise HostUnreachableError(
        f"Cannot connect to server at '{host}:{port}': {last_error}", host, port
    ) from last_error


def open_data_socket(timeout: float, bind_address: str = '') -> socket.socket:
    """
    Create the UDP socket frames will arrive on.

    Args:
        timeout: Receive timeout in seconds
        bind_address: Local address to bind (all interfaces by default)

    Returns:
        Bound UDP socket; its port is sock.getsockname()[1]

    Raises:
        TransportError: If the socket cannot be created or configured
    """
    sock = None
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((bind_address, 0))
        sock.settimeout(timeout)
    except OSError as e:
        if sock is not None:
            sock.close()
        raise TransportError(f"Could not create a new data connection: {e}") from e

    logger.debug(f"Data socket bound to UDP port {sock.getsockname()[1]}")
    return sock
