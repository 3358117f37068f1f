"""A QUIC client endpoint bound to one server address."""

from __future__ import annotations

import ipaddress
import re
import socket
from typing import Callable, Optional

from .connection import ConnectionId, QuicConnection, QuicError
from .stream import QuicStream
from .utils import generate_connection_id

_LABEL = re.compile(r"^[A-Za-z0-9_](?:[A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?$")

OpenHandler = Callable[[QuicConnection], None]


def _valid_server_name(name: str) -> bool:
    try:
        ipaddress.ip_address(name)
        return True
    except ValueError:
        pass
    trimmed = name[:-1] if name.endswith(".") else name
    if not trimmed or len(trimmed) > 253:
        return False
    return all(_LABEL.match(label) for label in trimmed.split("."))


def _split_host_port(host: str) -> tuple[str, int]:
    name, sep, port = host.rpartition(":")
    if not sep or not name:
        raise ValueError(f"address {host!r} has no port")
    if name.startswith("[") and name.endswith("]"):
        name = name[1:-1]
    try:
        number = int(port)
    except ValueError:
        raise ValueError(f"invalid port in {host!r}") from None
    if not 0 <= number <= 65535:
        raise ValueError(f"invalid port in {host!r}")
    return name, number


class QuicClient:
    """Resolves a ``host:port`` target and holds the UDP socket used to reach it."""

    def __init__(self, host: str) -> None:
        server_name = host.split(":")[0]
        if not _valid_server_name(server_name):
            raise ValueError(f"invalid server name: {server_name!r}")
        self.server_name = server_name
        name, port = _split_host_port(host)
        family, _, _, _, sockaddr = socket.getaddrinfo(name, port, type=socket.SOCK_DGRAM)[0]
        self.address = sockaddr
        self.socket = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        self.connection: Optional[QuicConnection] = None
        self.open_handler: Optional[OpenHandler] = None
        self.scid: Optional[ConnectionId] = None
        self.dcid: Optional[ConnectionId] = None

    def connect(self) -> None:
        """Choose fresh source and destination connection ids for a new handshake."""
        self.scid = ConnectionId(generate_connection_id(8))
        self.dcid = ConnectionId(generate_connection_id(20))

    def on_open(self, handler: OpenHandler) -> OpenHandler:
        """Register the callback run once the connection opens."""
        self.open_handler = handler
        return handler

    def open_bistream(self) -> QuicStream:
        """Open a bidirectional stream on the established connection."""
        if self.connection is None:
            raise QuicError("Connection not established")
        return self.connection.open_bistream()

    def close(self) -> None:
        """Release the client's socket."""
        self.socket.close()

    def __enter__(self) -> "QuicClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()