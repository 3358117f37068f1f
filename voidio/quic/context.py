"""Per-worker state of a QUIC server: its socket, known connections and key material."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from typing import Callable, Optional

from .connection import ConnectionId, ConnectionType, QuicConnection
from .crypto import INITIAL_SALT
from .processor import QuicLongHeader
from .stream import _format_address


@dataclass
class QuicConnectionEvent:
    """Passed to the connection handler when a new connection is announced."""

    connection: QuicConnection


OnConnectionEvent = Callable[[QuicConnectionEvent], None]


class QuicThreadContext:
    """Everything one server worker needs to process incoming QUIC packets."""

    def __init__(
        self,
        worker_id: int,
        udp_socket: Optional[socket.socket],
        on_connection: OnConnectionEvent,
    ) -> None:
        self.id = worker_id
        self.udp_socket = udp_socket
        self.connections: dict[ConnectionId, QuicConnection] = {}
        self.initial_salt = INITIAL_SALT
        self.client_init_buf = bytes(32)
        self.hp_key_buf = bytes(16)
        self.aead_key_buf = bytes(16)
        self.aead_iv_buf = bytes(12)
        self.curr_long_hdr = QuicLongHeader()
        self.on_connection = on_connection
        self.debug_mode = True

    def send_udp_packet(self, data, address) -> int:
        """Send ``data`` to ``address`` on the worker's socket; returns the bytes sent."""
        if self.udp_socket is None:
            raise OSError("worker has no socket")
        return self.udp_socket.sendto(bytes(data), address)

    def notify_on_connection(self, connection: QuicConnection) -> None:
        """Announce ``connection`` and hand it to the connection handler."""
        print(
            f"New QUIC connection: {connection.id}[{_format_address(connection.address)}]"
            f" => {connection.dcid}[Server]"
        )
        self.on_connection(QuicConnectionEvent(connection=connection))

    def update_connection(
        self,
        scid: ConnectionId,
        dcid: ConnectionId,
        packet_number: int,
        source_address,
    ) -> QuicConnection:
        """Refresh the connection keyed by ``scid``, creating a server-side one if new."""
        conn = self.connections.get(scid)
        if conn is None:
            conn = QuicConnection(scid, dcid, packet_number, source_address, ConnectionType.SERVER)
            self.connections[scid] = conn
        else:
            conn.last_packet_number = packet_number
            conn.address = source_address
        return conn