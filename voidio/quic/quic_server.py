"""A QUIC server running packet processing on the workers of a UDP server."""

from __future__ import annotations

import enum
from typing import Callable, Optional

from ..udp.udp_server import UdpServer
from ..udp.udp_worker import UdpServerThreadContext
from .context import QuicConnectionEvent, QuicThreadContext
from .processor import exec_quic_packet

ConnectionHandler = Callable[[QuicConnectionEvent], None]

_MIN_DATAGRAM = 8


class DispatchMode(enum.Enum):
    DIRECT = "direct"
    ASYNC = "async"


class QuicServer:
    """Receives QUIC packets on a UDP server and announces new connections."""

    def __init__(self, address) -> None:
        self.udp_server = UdpServer(address)
        self.dispatch_mode = DispatchMode.DIRECT
        self.onconnection_handler: Optional[ConnectionHandler] = None

    def set_dispatch_mode(self, mode: DispatchMode) -> "QuicServer":
        """Choose how datagrams are dispatched."""
        self.dispatch_mode = mode
        return self

    def on_connection(self, handler: ConnectionHandler) -> "QuicServer":
        """Set the handler called for each new connection."""
        self.onconnection_handler = handler
        return self

    def start(self, num_workers: int) -> None:
        """Start ``num_workers`` workers; the connection handler must be set first."""
        handler = self.onconnection_handler
        if handler is None:
            raise RuntimeError("on_connection handler must be set before starting the server")
        self.onconnection_handler = None

        def setup(udp_ctx: UdpServerThreadContext) -> None:
            quic_ctx = QuicThreadContext(udp_ctx.id, udp_ctx.socket, handler)

            def on_datagram(src, data: bytearray) -> None:
                if len(data) < _MIN_DATAGRAM:
                    return
                view = memoryview(data)
                offset = 0
                while offset + 7 < len(data):
                    processed = exec_quic_packet(quic_ctx, view[offset:], src)
                    if processed == 0:
                        return
                    offset += processed

            udp_ctx.on_datagram(on_datagram)
            udp_ctx.run()

        self.udp_server.thread(setup)
        self.udp_server.start(num_workers)

    def stop(self) -> None:
        """Stop the underlying UDP server."""
        self.udp_server.stop()

    def is_running(self) -> bool:
        """Whether the underlying UDP server is running."""
        return self.udp_server.is_running()