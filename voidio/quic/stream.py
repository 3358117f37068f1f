"""Streams opened on a QUIC connection."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from .connection import QuicConnection

DataHandler = Callable[[bytes], None]
CloseHandler = Callable[[], None]


def _format_address(address) -> str:
    """Render a socket address as ``host:port``, bracketing IPv6 hosts."""
    host, port = address[0], address[1]
    if ":" in str(host):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class QuicStream:
    """A stream identified by its id, belonging to one connection."""

    def __init__(self, stream_id: int, connection: "QuicConnection") -> None:
        self.id = stream_id
        self.connection = connection
        self.data_handler: Optional[DataHandler] = None
        self.close_handler: Optional[CloseHandler] = None

    def on_data(self, handler: DataHandler) -> DataHandler:
        """Register the callback that receives incoming stream data."""
        self.data_handler = handler
        return handler

    def on_close(self, handler: CloseHandler) -> CloseHandler:
        """Register the callback run when the stream closes."""
        self.close_handler = handler
        return handler

    def src(self):
        """The address of the peer this stream belongs to."""
        return self.connection.address

    def __str__(self) -> str:
        return f"QuicStream(id: {self.id}, src: {_format_address(self.connection.address)})"