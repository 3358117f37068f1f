"""Unreliable datagrams received on a QUIC connection."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .stream import _format_address

if TYPE_CHECKING:
    from .connection import QuicConnection


class QuicDatagram:
    """A datagram payload together with the connection it arrived on."""

    def __init__(self, connection: "QuicConnection", data) -> None:
        self.connection = connection
        self.data = bytes(data)

    def src(self):
        """The address of the sending peer."""
        return self.connection.address

    def text(self) -> str:
        """The payload decoded as UTF-8, with invalid bytes replaced."""
        return self.data.decode("utf-8", errors="replace")

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        payload = "[" + ", ".join(str(b) for b in self.data) + "]"
        return f"QuicDatagram(src: {_format_address(self.connection.address)}, data: {payload})"