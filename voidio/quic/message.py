"""Reliable messages delivered on a QUIC connection."""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Optional

from .stream import _format_address

if TYPE_CHECKING:
    from .connection import QuicConnection


class QuicMessage:
    """A message payload holding a weak reference to the connection it came from."""

    def __init__(self, connection: "QuicConnection", data) -> None:
        self._connection = weakref.ref(connection)
        self.data = bytes(data)

    @property
    def connection(self) -> Optional["QuicConnection"]:
        """The source connection, or None once it has been dropped."""
        return self._connection()

    def src(self):
        """The sender's address, or None if the connection no longer exists."""
        conn = self._connection()
        return conn.address if conn is not None else None

    def text(self) -> str:
        """The payload decoded as UTF-8, with invalid bytes replaced."""
        return self.data.decode("utf-8", errors="replace")

    def __bytes__(self) -> bytes:
        return self.data

    def __str__(self) -> str:
        payload = "[" + ", ".join(str(b) for b in self.data) + "]"
        address = self.src()
        shown = "<dropped>" if address is None else _format_address(address)
        return f"QuicMessage(src: {shown}, data: {payload})"