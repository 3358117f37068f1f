"""QUIC connection state: ids, stream numbering and event handlers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .datagram import QuicDatagram
from .message import QuicMessage
from .stream import QuicStream, _format_address

MAX_CONNECTION_ID_LEN = 20


class QuicError(Exception):
    """Raised when a QUIC operation cannot be carried out."""


class ConnectionState(enum.Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ConnectionType(enum.Enum):
    CLIENT = "client"
    SERVER = "server"


@dataclass(frozen=True)
class ConnectionId:
    """A connection id of at most 20 bytes, compared and hashed by its bytes."""

    value: bytes = b""

    def __post_init__(self) -> None:
        if len(self.value) > MAX_CONNECTION_ID_LEN:
            raise ValueError(f"connection id is longer than {MAX_CONNECTION_ID_LEN} bytes")
        object.__setattr__(self, "value", bytes(self.value))

    @classmethod
    def from_slice(cls, data) -> "ConnectionId":
        """Build an id from ``data``, keeping at most its first 20 bytes."""
        return cls(bytes(data[:MAX_CONNECTION_ID_LEN]))

    def __bytes__(self) -> bytes:
        return self.value

    def __len__(self) -> int:
        return len(self.value)

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"ConnectionId({self.value.hex()})"


StreamHandler = Callable[[QuicStream], None]
MessageHandler = Callable[[QuicMessage], Awaitable[None]]
DatagramHandler = Callable[[QuicDatagram], None]
CloseHandler = Callable[["QuicConnection"], None]

# (first bidirectional id, first unidirectional id) per initiator.
_INITIAL_STREAM_IDS = {
    ConnectionType.CLIENT: (0, 2),
    ConnectionType.SERVER: (1, 3),
}


class QuicConnection:
    """One QUIC connection as seen from this endpoint."""

    def __init__(
        self,
        scid: ConnectionId,
        dcid: ConnectionId,
        last_packet_number: int,
        address,
        kind: ConnectionType,
    ) -> None:
        self.id = scid
        self.dcid = dcid
        self.last_packet_number = last_packet_number
        self.address = address
        self.kind = kind
        self.stream_handler: Optional[StreamHandler] = None
        self.message_handler: Optional[MessageHandler] = None
        self.datagram_handler: Optional[DatagramHandler] = None
        self.close_handler: Optional[CloseHandler] = None
        self.message_channel_ready = False
        self.last_bistream_id, self.last_unistream_id = _INITIAL_STREAM_IDS[kind]

    def initiate_message_channel(self) -> None:
        """Mark the connection as ready to carry messages."""
        self.message_channel_ready = True

    def open_bistream(self) -> QuicStream:
        """Open the next bidirectional stream this endpoint initiates."""
        self.last_bistream_id += 4
        return QuicStream(self.last_bistream_id, self)

    def on_stream(self, handler: StreamHandler) -> StreamHandler:
        """Register the callback for streams opened by the peer."""
        self.stream_handler = handler
        return handler

    def on_message(self, handler: MessageHandler) -> MessageHandler:
        """Register the coroutine function that receives messages."""
        self.message_handler = handler
        return handler

    async def trigger_message(self, message: QuicMessage) -> None:
        """Deliver ``message`` to the message handler, if one is set."""
        if self.message_handler is not None:
            await self.message_handler(message)

    def on_datagram(self, handler: DatagramHandler) -> DatagramHandler:
        """Register the callback for incoming datagrams."""
        self.datagram_handler = handler
        return handler

    def on_close(self, handler: CloseHandler) -> CloseHandler:
        """Register the callback run when the connection closes."""
        self.close_handler = handler
        return handler

    def __str__(self) -> str:
        return f"QuicConnection(id: {self.id}, address: {_format_address(self.address)})"