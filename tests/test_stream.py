from voidio.quic.connection import ConnectionId, ConnectionType, QuicConnection
from voidio.quic.stream import QuicStream

ADDRESS = ("127.0.0.1", 4433)


def _connection(address=ADDRESS):
    return QuicConnection(
        ConnectionId.from_slice(b"\x01\x02"),
        ConnectionId.from_slice(b"\x03\x04"),
        0,
        address,
        ConnectionType.CLIENT,
    )


def test_stream_keeps_id_and_connection():
    conn = _connection()
    stream = QuicStream(7, conn)
    assert stream.id == 7
    assert stream.connection is conn


def test_src_is_connection_address():
    stream = QuicStream(1, _connection())
    assert stream.src() == ADDRESS


def test_str_ipv4():
    stream = QuicStream(7, _connection())
    assert str(stream) == "QuicStream(id: 7, src: 127.0.0.1:4433)"


def test_str_ipv6_is_bracketed():
    stream = QuicStream(3, _connection(("::1", 4433)))
    assert str(stream) == "QuicStream(id: 3, src: [::1]:4433)"


def test_on_data_registers_handler():
    stream = QuicStream(1, _connection())
    received = []
    stream.on_data(received.append)
    stream.data_handler(b"abc")
    assert received == [b"abc"]


def test_on_close_registers_handler():
    stream = QuicStream(1, _connection())
    closed = []
    stream.on_close(lambda: closed.append(True))
    stream.close_handler()
    assert closed == [True]