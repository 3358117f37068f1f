import socket

import pytest

from voidio.quic.client import QuicClient
from voidio.quic.connection import ConnectionId, ConnectionType, QuicConnection, QuicError


def test_quic_initial():
    with QuicClient("127.0.0.1:5003") as client:
        client.connect()
        assert client.address == ("127.0.0.1", 5003)
        assert len(client.scid) == 8
        assert len(client.dcid) == 20


def test_connect_picks_fresh_ids():
    with QuicClient("127.0.0.1:5003") as client:
        client.connect()
        first = client.dcid
        client.connect()
        assert client.dcid != first


def test_server_name_is_host_part():
    with QuicClient("127.0.0.1:5003") as client:
        assert client.server_name == "127.0.0.1"
        assert client.socket.family == socket.AF_INET
        assert client.socket.type == socket.SOCK_DGRAM


def test_invalid_server_name_rejected():
    with pytest.raises(ValueError):
        QuicClient("bad name!:5003")


def test_missing_port_rejected():
    with pytest.raises(ValueError):
        QuicClient("127.0.0.1")


def test_open_bistream_without_connection():
    with QuicClient("127.0.0.1:5003") as client:
        with pytest.raises(QuicError, match="Connection not established"):
            client.open_bistream()


def test_open_bistream_with_connection():
    with QuicClient("127.0.0.1:5003") as client:
        conn = QuicConnection(
            ConnectionId.from_slice(b"\x01"),
            ConnectionId.from_slice(b"\x02"),
            0,
            client.address,
            ConnectionType.CLIENT,
        )
        client.connection = conn
        stream = client.open_bistream()
        assert stream.connection is conn
        assert stream.id == conn.last_bistream_id


def test_on_open_stores_handler():
    with QuicClient("127.0.0.1:5003") as client:
        opened = []
        client.on_open(opened.append)
        client.open_handler("conn")
        assert opened == ["conn"]


def test_close_releases_socket():
    client = QuicClient("127.0.0.1:5003")
    client.close()
    assert client.socket.fileno() == -1