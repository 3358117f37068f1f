import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from voidio.quic.connection import QuicError
from voidio.quic.context import QuicThreadContext
from voidio.quic.crypto import INITIAL_SALT, expand_label, header_protection_mask, hkdf_extract
from voidio.quic.processor import exec_quic_initial, exec_quic_packet
from voidio.quic.utils import encode_varint, make_nonce

DCID = bytes.fromhex("8394c8f03e515708")
SCID = bytes.fromhex("f067a5502a4262b5")
PAYLOAD = b"\x06\x00\x05hello" + bytes(40)
SOURCE = ("127.0.0.1", 50000)


def _keys(dcid):
    secret = hkdf_extract(INITIAL_SALT, dcid)
    client = expand_label(secret, b"client in", 32)
    return (
        expand_label(client, b"quic key", 16),
        expand_label(client, b"quic iv", 12),
        expand_label(client, b"quic hp", 16),
    )


def build_initial(dcid=DCID, scid=SCID, payload=PAYLOAD, pn=2, pn_len=4, token=b"", extra_bits=0):
    key, iv, hp = _keys(dcid)
    first = 0xC0 | extra_bits | (pn_len - 1)
    ct_len = len(payload) + 16
    header = (
        bytes([first])
        + (1).to_bytes(4, "big")
        + bytes([len(dcid)])
        + dcid
        + bytes([len(scid)])
        + scid
        + encode_varint(len(token))
        + token
        + encode_varint(pn_len + ct_len)
        + pn.to_bytes(pn_len, "big")
    )
    ct = AESGCM(key).encrypt(make_nonce(pn, iv), payload, header)
    pn_offset = len(header) - pn_len
    mask = header_protection_mask(hp, ct[4 - pn_len : 20 - pn_len])
    protected = bytearray(header + ct)
    protected[0] ^= mask[0] & 0x0F
    protected[pn_offset : pn_offset + pn_len] = bytes(
        b ^ m for b, m in zip(protected[pn_offset : pn_offset + pn_len], mask[1:])
    )
    return protected, header


@pytest.fixture
def ctx():
    return QuicThreadContext(0, None, lambda event: None)


def test_initial_packet_is_decrypted_in_place(ctx):
    packet, header = build_initial()
    size = exec_quic_initial(ctx, packet, SOURCE)
    assert size == len(packet)
    assert bytes(packet[: len(header)]) == header
    assert bytes(packet[len(header) : len(header) + len(PAYLOAD)]) == PAYLOAD


def test_initial_keys_match_the_standard_vectors(ctx):
    packet, _ = build_initial()
    exec_quic_initial(ctx, packet, SOURCE)
    assert ctx.aead_key_buf == bytes.fromhex("1f369613dd76d5467730efcbe3b1a22d")
    assert ctx.aead_iv_buf == bytes.fromhex("fa044b2f42a3fd3b46fb255c")
    assert ctx.hp_key_buf == bytes.fromhex("9f50449e04a0e810283a1e9933adedd2")


@pytest.mark.parametrize("pn_len", [1, 2, 3, 4])
def test_packet_number_lengths(ctx, pn_len):
    packet, header = build_initial(pn=7, pn_len=pn_len)
    assert exec_quic_packet(ctx, packet, SOURCE) == len(packet)
    assert bytes(packet[: len(header)]) == header
    assert ctx.curr_long_hdr.header_size == len(header)


def test_long_header_is_recorded(ctx):
    packet, header = build_initial(token=b"tok")
    exec_quic_packet(ctx, packet, SOURCE)
    hdr = ctx.curr_long_hdr
    assert hdr.flags == header[0]
    assert hdr.version == 1
    assert hdr.dcid == DCID
    assert hdr.scid == SCID


def test_coalesced_packets(ctx):
    first, _ = build_initial(pn=1)
    second, _ = build_initial(pn=2, payload=b"\x01" * 30)
    buf = bytearray(first + second)
    view = memoryview(buf)
    n1 = exec_quic_packet(ctx, view, SOURCE)
    assert n1 == len(first)
    n2 = exec_quic_packet(ctx, view[n1:], SOURCE)
    assert n2 == len(second)
    assert bytes(buf[n1 + n2 - 16 - 30 : n1 + n2 - 16]) == b"\x01" * 30


def test_tampered_payload_raises(ctx):
    packet, _ = build_initial()
    packet[-1] ^= 0xFF
    with pytest.raises(QuicError):
        exec_quic_initial(ctx, packet, SOURCE)


def test_truncated_packet_returns_zero(ctx):
    packet, _ = build_initial()
    assert exec_quic_initial(ctx, packet[:-1], SOURCE) == 0


def test_reserved_bits_set_returns_zero(ctx):
    packet, _ = build_initial(extra_bits=0x0C)
    assert exec_quic_initial(ctx, packet, SOURCE) == 0


def test_oversized_dcid_returns_zero(ctx):
    packet, _ = build_initial()
    packet[5] = 21
    assert exec_quic_initial(ctx, packet, SOURCE) == 0


def test_short_header_returns_zero(ctx):
    packet = bytearray(b"\x40" + bytes(40))
    assert exec_quic_packet(ctx, packet, SOURCE) == 0


def test_unknown_version_returns_zero(ctx):
    packet, _ = build_initial()
    packet[1:5] = (2).to_bytes(4, "big")
    assert exec_quic_packet(ctx, packet, SOURCE) == 0
    assert ctx.curr_long_hdr.version == 0


def test_missing_fixed_bit_returns_zero(ctx):
    packet, _ = build_initial()
    packet[0] &= 0xBF
    assert exec_quic_packet(ctx, packet, SOURCE) == 0


def test_handshake_packet_is_not_processed(ctx):
    packet, _ = build_initial()
    packet[0] = (packet[0] & 0xCF) | 0x10
    original = bytes(packet)
    assert exec_quic_packet(ctx, packet, SOURCE) == 0
    assert bytes(packet) == original