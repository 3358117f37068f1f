"""Processing of received QUIC packets: header parsing, unprotection and decryption."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .connection import MAX_CONNECTION_ID_LEN, ConnectionId, QuicError
from .crypto import (
    INITIAL_SALT,
    expand_label,
    header_protection_mask,
    hkdf_extract,
    read_varint,
    remove_header_protection,
)
from .utils import make_nonce

if TYPE_CHECKING:
    from .context import QuicThreadContext

QUIC_VERSION_1 = 1
_LONG_HEADER = 0x80
_FIXED_BIT = 0x40
_TYPE_BITS = 0x30
_RESERVED_BITS = 0x0C
_PN_LEN_BITS = 0x03
_PACKET_TYPE_INITIAL = 0
_SAMPLE_SKIP = 4
_SAMPLE_LEN = 16

_LABEL_CLIENT_IN = b"client in"
_LABEL_HP = b"quic hp"
_LABEL_AEAD = b"quic key"
_LABEL_IV = b"quic iv"


@dataclass
class QuicLongHeader:
    """The fields of the most recently processed long header."""

    flags: int = 0
    version: int = 0
    dcid: bytes = b""
    scid: bytes = b""
    header_size: int = 0


def exec_quic_initial(ctx: "QuicThreadContext", packet, source_address) -> int:
    """Unprotect and decrypt an Initial packet in place; returns its size, or 0 if unusable.

    ``packet`` must be a mutable buffer (a bytearray or a writable memoryview).
    Raises QuicError if the payload fails authentication.
    """
    size = len(packet)
    if size < 7:
        return 0
    dcid_len = packet[5]
    dcid_end = 6 + dcid_len
    if dcid_len > MAX_CONNECTION_ID_LEN or dcid_end >= size:
        return 0
    dcid = ConnectionId.from_slice(bytes(packet[6:dcid_end]))

    scid_len = packet[dcid_end]
    scid_start = dcid_end + 1
    scid_end = scid_start + scid_len
    if scid_len > MAX_CONNECTION_ID_LEN or scid_end > size:
        return 0
    scid = ConnectionId.from_slice(bytes(packet[scid_start:scid_end]))

    token = read_varint(packet[scid_end:])
    if token is None:
        return 0
    token_len, token_len_size = token
    token_end = scid_end + token_len_size + token_len
    if token_end > size:
        return 0

    initial_prk = hkdf_extract(INITIAL_SALT, bytes(dcid))
    client_initial = expand_label(initial_prk, _LABEL_CLIENT_IN, 32)
    ctx.client_init_buf = client_initial
    ctx.hp_key_buf = expand_label(client_initial, _LABEL_HP, 16)

    length = read_varint(packet[token_end:])
    if length is None:
        return 0
    packet_length, length_size = length
    pn_offset = token_end + length_size
    if pn_offset + _SAMPLE_SKIP + _SAMPLE_LEN > size:
        return 0
    sample = bytes(packet[pn_offset + _SAMPLE_SKIP : pn_offset + _SAMPLE_SKIP + _SAMPLE_LEN])
    mask = header_protection_mask(ctx.hp_key_buf, sample)

    packet[0] ^= mask[0] & 0x0F
    pn_len = (packet[0] & _PN_LEN_BITS) + 1
    if packet[0] & _RESERVED_BITS:
        return 0

    _, pn_bytes = remove_header_protection(0, bytes(packet[pn_offset : pn_offset + pn_len]), mask)
    packet[pn_offset : pn_offset + pn_len] = pn_bytes
    packet_number = int.from_bytes(pn_bytes, "big")

    payload_start = pn_offset + pn_len
    quic_end = pn_offset + packet_length
    if quic_end > size or quic_end < payload_start:
        return 0

    ctx.aead_key_buf = expand_label(client_initial, _LABEL_AEAD, 16)
    ctx.aead_iv_buf = expand_label(client_initial, _LABEL_IV, 12)
    nonce = make_nonce(packet_number, ctx.aead_iv_buf)
    try:
        plaintext = AESGCM(ctx.aead_key_buf).decrypt(
            nonce, bytes(packet[payload_start:quic_end]), bytes(packet[:payload_start])
        )
    except InvalidTag:
        raise QuicError("Initial packet failed authentication") from None
    packet[payload_start : payload_start + len(plaintext)] = plaintext

    ctx.curr_long_hdr = QuicLongHeader(
        flags=packet[0],
        version=int.from_bytes(bytes(packet[1:5]), "big"),
        dcid=bytes(dcid),
        scid=bytes(scid),
        header_size=payload_start,
    )
    return quic_end


def exec_quic_packet(ctx: "QuicThreadContext", packet, source_address) -> int:
    """Process one QUIC packet at the start of ``packet``; returns its size, or 0 to stop."""
    if len(packet) < 5 or not packet[0] & _LONG_HEADER:
        # Short-header packets are not processed.
        return 0
    version = int.from_bytes(bytes(packet[1:5]), "big")
    if version != QUIC_VERSION_1:
        return 0
    if not packet[0] & _FIXED_BIT:
        # Version negotiation is not processed.
        return 0
    packet_type = (packet[0] & _TYPE_BITS) >> 4
    if packet_type == _PACKET_TYPE_INITIAL:
        return exec_quic_initial(ctx, packet, source_address)
    # Handshake, Retry and 0-RTT packets are not processed.
    return 0