"""Connection-id generation, varint encoding and AEAD nonce construction."""

from __future__ import annotations

import secrets

MAX_CONNECTION_ID_LEN = 20
_U64_MAX = (1 << 64) - 1
_U32_MAX = (1 << 32) - 1


def generate_connection_id(length: int) -> bytes:
    """A random connection id of ``length`` bytes (at most 20)."""
    if not 0 <= length <= MAX_CONNECTION_ID_LEN:
        raise ValueError(f"connection id length must be between 0 and {MAX_CONNECTION_ID_LEN}")
    return secrets.token_bytes(length)


def encode_varint(value: int) -> bytes:
    """Encode ``value`` as a QUIC variable-length integer."""
    if not 0 <= value <= _U64_MAX:
        raise ValueError("value must fit in an unsigned 64-bit integer")
    if value <= 63:
        return bytes([value])
    if value <= 16383:
        return (0x4000 | value).to_bytes(2, "big")
    if value <= 1073741823:
        return (0x80000000 | value).to_bytes(4, "big")
    return ((0xC0 << 56) | (value & ((1 << 62) - 1))).to_bytes(8, "big")


def make_nonce(packet_number: int, iv) -> bytes:
    """The AEAD nonce: the 12-byte IV XOR the packet number as a big-endian 64-bit value."""
    iv = bytes(iv)
    if len(iv) != 12:
        raise ValueError("iv must be 12 bytes")
    if not 0 <= packet_number <= _U32_MAX:
        raise ValueError("packet number must fit in 32 bits")
    tail = int.from_bytes(iv[4:], "big") ^ packet_number
    return iv[:4] + tail.to_bytes(8, "big")