"""Key derivation, header protection and variable-length integers for QUIC Initial packets."""

from __future__ import annotations

import hashlib
import hmac

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

INITIAL_SALT = bytes(
    [
        0x38, 0x76, 0x2C, 0xF7, 0xF5, 0x59, 0x34, 0xB3, 0x4D, 0x17,
        0x9A, 0xE6, 0xA4, 0xC8, 0x0C, 0xAD, 0xCC, 0xBB, 0x7F, 0x0A,
    ]
)

_HASH_LEN = 32
_MAX_EXPAND = 255 * _HASH_LEN
_LABEL_PREFIX = b"tls13 "
_AES_BLOCK = 16


def hkdf_extract(salt, ikm) -> bytes:
    """HKDF-Extract with SHA-256: HMAC(salt, ikm)."""
    return hmac.new(bytes(salt), bytes(ikm), hashlib.sha256).digest()


def hkdf_expand(prk, info, length: int) -> bytes:
    """Expand a 32-byte key into ``length`` bytes by chaining SHA-256(prk | T | info | counter)."""
    prk = bytes(prk)
    if len(prk) != _HASH_LEN:
        raise ValueError("prk must be 32 bytes")
    if length < 0:
        raise ValueError("length must not be negative")
    info = bytes(info)
    out = bytearray()
    block = b""
    counter = 1
    while len(out) < length:
        block = hashlib.sha256(prk + block + info + bytes([counter])).digest()
        out += block
        counter = (counter + 1) & 0xFF
    return bytes(out[:length])


def expand_label(prk, label, length: int) -> bytes:
    """TLS 1.3 HKDF-Expand-Label with an empty context."""
    if not 0 <= length <= _MAX_EXPAND:
        raise ValueError(f"length must be between 0 and {_MAX_EXPAND}")
    full_label = _LABEL_PREFIX + bytes(label)
    if len(full_label) > 255:
        raise ValueError("label too long")
    info = length.to_bytes(2, "big") + bytes([len(full_label)]) + full_label + b"\x00"
    key = bytes(prk)
    out = bytearray()
    block = b""
    counter = 1
    while len(out) < length:
        block = hmac.new(key, block + info + bytes([counter]), hashlib.sha256).digest()
        out += block
        counter += 1
    return bytes(out[:length])


def aes_ecb_block(key, block) -> bytes:
    """Encrypt a single 16-byte block with AES-128."""
    key, block = bytes(key), bytes(block)
    if len(key) != _AES_BLOCK:
        raise ValueError("AES-128 key must be 16 bytes")
    if len(block) != _AES_BLOCK:
        raise ValueError("block must be 16 bytes")
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return encryptor.update(block) + encryptor.finalize()


def header_protection_mask(hp_key, sample) -> bytes:
    """The header-protection mask: AES of the first 16 bytes of the ciphertext sample."""
    sample = bytes(sample)
    if len(sample) < _AES_BLOCK:
        raise ValueError("sample must be at least 16 bytes")
    return aes_ecb_block(hp_key, sample[:_AES_BLOCK])


def remove_header_protection(first_byte: int, packet_number, mask) -> tuple[int, bytes]:
    """Unmask the low four bits of the first byte and the packet-number bytes."""
    mask = bytes(mask)
    packet_number = bytes(packet_number)
    if len(packet_number) > len(mask) - 1:
        raise ValueError("packet number longer than the mask allows")
    unmasked_first = first_byte ^ (mask[0] & 0x0F)
    unmasked_pn = bytes(b ^ m for b, m in zip(packet_number, mask[1:]))
    return unmasked_first, unmasked_pn


def read_varint(buf) -> tuple[int, int] | None:
    """Decode a QUIC variable-length integer; returns (value, size) or None if ``buf`` is short."""
    if not buf:
        return None
    first = buf[0]
    size = 1 << (first >> 6)
    if len(buf) < size:
        return None
    value = first & 0x3F
    for byte in bytes(buf[1:size]):
        value = (value << 8) | byte
    return value, size