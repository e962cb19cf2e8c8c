"""
Conversions between application values and the integer domain [0, p).

Plaintext bytes are read as a big-endian unsigned integer, so leading zero
bytes do not survive a round trip. Every BigInt field is exchanged as a
lowercase hex string without prefix.
"""

import re
from typing import Union

from elgamal_api.crypto.elgamal import Ciphertext, KeyPair, PrivateKeyPair, from_parameters

Plaintext = Union[bytes, str, int]

_DIGITS = {10: re.compile(r"[0-9]+"), 16: re.compile(r"[0-9a-fA-F]+")}


def encode_bytes(data: bytes) -> int:
    return int.from_bytes(data, "big")


def decode_bytes(m: int) -> bytes:
    if m < 0:
        raise ValueError("negative value cannot be decoded")
    return m.to_bytes((m.bit_length() + 7) // 8, "big")


def encode_text(text: str) -> int:
    return encode_bytes(text.encode("utf-8"))


def decode_text(m: int) -> str:
    return decode_bytes(m).decode("utf-8")


def encode_plaintext(value: Plaintext) -> int:
    """Resolve a plaintext once, before it reaches the cipher."""
    if isinstance(value, bool):
        raise TypeError("bool is not a plaintext")
    if isinstance(value, int):
        if value < 0:
            raise ValueError("negative integers cannot be encrypted")
        return value
    if isinstance(value, str):
        return encode_text(value)
    if isinstance(value, (bytes, bytearray)):
        return encode_bytes(bytes(value))
    raise TypeError(f"unsupported plaintext type: {type(value).__name__}")


def int_to_hex(value: int) -> str:
    if value < 0:
        raise ValueError("negative values have no canonical encoding")
    return format(value, "x")


def hex_to_int(text: str) -> int:
    return parse_int(text, 16)


def parse_int(text: str, base: int = 16) -> int:
    """Parse a non-negative hex or decimal string; a 0x prefix is tolerated for hex."""
    if base not in (10, 16):
        raise ValueError("base must be 10 or 16")
    cleaned = text.strip()
    if base == 16 and cleaned[:2].lower() == "0x":
        cleaned = cleaned[2:]
    # int() alone also accepts "_" separators and signs
    if not _DIGITS[base].fullmatch(cleaned):
        raise ValueError(f"invalid base-{base} integer: {text!r}")
    return int(cleaned, base)


def keypair_to_dict(keypair: KeyPair, include_private: bool = False) -> dict:
    data = {
        "p": int_to_hex(keypair.params.p),
        "g": int_to_hex(keypair.params.g),
        "y": int_to_hex(keypair.y),
    }
    if include_private and isinstance(keypair, PrivateKeyPair):
        data["x"] = int_to_hex(keypair.x)
    return data


def keypair_from_dict(data: dict, base: int = 16) -> KeyPair:
    x = data.get("x")
    return from_parameters(
        p=parse_int(data["p"], base),
        g=parse_int(data["g"], base),
        y=parse_int(data["y"], base),
        x=parse_int(x, base) if x is not None else None,
    )


def ciphertext_to_dict(c: Ciphertext) -> dict:
    return {"a": int_to_hex(c.a), "b": int_to_hex(c.b)}


def ciphertext_from_dict(data: dict, base: int = 16) -> Ciphertext:
    return Ciphertext(a=parse_int(data["a"], base), b=parse_int(data["b"], base))
