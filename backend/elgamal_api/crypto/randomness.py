"""
Cryptographically secure random integers.

Every function takes an optional ``rng`` implementing ``RandomSource``; when
omitted the operating system CSRNG is used. Tests inject a deterministic
stream through the same parameter.
"""

import secrets
from typing import Optional, Protocol

from elgamal_api.crypto.errors import InvalidRangeError, RandomnessUnavailableError


class RandomSource(Protocol):
    def fill(self, n: int) -> bytes:
        """Return exactly ``n`` random bytes or raise RandomnessUnavailableError."""
        ...


class SystemRandom:
    """RandomSource backed by the OS CSRNG (``secrets.token_bytes``)."""

    def fill(self, n: int) -> bytes:
        try:
            data = secrets.token_bytes(n)
        except (OSError, NotImplementedError) as exc:
            raise RandomnessUnavailableError("system CSRNG unavailable") from exc
        if len(data) != n:
            raise RandomnessUnavailableError(f"short read from CSRNG ({len(data)}/{n} bytes)")
        return data


SYSTEM_RANDOM = SystemRandom()


def _read(rng: Optional[RandomSource], n: int) -> bytes:
    data = (rng or SYSTEM_RANDOM).fill(n)
    if len(data) != n:
        raise RandomnessUnavailableError(f"random source returned {len(data)} of {n} bytes")
    return data


def random_bits(bits: int, rng: Optional[RandomSource] = None) -> int:
    """Uniform integer in [0, 2**bits), sampled from whole bytes."""
    nbytes = (bits + 7) // 8
    value = int.from_bytes(_read(rng, nbytes), "big")
    return value >> (nbytes * 8 - bits)


def random_nbit_integer(bits: int, rng: Optional[RandomSource] = None) -> int:
    """Random integer with exactly ``bits`` bits (top bit forced)."""
    if bits < 1:
        raise ValueError("bits must be positive")
    return random_bits(bits, rng) | (1 << (bits - 1))


def uniform_in_range(min_value: int, max_value: int, rng: Optional[RandomSource] = None) -> int:
    """
    Uniform integer v with min_value <= v < max_value.

    Rejection sampling: draws are masked to the bit length of the range, so
    each draw is accepted with probability above 1/2 and the expected number
    of redraws is below two. There is no retry cap.
    """
    if min_value >= max_value:
        raise InvalidRangeError(f"empty range [{min_value}, {max_value})")
    span = max_value - min_value
    if span == 1:
        return min_value

    bits = (span - 1).bit_length()
    while True:
        candidate = random_bits(bits, rng)
        if candidate < span:
            return min_value + candidate
