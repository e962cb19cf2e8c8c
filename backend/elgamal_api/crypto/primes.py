import logging
from typing import Optional, Tuple

from elgamal_api.config import PRIMALITY_ROUNDS
from elgamal_api.crypto.randomness import RandomSource, random_nbit_integer, uniform_in_range

logger = logging.getLogger(__name__)

SMALL_PRIMES = [
    2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67, 71,
    73, 79, 83, 89, 97, 101, 103, 107, 109, 113, 127, 131, 137, 139, 149, 151,
    157, 163, 167, 173, 179, 181, 191, 193, 197, 199, 211, 223, 227, 229, 233,
    239, 241, 251,
]


def is_probable_prime(n: int, rounds: int = PRIMALITY_ROUNDS, rng: Optional[RandomSource] = None) -> bool:
    """Trial division by small primes followed by Miller-Rabin with random witnesses."""
    if n < 2:
        return False
    if n in SMALL_PRIMES:
        return True
    if any((n % p) == 0 for p in SMALL_PRIMES):
        return False
    if n < SMALL_PRIMES[-1] ** 2:
        return True

    d = n - 1
    s = 0
    while d % 2 == 0:
        d //= 2
        s += 1

    for _ in range(rounds):
        a = uniform_in_range(2, n - 1, rng)
        x = pow(a, d, n)
        if x == 1 or x == n - 1:
            continue
        for _ in range(s - 1):
            x = pow(x, 2, n)
            if x == n - 1:
                break
        else:
            return False
    return True


def probable_prime(bits: int, rng: Optional[RandomSource] = None) -> int:
    """
    Probable prime with exactly ``bits`` bits.

    Sweeps odd candidates upward from a random start; if the sweep runs past
    2**bits the search restarts from a fresh random start.
    """
    if bits < 2:
        raise ValueError("a prime needs at least 2 bits")
    candidate = random_nbit_integer(bits, rng) | 1
    while not is_probable_prime(candidate, rng=rng):
        candidate += 2
        if candidate.bit_length() != bits:
            candidate = random_nbit_integer(bits, rng) | 1
    return candidate


def safe_prime(bits: int, rng: Optional[RandomSource] = None) -> Tuple[int, int]:
    """
    Safe prime p = 2q + 1 with exactly ``bits`` bits.

    Returns (p, q). Each attempt draws a fresh (bits - 1)-bit prime q; the
    expected number of attempts grows linearly with ``bits``.
    """
    if bits < 3:
        raise ValueError("a safe prime needs at least 3 bits")
    attempts = 0
    while True:
        attempts += 1
        q = probable_prime(bits - 1, rng)
        p = 2 * q + 1
        if is_probable_prime(p, rng=rng):
            logger.debug("safe prime of %d bits found after %d attempts", bits, attempts)
            return p, q
