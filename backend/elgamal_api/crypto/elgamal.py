"""
ElGamal over the multiplicative group modulo a safe prime p = 2q + 1.

Ciphertexts multiply homomorphically: the component-wise product of two
ciphertexts decrypts to the product of their plaintexts modulo p.

Caveat: blinded decryption masks the exponentiation base but Python's
``pow`` is not constant time; none of these operations are side-channel
resistant.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from elgamal_api.config import DEFAULT_PRIME_BITS, PRIMALITY_ROUNDS
from elgamal_api.crypto.errors import InvalidRangeError, MissingPrivateKeyError, PlaintextOutOfRangeError
from elgamal_api.crypto.primes import is_probable_prime, safe_prime
from elgamal_api.crypto.randomness import RandomSource, uniform_in_range

logger = logging.getLogger(__name__)

MIN_PRIME_BITS = 16


@dataclass(frozen=True)
class DomainParameters:
    p: int
    g: int

    @property
    def q(self) -> int:
        return (self.p - 1) // 2


@dataclass(frozen=True)
class PublicKeyPair:
    params: DomainParameters
    y: int


@dataclass(frozen=True)
class PrivateKeyPair:
    params: DomainParameters
    y: int
    x: int = field(repr=False)

    def public(self) -> PublicKeyPair:
        return PublicKeyPair(params=self.params, y=self.y)


KeyPair = Union[PublicKeyPair, PrivateKeyPair]


@dataclass(frozen=True)
class Ciphertext:
    a: int
    b: int


def _is_weak_generator(g: int, p: int, q: int) -> bool:
    return (
        pow(g, 2, p) == 1
        or pow(g, q, p) == 1
        # g | p-1
        or (p - 1) % g == 0
        # g^-1 | p-1 (Khadir's attack)
        or (p - 1) % pow(g, -1, p) == 0
    )


def select_generator(p: int, q: int, rng: Optional[RandomSource] = None) -> int:
    """Random generator of Z_p* for p = 2q + 1, never 2 (Bleichenbacher)."""
    while True:
        g = uniform_in_range(3, p, rng)
        if not _is_weak_generator(g, p, q):
            return g


def generate_keypair(prime_bits: int = DEFAULT_PRIME_BITS, rng: Optional[RandomSource] = None) -> PrivateKeyPair:
    if prime_bits < MIN_PRIME_BITS:
        raise ValueError(f"prime_bits must be at least {MIN_PRIME_BITS}")
    logger.info("generating %d-bit ElGamal keypair", prime_bits)
    p, q = safe_prime(prime_bits, rng)
    g = select_generator(p, q, rng)
    x = uniform_in_range(2, p - 1, rng)
    y = pow(g, x, p)
    return PrivateKeyPair(params=DomainParameters(p=p, g=g), y=y, x=x)


def from_parameters(p: int, g: int, y: int, x: Optional[int] = None) -> KeyPair:
    """Wrap externally supplied values; no primality or generator checks are made."""
    params = DomainParameters(p=p, g=g)
    if x is None:
        return PublicKeyPair(params=params, y=y)
    return PrivateKeyPair(params=params, y=y, x=x)


def validate_keypair(keypair: KeyPair, rounds: int = PRIMALITY_ROUNDS) -> List[str]:
    """Return the invariants the keypair violates; an empty list means valid."""
    p, g = keypair.params.p, keypair.params.g
    problems = []
    if p < 5 or not is_probable_prime(p, rounds):
        problems.append("p is not prime")
        return problems
    q = (p - 1) // 2
    if not is_probable_prime(q, rounds):
        problems.append("p is not a safe prime")
    if not 3 <= g < p:
        problems.append("g out of range")
    elif _is_weak_generator(g, p, q):
        problems.append("g is a weak generator")
    if not 1 < keypair.y < p:
        problems.append("y out of range")
    if isinstance(keypair, PrivateKeyPair):
        if not 1 < keypair.x < p - 1:
            problems.append("x out of range")
        elif pow(g, keypair.x, p) != keypair.y:
            problems.append("y does not match g^x mod p")
    return problems


def encrypt(keypair: KeyPair, m: int, k: Optional[int] = None, rng: Optional[RandomSource] = None) -> Ciphertext:
    """
    Encrypt an integer 0 <= m < p.

    ``k`` is only for reproducing fixed test vectors; a reused or predictable
    k breaks semantic security.
    """
    p, g = keypair.params.p, keypair.params.g
    if not 0 <= m < p:
        raise PlaintextOutOfRangeError("message out of range")
    if k is None:
        k = uniform_in_range(1, p - 1, rng)
    elif not 1 <= k < p - 1:
        raise InvalidRangeError("ephemeral key k must satisfy 1 <= k < p-1")
    a = pow(g, k, p)
    b = (pow(keypair.y, k, p) * m) % p
    return Ciphertext(a=a, b=b)


def check_ciphertext(params: DomainParameters, c: Ciphertext) -> None:
    """Raise InvalidRangeError unless 0 < a < p and 0 <= b < p."""
    if not (0 < c.a < params.p and 0 <= c.b < params.p):
        raise InvalidRangeError("ciphertext component out of range")


def decrypt(keypair: KeyPair, c: Ciphertext, rng: Optional[RandomSource] = None, blind: bool = True) -> int:
    if not isinstance(keypair, PrivateKeyPair):
        raise MissingPrivateKeyError()
    p = keypair.params.p
    check_ciphertext(keypair.params, c)

    if not blind:
        s = pow(c.a, keypair.x, p)
        return (pow(s, -1, p) * c.b) % p

    # m = y^r * (g^r * a)^-x * b = b * a^-x
    r = uniform_in_range(2, p - 1, rng)
    a_blind = (pow(keypair.params.g, r, p) * c.a) % p
    ax = pow(a_blind, keypair.x, p)
    plaintext_blind = (pow(ax, -1, p) * c.b) % p
    return (pow(keypair.y, r, p) * plaintext_blind) % p


def multiply(params: DomainParameters, c1: Ciphertext, c2: Ciphertext) -> Ciphertext:
    return Ciphertext(a=(c1.a * c2.a) % params.p, b=(c1.b * c2.b) % params.p)


def multiply_plain(params: DomainParameters, c: Ciphertext, m: int) -> Ciphertext:
    if not 0 <= m < params.p:
        raise PlaintextOutOfRangeError("message out of range")
    return Ciphertext(a=c.a, b=(c.b * m) % params.p)


def rerandomize(keypair: KeyPair, c: Ciphertext, rng: Optional[RandomSource] = None) -> Ciphertext:
    """Same plaintext, unlinkable ciphertext (multiplies by a fresh encryption of 1)."""
    return multiply(keypair.params, c, encrypt(keypair, 1, rng=rng))
