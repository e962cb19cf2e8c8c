import pytest

from conftest import ScriptedRandom, ShakeRandom
from elgamal_api.crypto.primes import is_probable_prime, probable_prime, safe_prime


def is_prime_exhaustive(n: int) -> bool:
    if n < 2:
        return False
    if n % 2 == 0:
        return n == 2
    d = 3
    while d * d <= n:
        if n % d == 0:
            return False
        d += 2
    return True


def test_is_probable_prime_matches_exhaustive_check_below_70000():
    # covers the trial-division-only region and the first Miller-Rabin values
    for n in range(-3, 70_000):
        assert is_probable_prime(n) == is_prime_exhaustive(n), n


@pytest.mark.parametrize(
    "n",
    [561, 41041, 825265, 321197185, 3215031751, 3825123056546413051, 2147483647 * 2147483649],
)
def test_is_probable_prime_rejects_carmichael_numbers_and_pseudoprimes(n):
    assert not is_probable_prime(n)


@pytest.mark.parametrize("n", [2**61 - 1, 2**89 - 1, 2**127 - 1, 2**521 - 1])
def test_is_probable_prime_accepts_mersenne_primes(n):
    assert is_probable_prime(n)


@pytest.mark.parametrize("bits", [2, 3, 8, 16, 24, 32])
def test_probable_prime_small_bits_is_exactly_prime(bits):
    for _ in range(10):
        p = probable_prime(bits)
        assert p.bit_length() == bits
        assert is_prime_exhaustive(p)


@pytest.mark.parametrize("bits", [64, 128, 256])
def test_probable_prime_large_bits(bits):
    p = probable_prime(bits)
    assert p.bit_length() == bits
    assert p % 2 == 1
    assert pow(2, p - 1, p) == 1


def test_probable_prime_restarts_when_sweep_overflows_bit_length():
    # 255 is composite, 257 has 9 bits -> fresh start at 0x80|1 = 129 -> 131
    rng = ScriptedRandom(b"\xff", b"\x80")
    assert probable_prime(8, rng) == 131


def test_probable_prime_rejects_tiny_bit_sizes():
    with pytest.raises(ValueError):
        probable_prime(1)


@pytest.mark.parametrize("bits", [16, 20, 24, 28, 32])
def test_safe_prime_small_bits_verified_exhaustively(bits):
    p, q = safe_prime(bits)
    assert p.bit_length() == bits
    assert q.bit_length() == bits - 1
    assert p == 2 * q + 1
    assert is_prime_exhaustive(p)
    assert is_prime_exhaustive(q)


def test_safe_prime_is_reproducible_with_injected_source():
    assert safe_prime(48, ShakeRandom(b"a")) == safe_prime(48, ShakeRandom(b"a"))


def test_safe_prime_rejects_tiny_bit_sizes():
    with pytest.raises(ValueError):
        safe_prime(2)
