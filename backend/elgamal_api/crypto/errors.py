class ElGamalError(Exception):
    """Base class for every error raised by the ElGamal engine."""


class MissingPrivateKeyError(ElGamalError):
    def __init__(self, message: str = "no private key available for decryption"):
        super().__init__(message)


class InvalidRangeError(ElGamalError, ValueError):
    """A bounded draw was requested with min >= max, or a value lies outside its range."""


class RandomnessUnavailableError(ElGamalError, RuntimeError):
    """The operating system CSRNG could not deliver the requested bytes."""


class PlaintextOutOfRangeError(ElGamalError, ValueError):
    """Plaintext is negative or not smaller than the modulus p."""
