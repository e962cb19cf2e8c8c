import logging
import os


# ── Database ───────────────────────────────────────
DEFAULT_DATABASE_URL = "postgresql+asyncpg://app_user:app_pass@db:5432/elgamal_db"

# ── ElGamal ────────────────────────────────────────
DEFAULT_PRIME_BITS = int(os.getenv("ELGAMAL_PRIME_BITS", "2048"))
MAX_PRIME_BITS = int(os.getenv("ELGAMAL_MAX_PRIME_BITS", "4096"))
PRIMALITY_ROUNDS = int(os.getenv("ELGAMAL_PRIMALITY_ROUNDS", "40"))

# ── Logging ────────────────────────────────────────
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the package logger (idempotent)."""
    logger = logging.getLogger("elgamal_api")
    logger.setLevel((level or LOG_LEVEL).upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
