import os
import secrets

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    select,
    text,
)
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from elgamal_api.config import DEFAULT_DATABASE_URL
from elgamal_api.crypto.codec import (
    ciphertext_from_dict,
    ciphertext_to_dict,
    keypair_from_dict,
    keypair_to_dict,
)
from elgamal_api.crypto.elgamal import Ciphertext, KeyPair


def get_database_url() -> str:
    """
    Retrieve the database URL from environment.
    Defaults to the docker-compose network host.
    """
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def get_engine() -> AsyncEngine:
    """Return a new async engine using NullPool to avoid pool/loop issues."""
    return create_async_engine(
        get_database_url(), pool_pre_ping=True, future=True, poolclass=NullPool
    )


async def check_db_connection(engine: AsyncEngine) -> bool:
    """
    Perform a lightweight health probe against the database.
    Raises on failure; returns True on success.
    """
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


metadata = MetaData()

# BigInt columns hold lowercase hex strings (see crypto.codec)
keypairs_table = Table(
    "keypairs",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("key_id", String(64), nullable=False, unique=True),
    Column("p", String, nullable=False),
    Column("g", String, nullable=False),
    Column("y", String, nullable=False),
    Column("x", String, nullable=True),
    Column("prime_bits", Integer, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    ),
)

ciphertexts_table = Table(
    "ciphertexts",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("key_id", String(64), ForeignKey("keypairs.key_id"), nullable=False),
    Column("label", String(64), nullable=False),
    Column("a", String, nullable=False),
    Column("b", String, nullable=False),
    Column(
        "created_at",
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        nullable=False,
    ),
)


async def init_db(engine: AsyncEngine) -> None:
    """Create tables if they do not exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def reset_db(engine: AsyncEngine) -> None:
    """Delete all rows between tests to keep state isolated."""
    async with engine.begin() as conn:
        await conn.execute(delete(ciphertexts_table))
        await conn.execute(delete(keypairs_table))


def new_key_id() -> str:
    return f"key-{secrets.token_hex(8)}"


async def store_keypair(engine: AsyncEngine, keypair: KeyPair, *, key_id: str | None = None) -> dict:
    """Persist a keypair (private part included when present). Returns its metadata."""
    if key_id is None:
        key_id = new_key_id()
    fields = keypair_to_dict(keypair, include_private=True)
    prime_bits = keypair.params.p.bit_length()

    async with engine.begin() as conn:
        existing = await conn.execute(
            select(keypairs_table.c.id).where(keypairs_table.c.key_id == key_id)
        )
        if existing.first() is not None:
            raise ValueError(f"key_id already exists: {key_id}")
        result = await conn.execute(
            keypairs_table.insert()
            .values(
                key_id=key_id,
                p=fields["p"],
                g=fields["g"],
                y=fields["y"],
                x=fields.get("x"),
                prime_bits=prime_bits,
            )
            .returning(keypairs_table.c.id, keypairs_table.c.created_at)
        )
        row = result.mappings().first()

    return {
        "id": row["id"],
        "key_id": key_id,
        "prime_bits": prime_bits,
        "has_private_key": "x" in fields,
        "created_at": row["created_at"],
    }


async def load_keypair(engine: AsyncEngine, key_id: str) -> KeyPair | None:
    """Load a keypair by key_id. Returns None when unknown."""
    async with engine.connect() as conn:
        row = (
            await conn.execute(
                select(
                    keypairs_table.c.p,
                    keypairs_table.c.g,
                    keypairs_table.c.y,
                    keypairs_table.c.x,
                ).where(keypairs_table.c.key_id == key_id)
            )
        ).mappings().first()
    if row is None:
        return None
    return keypair_from_dict(dict(row))


async def list_keypairs(engine: AsyncEngine) -> list[dict]:
    """List stored keys (key_id, prime_bits, created_at) and their public parameters."""
    async with engine.connect() as conn:
        rows = (
            await conn.execute(
                select(
                    keypairs_table.c.key_id,
                    keypairs_table.c.prime_bits,
                    keypairs_table.c.p,
                    keypairs_table.c.g,
                    keypairs_table.c.y,
                    keypairs_table.c.x,
                    keypairs_table.c.created_at,
                ).order_by(keypairs_table.c.id)
            )
        ).mappings().all()
    return [dict(r) for r in rows]


async def record_ciphertext(engine: AsyncEngine, *, key_id: str, label: str, ciphertext: Ciphertext) -> dict:
    """Store a ciphertext under a known key. Raises ValueError for an unknown key_id."""
    fields = ciphertext_to_dict(ciphertext)
    async with engine.begin() as conn:
        key_check = await conn.execute(
            select(keypairs_table.c.id).where(keypairs_table.c.key_id == key_id)
        )
        if key_check.first() is None:
            raise ValueError(f"unknown key_id: {key_id}")

        result = await conn.execute(
            ciphertexts_table.insert()
            .values(key_id=key_id, label=label, a=fields["a"], b=fields["b"])
            .returning(ciphertexts_table.c.id, ciphertexts_table.c.created_at)
        )
        row = result.mappings().first()

    return {
        "ciphertext_id": row["id"],
        "key_id": key_id,
        "label": label,
        "created_at": row["created_at"],
    }


async def fetch_ciphertexts(engine: AsyncEngine, *, key_id: str, label: str) -> list[Ciphertext]:
    """Retrieve the ciphertexts stored for a key/label pair, oldest first."""
    async with engine.connect() as conn:
        rows = (
            await conn.execute(
                select(ciphertexts_table.c.a, ciphertexts_table.c.b)
                .where(
                    ciphertexts_table.c.key_id == key_id,
                    ciphertexts_table.c.label == label,
                )
                .order_by(ciphertexts_table.c.id)
            )
        ).mappings().all()
    return [ciphertext_from_dict(dict(r)) for r in rows]
