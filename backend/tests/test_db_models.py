import pytest
from sqlalchemy import select

from elgamal_api.crypto.elgamal import PrivateKeyPair, PublicKeyPair, encrypt, from_parameters
from elgamal_api.db import (
    fetch_ciphertexts,
    keypairs_table,
    load_keypair,
    record_ciphertext,
    store_keypair,
)


@pytest.mark.anyio
async def test_store_and_load_keypair(engine, vector_256):
    eg, v = vector_256
    meta = await store_keypair(engine, eg, key_id="vector-256")

    assert meta["key_id"] == "vector-256"
    assert meta["prime_bits"] == 256
    assert meta["has_private_key"] is True

    loaded = await load_keypair(engine, "vector-256")
    assert isinstance(loaded, PrivateKeyPair)
    assert loaded == eg

    async with engine.connect() as conn:
        row = (
            await conn.execute(select(keypairs_table).where(keypairs_table.c.key_id == "vector-256"))
        ).mappings().first()
    assert row["p"] == format(v["p"], "x"), "BigInt fields are stored as hex"


@pytest.mark.anyio
async def test_public_only_keypair_is_stored_without_private_key(engine, vector_256):
    _, v = vector_256
    public = from_parameters(v["p"], v["g"], v["y"])
    meta = await store_keypair(engine, public)

    assert meta["key_id"].startswith("key-")
    assert meta["has_private_key"] is False
    loaded = await load_keypair(engine, meta["key_id"])
    assert isinstance(loaded, PublicKeyPair)


@pytest.mark.anyio
async def test_duplicate_key_id_is_rejected(engine, vector_256):
    eg, _ = vector_256
    await store_keypair(engine, eg, key_id="dup")
    with pytest.raises(ValueError):
        await store_keypair(engine, eg, key_id="dup")


@pytest.mark.anyio
async def test_unknown_key_loads_as_none(engine):
    assert await load_keypair(engine, "missing") is None


@pytest.mark.anyio
async def test_ciphertexts_are_stored_per_key_and_label(engine, vector_256):
    eg, _ = vector_256
    await store_keypair(engine, eg, key_id="k1")

    c1, c2, c3 = encrypt(eg, 2), encrypt(eg, 3), encrypt(eg, 5)
    await record_ciphertext(engine, key_id="k1", label="tally", ciphertext=c1)
    await record_ciphertext(engine, key_id="k1", label="tally", ciphertext=c2)
    await record_ciphertext(engine, key_id="k1", label="other", ciphertext=c3)

    assert await fetch_ciphertexts(engine, key_id="k1", label="tally") == [c1, c2]
    assert await fetch_ciphertexts(engine, key_id="k1", label="other") == [c3]


@pytest.mark.anyio
async def test_ciphertext_for_unknown_key_is_rejected(engine, vector_256):
    eg, _ = vector_256
    with pytest.raises(ValueError):
        await record_ciphertext(engine, key_id="nope", label="tally", ciphertext=encrypt(eg, 1))
