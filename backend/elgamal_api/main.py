import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncEngine

from elgamal_api.config import DEFAULT_PRIME_BITS, MAX_PRIME_BITS, configure_logging
from elgamal_api.crypto.codec import (
    ciphertext_from_dict,
    ciphertext_to_dict,
    decode_text,
    encode_plaintext,
    int_to_hex,
    keypair_from_dict,
    keypair_to_dict,
)
from elgamal_api.crypto.elgamal import (
    MIN_PRIME_BITS,
    Ciphertext,
    KeyPair,
    check_ciphertext,
    decrypt,
    encrypt,
    generate_keypair,
    multiply,
    validate_keypair,
)
from elgamal_api.crypto.errors import (
    MissingPrivateKeyError,
    RandomnessUnavailableError,
)
from elgamal_api.db import (
    check_db_connection,
    fetch_ciphertexts,
    get_engine,
    init_db,
    load_keypair,
    record_ciphertext,
    store_keypair,
)

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = get_engine()
    await init_db(engine)
    yield


app = FastAPI(
    title="ElGamal Homomorphic Encryption API",
    version="0.1.0",
    lifespan=lifespan,
)

HEX_PATTERN = "^(0x)?[0-9a-fA-F]+$"


class KeyGenRequest(BaseModel):
    prime_bits: int = Field(default=DEFAULT_PRIME_BITS, ge=MIN_PRIME_BITS, le=MAX_PRIME_BITS)


class KeyImportRequest(BaseModel):
    p: str = Field(min_length=1)
    g: str = Field(min_length=1)
    y: str = Field(min_length=1)
    x: Optional[str] = Field(default=None, min_length=1)
    base: int = Field(default=16, description="16 (hex) or 10 (decimal)")
    validate_params: bool = Field(default=False, alias="validate")
    key_id: Optional[str] = Field(default=None, min_length=1, max_length=64)


class CiphertextModel(BaseModel):
    a: str = Field(min_length=1, pattern=HEX_PATTERN)
    b: str = Field(min_length=1, pattern=HEX_PATTERN)


class EncryptRequest(BaseModel):
    plaintext: int | str = Field(description="Non-negative integer, or UTF-8 text")


class DecryptRequest(CiphertextModel):
    as_text: bool = False


class MultiplyRequest(BaseModel):
    ciphertexts: list[CiphertextModel] = Field(min_length=2)


class StoreCiphertextRequest(CiphertextModel):
    key_id: str = Field(min_length=1, max_length=64)
    label: str = Field(min_length=1, max_length=64)


async def verify_database(engine: AsyncEngine = Depends(get_engine)) -> dict:
    try:
        await check_db_connection(engine)
        return {"db": "ok"}
    except Exception as exc:  # pragma: no cover - handled in tests via status code
        raise HTTPException(status_code=503, detail="database unavailable") from exc


async def get_keypair_or_404(key_id: str, engine: AsyncEngine = Depends(get_engine)) -> KeyPair:
    keypair = await load_keypair(engine, key_id)
    if keypair is None:
        raise HTTPException(status_code=404, detail=f"unknown key_id: {key_id}")
    return keypair


def public_view(key_id: str, keypair: KeyPair) -> dict:
    return {
        "key_id": key_id,
        "prime_bits": keypair.params.p.bit_length(),
        **keypair_to_dict(keypair),
    }


def parse_ciphertext(model: CiphertextModel) -> Ciphertext:
    return ciphertext_from_dict({"a": model.a, "b": model.b})


@app.get("/health")
async def health(database=Depends(verify_database)) -> dict:
    """Simple liveness/readiness probe that also checks database connectivity."""
    return {"status": "ok", "database": database["db"]}


# ── Keys ─────────────────────────────────────────────

@app.post("/keys", status_code=status.HTTP_201_CREATED)
async def create_key(payload: KeyGenRequest, engine: AsyncEngine = Depends(get_engine)):
    """Generate a fresh safe-prime keypair and store it."""
    try:
        keypair = await run_in_threadpool(generate_keypair, payload.prime_bits)
    except RandomnessUnavailableError as exc:
        logger.error("key generation aborted: %s", exc)
        raise HTTPException(status_code=503, detail="randomness unavailable") from exc
    meta = await store_keypair(engine, keypair)
    logger.info("stored generated key %s (%d bits)", meta["key_id"], meta["prime_bits"])
    return public_view(meta["key_id"], keypair)


@app.post("/keys/import", status_code=status.HTTP_201_CREATED)
async def import_key(payload: KeyImportRequest, engine: AsyncEngine = Depends(get_engine)):
    """Store externally generated parameters, optionally re-validating them first."""
    if payload.base not in (10, 16):
        raise HTTPException(status_code=400, detail="base must be 10 or 16")
    try:
        keypair = keypair_from_dict(payload.model_dump(include={"p", "g", "y", "x"}), base=payload.base)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if payload.validate_params:
        problems = await run_in_threadpool(validate_keypair, keypair)
        if problems:
            raise HTTPException(status_code=400, detail="; ".join(problems))

    try:
        meta = await store_keypair(engine, keypair, key_id=payload.key_id)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("imported key %s (private part: %s)", meta["key_id"], meta["has_private_key"])
    return public_view(meta["key_id"], keypair)


@app.get("/keys/{key_id}")
async def get_key(key_id: str, keypair: KeyPair = Depends(get_keypair_or_404)):
    """Return the public parameters of a stored key (never the private key)."""
    return public_view(key_id, keypair)


@app.post("/keys/{key_id}/encrypt")
async def encrypt_value(payload: EncryptRequest, key_id: str, keypair: KeyPair = Depends(get_keypair_or_404)):
    try:
        m = encode_plaintext(payload.plaintext)
        ciphertext = encrypt(keypair, m)
    except RandomnessUnavailableError as exc:
        logger.error("encryption aborted: %s", exc)
        raise HTTPException(status_code=503, detail="randomness unavailable") from exc
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"key_id": key_id, **ciphertext_to_dict(ciphertext)}


@app.post("/keys/{key_id}/decrypt")
async def decrypt_value(payload: DecryptRequest, key_id: str, keypair: KeyPair = Depends(get_keypair_or_404)):
    try:
        m = decrypt(keypair, parse_ciphertext(payload))
    except MissingPrivateKeyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RandomnessUnavailableError as exc:
        logger.error("decryption aborted: %s", exc)
        raise HTTPException(status_code=503, detail="randomness unavailable") from exc
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    body = {"key_id": key_id, "plaintext": int_to_hex(m)}
    if payload.as_text:
        try:
            body["text"] = decode_text(m)
        except UnicodeDecodeError as e:
            raise HTTPException(status_code=422, detail="plaintext is not valid UTF-8") from e
    return body


@app.post("/keys/{key_id}/multiply")
async def multiply_ciphertexts(payload: MultiplyRequest, key_id: str, keypair: KeyPair = Depends(get_keypair_or_404)):
    """Homomorphic product: decrypts to the product of the plaintexts mod p."""
    ciphertexts = [parse_ciphertext(c) for c in payload.ciphertexts]
    try:
        for c in ciphertexts:
            check_ciphertext(keypair.params, c)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    product = ciphertexts[0]
    for c in ciphertexts[1:]:
        product = multiply(keypair.params, product, c)
    return {"key_id": key_id, "count": len(ciphertexts), **ciphertext_to_dict(product)}


# ── Stored ciphertexts ───────────────────────────────

@app.post("/ciphertexts", status_code=status.HTTP_201_CREATED)
async def store_ciphertext(payload: StoreCiphertextRequest, engine: AsyncEngine = Depends(get_engine)):
    """Store a ciphertext under a key/label pair for later aggregation."""
    keypair = await load_keypair(engine, payload.key_id)
    if keypair is None:
        raise HTTPException(status_code=400, detail=f"unknown key_id: {payload.key_id}")
    ciphertext = parse_ciphertext(payload)
    try:
        check_ciphertext(keypair.params, ciphertext)
        meta = await record_ciphertext(
            engine,
            key_id=payload.key_id,
            label=payload.label,
            ciphertext=ciphertext,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "status": "stored",
        "ciphertext_id": meta["ciphertext_id"],
        "key_id": meta["key_id"],
        "label": meta["label"],
    }


@app.get("/ciphertexts/aggregate")
async def aggregate_ciphertexts(
    key_id: str = Query(..., min_length=1, max_length=64),
    label: str = Query(..., min_length=1, max_length=64),
    engine: AsyncEngine = Depends(get_engine),
):
    """Homomorphic product of every ciphertext stored for a key/label pair."""
    keypair = await get_keypair_or_404(key_id, engine)
    rows = await fetch_ciphertexts(engine, key_id=key_id, label=label)

    if not rows:
        return {
            "key_id": key_id,
            "label": label,
            "count": 0,
            "aggregate": None,
            "product": None,
        }

    agg = rows[0]
    for c in rows[1:]:
        agg = multiply(keypair.params, agg, c)

    try:
        product = int_to_hex(decrypt(keypair, agg))
    except MissingPrivateKeyError:
        product = None
    except RandomnessUnavailableError as exc:
        logger.error("aggregate decryption aborted: %s", exc)
        raise HTTPException(status_code=503, detail="randomness unavailable") from exc
    except ValueError as e:
        # rows stored without range checks; audit/check_ciphertexts.py reports them
        logger.warning("aggregate for %s/%s is not decryptable: %s", key_id, label, e)
        raise HTTPException(status_code=422, detail=f"stored ciphertexts are invalid: {e}")

    return {
        "key_id": key_id,
        "label": label,
        "count": len(rows),
        "aggregate": ciphertext_to_dict(agg),
        "product": product,
    }


def run() -> None:
    import uvicorn

    uvicorn.run("elgamal_api.main:app", host="0.0.0.0", port=8000)
