"""Shared pytest fixtures for the ElGamal test suite."""

import hashlib
import os
import tempfile

# Must be set before elgamal_api.db resolves an engine; CI may point it at Postgres.
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.mkdtemp(prefix='elgamal-tests-'), 'test.db')}",
)

import pytest
from httpx import ASGITransport, AsyncClient

from elgamal_api.crypto.elgamal import from_parameters
from elgamal_api.crypto.errors import RandomnessUnavailableError
from elgamal_api.db import get_engine, init_db, reset_db
from elgamal_api.main import app

# Published 256/512-bit vectors (hex). Encrypting m with k under (p, g, y) gives (a, b).
VECTORS = {
    "256": {
        "p": "ba4caeaaed8cbe952afd2126c63eb3b345d65c2a0a73d2a3ad4138b6d09bd933",
        "g": "05",
        "y": "60d063600eced7c7c55146020e7a31c4476e9793beaed420fec9e77604cae4ef",
        "x": "1d391ba2ee3c37fe1ba175a69b2c73a11238ad77675932",
        "k": "f5893c5bab4131264066f57ab3d8ad89e391a0b68a68a1",
        "m": "48656c6c6f207468657265",
        "a": "32bfd5f487966cea9e9356715788c491ec515e4ed48b58f0f00971e93aaa5ec7",
        "b": "7be8fbff317c93e82fcef9bd515284ba506603fea25d01c0cb874a31f315ee68",
    },
    "512": {
        "p": "f1b18ae9f7b4e08fda9a04832f4e919d89462fd31bf12f92791a93519f75076d6ce3942689cdff2f344caff0f82d01864f69f3aecf566c774cbacf728b81a227",
        "g": "07",
        "y": "688628c676e4f05d630e1be39d0066178ca7aa83836b645de5add359b4825a12b02ef4252e4e6fa9bec1db0be90f6d7c8629cabb6e531f472b2664868156e20c",
        "x": "14e60b1bdfd33436c0da8a22fdc14a2ccdbbed0627ce68",
        "k": "38dbf14e1f319bda9bab33eeeadcaf6b2ea5250577ace7",
        "m": "48656c6c6f207468657265",
        "a": "290f8530c2cc312ec46178724f196f308ad4c523ceabb001facb0506bfed676083fe0f27ac688b5c749ab3cb8a80cd6f7094dba421fb19442f5a413e06a9772b",
        "b": "1d69aaad1dc50493fb1b8e8721d621d683f3bf1321be21bc4a43e11b40c9d4d9c80de3aac2ab60d31782b16b61112e68220889d53c4c3136ee6f6ce61f8a23a0",
    },
}


class ShakeRandom:
    """Deterministic RandomSource: a SHAKE-256 stream keyed by a seed."""

    def __init__(self, seed: bytes = b"elgamal-tests"):
        self._seed = seed
        self._counter = 0
        self.bytes_read = 0

    def fill(self, n: int) -> bytes:
        block = hashlib.shake_256(self._seed + self._counter.to_bytes(8, "big")).digest(n)
        self._counter += 1
        self.bytes_read += n
        return block


class ScriptedRandom:
    """Replays fixed byte strings, one per fill() call."""

    def __init__(self, *chunks: bytes):
        self._chunks = list(chunks)

    def fill(self, n: int) -> bytes:
        chunk = self._chunks.pop(0)
        assert len(chunk) == n, f"scripted chunk has {len(chunk)} bytes, caller wants {n}"
        return chunk


class BrokenRandom:
    def fill(self, n: int) -> bytes:
        raise RandomnessUnavailableError("entropy source offline")


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def shake_rng():
    return ShakeRandom()


@pytest.fixture(params=sorted(VECTORS))
def vector(request):
    """(keypair, vector dict with ints) for each published vector."""
    raw = VECTORS[request.param]
    values = {name: int(value, 16) for name, value in raw.items()}
    keypair = from_parameters(values["p"], values["g"], values["y"], values["x"])
    return keypair, values


@pytest.fixture()
def vector_256():
    values = {name: int(value, 16) for name, value in VECTORS["256"].items()}
    return from_parameters(values["p"], values["g"], values["y"], values["x"]), values


@pytest.fixture()
async def engine():
    """Provide a ready-to-use async engine with clean tables."""
    eng = get_engine()
    await init_db(eng)
    await reset_db(eng)
    return eng


@pytest.fixture()
async def client(engine):
    """Provide an async HTTP test client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
