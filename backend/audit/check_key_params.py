"""Re-validate the domain parameters and keys of every stored keypair."""

import asyncio
import sys

from elgamal_api.crypto.codec import keypair_from_dict
from elgamal_api.crypto.elgamal import validate_keypair
from elgamal_api.db import get_engine, init_db, list_keypairs


async def check() -> dict:
    engine = get_engine()
    await init_db(engine)

    rows = await list_keypairs(engine)

    violations = []
    for row in rows:
        keypair = keypair_from_dict(row)
        for problem in validate_keypair(keypair):
            violations.append({"key_id": row["key_id"], "reason": problem})

    return {
        "check": "key_params_valid",
        "total_keys": len(rows),
        "violations": violations,
        "passed": len(violations) == 0,
    }


if __name__ == "__main__":
    result = asyncio.run(check())
    status = "PASS" if result["passed"] else "FAIL"
    print(f"{status} - Key parameters: {result['total_keys']} key(s), {len(result['violations'])} violation(s)")
    for v in result["violations"]:
        print(f"  ! {v['key_id']}: {v['reason']}")
    sys.exit(0 if result["passed"] else 1)
