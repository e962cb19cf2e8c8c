"""Check stored ciphertexts: components in range, no reused ephemeral key."""

import asyncio
import sys
from collections import defaultdict

from sqlalchemy import select

from elgamal_api.crypto.codec import hex_to_int
from elgamal_api.db import ciphertexts_table, get_engine, init_db, keypairs_table


async def check() -> dict:
    engine = get_engine()
    await init_db(engine)

    async with engine.connect() as conn:
        moduli = {
            row["key_id"]: hex_to_int(row["p"])
            for row in (await conn.execute(select(keypairs_table.c.key_id, keypairs_table.c.p))).mappings()
        }
        rows = (
            await conn.execute(
                select(
                    ciphertexts_table.c.id,
                    ciphertexts_table.c.key_id,
                    ciphertexts_table.c.a,
                    ciphertexts_table.c.b,
                )
            )
        ).mappings().all()

    violations = []
    seen = defaultdict(dict)
    for row in rows:
        p = moduli[row["key_id"]]
        a, b = hex_to_int(row["a"]), hex_to_int(row["b"])
        if not (1 < a < p and 0 <= b < p):
            violations.append({"ciphertext_id": row["id"], "reason": "component out of range"})
            continue
        # equal a under one key means the same ephemeral k was used twice
        first = seen[row["key_id"]].setdefault(a, row["id"])
        if first != row["id"]:
            violations.append({"ciphertext_id": row["id"], "reason": f"ephemeral key reused (see #{first})"})

    return {
        "check": "ciphertexts_well_formed",
        "total_ciphertexts": len(rows),
        "violations": violations,
        "passed": len(violations) == 0,
    }


if __name__ == "__main__":
    result = asyncio.run(check())
    status = "PASS" if result["passed"] else "FAIL"
    print(f"{status} - Ciphertexts: {result['total_ciphertexts']} stored, {len(result['violations'])} violation(s)")
    for v in result["violations"]:
        print(f"  ! ciphertext #{v['ciphertext_id']}: {v['reason']}")
    sys.exit(0 if result["passed"] else 1)
