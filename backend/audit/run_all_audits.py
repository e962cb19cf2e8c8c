"""Run every audit against the key store and write a consolidated report."""

import asyncio
import json
import sys
from datetime import datetime, timezone

from audit.check_ciphertexts import check as check_ciphertexts
from audit.check_key_params import check as check_key_params


ASYNC_CHECKS = [
    check_key_params,
    check_ciphertexts,
]


async def run_async_checks() -> list[dict]:
    results = []
    for fn in ASYNC_CHECKS:
        results.append(await fn())
    return results


def main():
    print("=" * 60)
    print("  AUDIT - ElGamal key store")
    print(f"  {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M:%S UTC')}")
    print("=" * 60)
    print()

    all_results = asyncio.run(run_async_checks())

    passed = 0
    failed = 0
    for r in all_results:
        name = r["check"]
        violations = r.get("violations", [])
        if r["passed"]:
            passed += 1
            print(f"  [ok]   {name}")
        else:
            failed += 1
            print(f"  [fail] {name} ({len(violations)} violation(s))")
            for v in violations:
                print(f"      ! {json.dumps(v, ensure_ascii=False)}")

    print()
    print("-" * 60)
    total = passed + failed
    print(f"  Result: {passed}/{total} checks passed")

    report = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": {"total": total, "passed": passed, "failed": failed},
        "checks": all_results,
    }
    report_path = "audit_report.json"
    with open(report_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False, default=str)
    print(f"\n  JSON report written to {report_path}")
    print("=" * 60)

    sys.exit(0 if failed == 0 else 1)


if __name__ == "__main__":
    main()
