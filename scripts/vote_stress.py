"""Concurrent vote storm against a running API, followed by a ledger/counter check.

Signs up N readers, creates one suggestion per round, then fires every
reader's cast_vote (several duplicate attempts each) and a wave of
retracts concurrently.  Afterwards every counter must equal its expected
vote total and /api/v1/metrics must report zero drift.
"""
import argparse
import asyncio
import random
import time
import uuid

import httpx

BASE_URL = "http://localhost:8000"


async def signup_and_login(client: httpx.AsyncClient, base_url: str, tag: str) -> str:
    email = f"stress_{tag}@example.com"
    await client.post(f"{base_url}/api/v1/auth/signup", json={
        "username": f"stress_{tag}", "email": email, "password": "stress-pass",
    })
    resp = await client.post(f"{base_url}/api/v1/auth/login", json={
        "email": email, "password": "stress-pass",
    })
    resp.raise_for_status()
    return resp.json()["access_token"]


async def timed(client: httpx.AsyncClient, method: str, url: str, token: str) -> tuple[int, float]:
    start = time.perf_counter()
    resp = await client.request(method, url, headers={"Authorization": f"Bearer {token}"})
    return resp.status_code, (time.perf_counter() - start) * 1000


async def run_round(client: httpx.AsyncClient, base_url: str, tokens: list[str], dupes: int) -> dict:
    resp = await client.post(
        f"{base_url}/api/v1/suggestions",
        json={"title": f"Stress {uuid.uuid4().hex[:8]}", "description": "vote storm"},
        headers={"Authorization": f"Bearer {tokens[0]}"},
    )
    resp.raise_for_status()
    suggestion_id = resp.json()["id"]
    vote_url = f"{base_url}/api/v1/suggestions/{suggestion_id}/vote"

    casts = [timed(client, "POST", vote_url, t) for t in tokens for _ in range(dupes)]
    random.shuffle(casts)
    cast_results = await asyncio.gather(*casts)

    # Half the voters retract, each twice; the counter must drop once per voter.
    retractors = tokens[: len(tokens) // 2]
    retracts = [timed(client, "DELETE", vote_url, t) for t in retractors for _ in range(2)]
    retract_results = await asyncio.gather(*retracts)

    detail = await client.get(f"{base_url}/api/v1/suggestions/{suggestion_id}")
    expected = len(tokens) - len(retractors)
    return {
        "suggestion_id": suggestion_id,
        "created": sum(1 for code, _ in cast_results if code == 201),
        "already_voted": sum(1 for code, _ in cast_results if code == 400),
        "retract_ok": sum(1 for code, _ in retract_results if code == 200),
        "errors": sum(1 for code, _ in cast_results + retract_results if code >= 500),
        "latencies": [ms for _, ms in cast_results + retract_results],
        "count": detail.json()["upvotes_count"],
        "expected": expected,
    }


async def run_stress(base_url: str, users: int, rounds: int, dupes: int) -> bool:
    print("=" * 80)
    print(f"Vote stress — {users} users x {dupes} attempts, {rounds} rounds")
    print(f"Target: {base_url}")
    print("=" * 80)

    limits = httpx.Limits(max_connections=users * dupes)
    async with httpx.AsyncClient(limits=limits, timeout=30) as client:
        try:
            resp = await client.get(f"{base_url}/health")
            resp.raise_for_status()
        except Exception as e:
            print(f"ERROR: Cannot connect to {base_url} — {e}")
            return False

        run_id = uuid.uuid4().hex[:6]
        tokens = await asyncio.gather(
            *(signup_and_login(client, base_url, f"{run_id}_{i}") for i in range(users))
        )

        ok = True
        print(f"{'Suggestion':>10} {'201':>5} {'400':>5} {'Retr':>5} {'5xx':>4} {'Count':>6} {'Want':>5} {'P95':>9}")
        print("-" * 80)
        for _ in range(rounds):
            r = await run_round(client, base_url, list(tokens), dupes)
            p95 = sorted(r["latencies"])[int(len(r["latencies"]) * 0.95)]
            good = r["count"] == r["expected"] and r["created"] == users and r["errors"] == 0
            ok = ok and good
            print(
                f"{r['suggestion_id']:>10} {r['created']:>5} {r['already_voted']:>5} "
                f"{r['retract_ok']:>5} {r['errors']:>4} {r['count']:>6} {r['expected']:>5} "
                f"{p95:>7.1f}ms {'' if good else '  <-- MISMATCH'}"
            )

        metrics = (await client.get(f"{base_url}/api/v1/metrics")).json()
        print("-" * 80)
        print(f"Drifted suggestions reported by /metrics: {metrics['drifted_suggestions']}")
        ok = ok and metrics["drifted_suggestions"] == 0

    print("\nPASS" if ok else "\nFAIL")
    return ok


def main():
    parser = argparse.ArgumentParser(description="Concurrent upvote stress test")
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    parser.add_argument("-u", "--users", type=int, default=20, help="Concurrent voters")
    parser.add_argument("-r", "--rounds", type=int, default=3, help="Suggestions to hammer")
    parser.add_argument("-d", "--dupes", type=int, default=3, help="Cast attempts per voter")
    args = parser.parse_args()

    ok = asyncio.run(run_stress(args.base_url, args.users, args.rounds, args.dupes))
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
