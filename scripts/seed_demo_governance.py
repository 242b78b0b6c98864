#!/usr/bin/env python3
"""Drive a running govledger backend through the approval flows.

Usage:
    # Start the backend first (bundled genesis, on-chain mode):
    uvicorn govledger.web.app:create_app --factory --port 8080

    # Seed demo proposals:
    python3 scripts/seed_demo_governance.py

    # Against a different host:
    python3 scripts/seed_demo_governance.py --base-url http://localhost:9000

Every request goes through the public API, so governors, confirmations and
executions are recorded exactly as a real client would produce them. State
is in memory; restart the server to reset it.

Data created:
    - An approved proposal adding a fourth governor
    - A pending proposal that is confirmed, then revoked
    - An approved proposal restoring the original governor set
    - An approved fee_bps change on the genesis fee_registry contract
"""

from __future__ import annotations

import argparse
import sys

import httpx

from govledger.chain.abi import encode_call

DEFAULT_BASE_URL = "http://localhost:8080"

# Governors from config/genesis.yml
GOVERNORS = [
    "0x1111111111111111111111111111111111111111",
    "0x2222222222222222222222222222222222222222",
    "0x3333333333333333333333333333333333333333",
]
NEWCOMER = "0x4444444444444444444444444444444444444444"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def api(
    client: httpx.Client,
    method: str,
    path: str,
    *,
    json: dict | None = None,
    params: dict | None = None,
    governor: str | None = None,
) -> dict | list | None:
    """Make an API call and return parsed JSON, or None on failure."""
    headers = {}
    if governor:
        headers["X-Governor"] = governor

    resp = client.request(method, path, json=json, params=params, headers=headers)
    if resp.status_code >= 400:
        print(f"  FAILED {method} {path} -> {resp.status_code}: {resp.text[:200]}")
        return None
    return resp.json()


def section(title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  {title}")
    print(f"{'='*60}")


def set_governor_data(address: str, power: int) -> str:
    """Hex call data for ``setGovernor(address,uint256)``."""
    return "0x" + encode_call("setGovernor(address,uint256)", address, power).hex()


def propose(client: httpx.Client, destination: str, data: str, governor: str) -> int | None:
    result = api(
        client, "POST", "/api/governance/transactions",
        json={"destination": destination, "data": data},
        governor=governor,
    )
    if not result:
        return None
    print(f"  Proposed #{result['transaction_id']} by {governor[:10]}... ({result['votes']} votes)")
    return result["transaction_id"]


def confirm(client: httpx.Client, transaction_id: int, governor: str) -> None:
    result = api(
        client, "POST", f"/api/governance/transactions/{transaction_id}/confirm",
        governor=governor,
    )
    if result:
        state = "executed" if result["executed"] else "pending"
        print(f"  Confirmed #{transaction_id} by {governor[:10]}... ({result['votes']} votes, {state})")


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------


def seed_add_governor(client: httpx.Client, governance: str) -> None:
    section("Add a governor")
    tx_id = propose(client, governance, set_governor_data(NEWCOMER, 1), GOVERNORS[0])
    if tx_id is not None:
        confirm(client, tx_id, GOVERNORS[1])
    info = api(client, "GET", "/api/governance")
    if info:
        print(f"  Total power {info['total_power']}, required {info['required']}")


def seed_revoked_proposal(client: httpx.Client, governance: str) -> None:
    section("Confirm then revoke")
    tx_id = propose(client, governance, set_governor_data(GOVERNORS[2], 5), GOVERNORS[2])
    if tx_id is None:
        return
    confirm(client, tx_id, GOVERNORS[1])
    result = api(
        client, "POST", f"/api/governance/transactions/{tx_id}/revoke",
        governor=GOVERNORS[1],
    )
    if result:
        print(f"  Revoked #{tx_id} by {GOVERNORS[1][:10]}... ({result['votes']} votes)")


def seed_remove_governor(client: httpx.Client, governance: str) -> None:
    section("Remove the added governor")
    tx_id = propose(client, governance, set_governor_data(NEWCOMER, 0), NEWCOMER)
    if tx_id is None:
        return
    for governor in GOVERNORS[:2]:
        confirm(client, tx_id, governor)


def seed_fee_update(client: httpx.Client) -> None:
    section("Update a governed parameter")
    contracts = api(client, "GET", "/api/governance/contracts") or []
    registry = next((c for c in contracts if c["label"] == "fee_registry"), None)
    if registry is None:
        print("  No fee_registry contract in the genesis, skipping")
        return
    print(f"  fee_registry at {registry['address']}: {registry['parameters']}")
    data = "0x" + encode_call("setParameter(string,uint256)", "fee_bps", 25).hex()
    tx_id = propose(client, registry["address"], data, GOVERNORS[0])
    if tx_id is not None:
        confirm(client, tx_id, GOVERNORS[2])


def verify_data(client: httpx.Client) -> None:
    section("Verification")
    governors = api(client, "GET", "/api/governance/governors") or []
    for governor in governors:
        print(f"  {governor['address']}  power {governor['power']}")
    pending = api(client, "GET", "/api/governance/transactions", params={"pending_only": True}) or []
    events = api(client, "GET", "/api/governance/events") or []
    print(f"  Pending transactions: {len(pending)}")
    print(f"  Journal events:       {len(events)}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Seed demo proposals into a running govledger backend"
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Backend base URL (default: {DEFAULT_BASE_URL})",
    )
    args = parser.parse_args()

    print("govledger demo seeder")
    print(f"Target: {args.base_url}")

    with httpx.Client(base_url=args.base_url, timeout=30.0) as client:
        try:
            info = api(client, "GET", "/api/governance")
        except httpx.ConnectError:
            print(f"\nERROR: Cannot connect to {args.base_url}")
            print("Start the backend first:")
            print("  uvicorn govledger.web.app:create_app --factory --port 8080")
            sys.exit(1)

        if not info or info.get("mode") == "offchain":
            print("\nERROR: Backend does not expose on-chain approvals")
            sys.exit(1)

        governance = info["address"]
        print(f"Governance: {governance} ({info['mode']}, required {info['required']})")

        seed_add_governor(client, governance)
        seed_revoked_proposal(client, governance)
        seed_remove_governor(client, governance)
        seed_fee_update(client)
        verify_data(client)

        section("Done")
        print("  Demo proposals seeded. Restart the backend to reset state.")
        print()


if __name__ == "__main__":
    main()
