"""FastAPI router for governance endpoints.

The acting governor of a write request is taken from the ``X-Governor``
header.
"""

from __future__ import annotations

from typing import Any, NoReturn

from fastapi import APIRouter, Header, HTTPException, Request
from pydantic import BaseModel, Field

from govledger.chain.governed import GovernedContract
from govledger.core.errors import (
    AuthorizationError,
    ExternalCallError,
    GovernanceError,
    StateError,
    ThresholdNotMetError,
    TransactionNotFoundError,
)
from govledger.core.types import EventKind, to_address
from govledger.governance.base import GovernanceContract
from govledger.governance.offchain import OffchainGovernance
from govledger.governance.onchain import OnchainGovernance

router = APIRouter()


class CreateTransactionRequest(BaseModel):
    destination: str
    value: int = Field(default=0, ge=0)
    data: str = "0x"


class SignedExecutionRequest(BaseModel):
    nonce: int = Field(ge=0)
    destination: str
    data: str = "0x"
    signatures: list[str] = Field(default_factory=list)


def _from_hex(value: str) -> bytes:
    try:
        return bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid hex value {value!r}")


def _raise_http(exc: Exception) -> NoReturn:
    """Translate a governance failure into an HTTP error."""
    if isinstance(exc, AuthorizationError):
        raise HTTPException(status_code=403, detail=str(exc))
    if isinstance(exc, TransactionNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StateError):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ThresholdNotMetError):
        raise HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ExternalCallError):
        raise HTTPException(status_code=502, detail=str(exc))
    raise HTTPException(status_code=400, detail=str(exc))


def _governance(request: Request) -> GovernanceContract:
    return request.app.state.governance


def _onchain(request: Request) -> OnchainGovernance:
    governance = _governance(request)
    if not isinstance(governance, OnchainGovernance):
        raise HTTPException(status_code=404, detail="On-chain approvals are not enabled")
    return governance


# --- Read interface ---


@router.get("/api/governance")
async def governance_info(request: Request) -> dict[str, Any]:
    """Summary of the governance deployment."""
    governance = _governance(request)
    info: dict[str, Any] = {
        "address": governance.address,
        "mode": governance.MODE,
        "total_power": governance.total_power(),
        "required": governance.required(),
        "governor_count": len(governance.governors),
        "interfaces": ["0x" + iid.hex() for iid in governance.interface_ids()],
    }
    if isinstance(governance, OffchainGovernance):
        info["nonce"] = governance.nonce
    return info


@router.get("/api/governance/governors")
async def list_governors(request: Request) -> list[dict[str, Any]]:
    return [g.model_dump() for g in _governance(request).governors]


@router.get("/api/governance/governors/{address}")
async def governor_power(address: str, request: Request) -> dict[str, Any]:
    try:
        address = to_address(address)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"address": address, "power": _governance(request).power_of(address)}


@router.get("/api/governance/interfaces/{interface_id}")
async def supports_interface(interface_id: str, request: Request) -> dict[str, Any]:
    """Capability query for a 4-byte interface id."""
    iid = _from_hex(interface_id)
    return {
        "interface_id": "0x" + iid.hex(),
        "supported": _governance(request).supports_interface(iid),
    }


@router.get("/api/governance/events")
async def list_events(
    request: Request,
    kind: EventKind | None = None,
    transaction_id: int | None = None,
) -> list[dict[str, Any]]:
    events = _governance(request).journal.query(kind=kind, transaction_id=transaction_id)
    return [e.model_dump(mode="json") for e in events]


@router.get("/api/governance/contracts")
async def list_governed_contracts(request: Request) -> list[dict[str, Any]]:
    """Governed contracts deployed on the host, with owner and parameters."""
    host = _governance(request).host
    contracts = [host.get(address) for address in host.contract_addresses]
    return [c.to_dict() for c in contracts if isinstance(c, GovernedContract)]


# --- On-chain approvals ---


@router.get("/api/governance/transactions")
async def list_transactions(request: Request, pending_only: bool = False) -> list[dict[str, Any]]:
    governance = _onchain(request)
    return [r.to_dict() for r in governance.transactions(pending_only=pending_only)]


@router.get("/api/governance/transactions/{transaction_id}")
async def get_transaction(transaction_id: int, request: Request) -> dict[str, Any]:
    governance = _onchain(request)
    try:
        record = governance.get_transaction(transaction_id)
    except GovernanceError as exc:
        _raise_http(exc)
    payload = record.to_dict()
    payload["confirmations"] = governance.confirmations(transaction_id)
    return payload


@router.post("/api/governance/transactions")
async def create_transaction(
    body: CreateTransactionRequest,
    request: Request,
    x_governor: str = Header(...),
) -> dict[str, Any]:
    governance = _onchain(request)
    data = _from_hex(body.data)
    try:
        transaction_id = governance.create_transaction(x_governor, body.destination, body.value, data)
    except (GovernanceError, ValueError) as exc:
        _raise_http(exc)
    return governance.get_transaction(transaction_id).to_dict()


@router.post("/api/governance/transactions/{transaction_id}/confirm")
async def confirm_transaction(
    transaction_id: int,
    request: Request,
    x_governor: str = Header(...),
) -> dict[str, Any]:
    governance = _onchain(request)
    try:
        governance.confirm_transaction(x_governor, transaction_id)
    except (GovernanceError, ValueError) as exc:
        _raise_http(exc)
    return governance.get_transaction(transaction_id).to_dict()


@router.post("/api/governance/transactions/{transaction_id}/revoke")
async def revoke_confirmation(
    transaction_id: int,
    request: Request,
    x_governor: str = Header(...),
) -> dict[str, Any]:
    governance = _onchain(request)
    try:
        governance.revoke_confirmation(x_governor, transaction_id)
    except (GovernanceError, ValueError) as exc:
        _raise_http(exc)
    return governance.get_transaction(transaction_id).to_dict()


@router.post("/api/governance/transactions/{transaction_id}/execute")
async def execute_transaction(
    transaction_id: int,
    request: Request,
    x_governor: str = Header(...),
) -> dict[str, Any]:
    governance = _onchain(request)
    try:
        result = governance.execute_transaction(x_governor, transaction_id)
    except (GovernanceError, ValueError) as exc:
        _raise_http(exc)
    payload = governance.get_transaction(transaction_id).to_dict()
    payload["result"] = "0x" + result.hex()
    return payload


# --- Off-chain approvals ---


@router.post("/api/governance/signed-executions")
async def execute_signed(body: SignedExecutionRequest, request: Request) -> dict[str, Any]:
    governance = _governance(request)
    if not isinstance(governance, OffchainGovernance):
        raise HTTPException(status_code=404, detail="Signed executions are not enabled")

    data = _from_hex(body.data)
    signatures = [_from_hex(s) for s in body.signatures]
    try:
        result = governance.execute_signed(body.nonce, body.destination, data, signatures)
    except (GovernanceError, ValueError) as exc:
        _raise_http(exc)
    return {"nonce": governance.nonce, "result": "0x" + result.hex()}
