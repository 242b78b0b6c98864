"""FastAPI application exposing a governance deployment over HTTP."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from govledger.core.config import Settings
from govledger.governance.base import GovernanceContract
from govledger.governance.genesis import create_governance
from govledger.web.governance_router import router as governance_router


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    version: str = "0.1.0"


def create_app(
    settings: Settings | None = None,
    governance: GovernanceContract | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances.

    Args:
        settings: Application settings. Defaults to Settings().
        governance: Optional pre-built governance contract. Built from the
            genesis file named in ``settings`` when omitted.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    app = FastAPI(
        title="govledger",
        description="Governance contracts for administrative ownership",
        version="0.1.0",
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if governance is None:
        governance = create_governance(settings)

    app.state.settings = settings
    app.state.governance = governance
    app.state.host = governance.host

    app.include_router(governance_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", service="govledger")

    return app
