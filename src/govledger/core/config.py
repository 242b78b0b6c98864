"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class PolicyConfig(BaseSettings):
    """Threshold policy configuration.

    ``kind`` selects how ``required()`` is derived from total power:
    ``majority``, ``percentage`` (uses ``percent``) or ``fixed`` (uses
    ``threshold``).
    """

    model_config = {"env_prefix": "GOVLEDGER_POLICY_"}

    kind: str = "majority"
    percent: int = 51
    threshold: int = 1


class JournalConfig(BaseSettings):
    """Event journal configuration. ``log_dir=None`` keeps events in memory only."""

    model_config = {"env_prefix": "GOVLEDGER_JOURNAL_"}

    log_dir: str | None = None
    log_file: str = "events.jsonl"


class GenesisConfig(BaseSettings):
    """Initial governor set configuration. ``path=None`` uses the bundled ``config/genesis.yml``."""

    model_config = {"env_prefix": "GOVLEDGER_GENESIS_"}

    path: str | None = None


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "GOVLEDGER_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    mode: str = "onchain"

    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    journal: JournalConfig = Field(default_factory=JournalConfig)
    genesis: GenesisConfig = Field(default_factory=GenesisConfig)
