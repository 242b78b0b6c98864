"""Governance contracts for administering owned contracts.

Provides the governor registry, threshold policies, the on-chain transaction
approval ledger, signature-based off-chain execution, and the notification
journal.
"""

from govledger.governance.base import GovernanceContract
from govledger.governance.genesis import create_governance, load_genesis
from govledger.governance.journal import EventJournal
from govledger.governance.offchain import HybridGovernance, OffchainGovernance
from govledger.governance.onchain import OnchainGovernance
from govledger.governance.policy import (
    FixedPolicy,
    MajorityPolicy,
    PercentagePolicy,
    RequiredPolicy,
    create_policy,
)
from govledger.governance.registry import GovernorRegistry
from govledger.governance.signing import GovernorKey

__all__ = [
    "EventJournal",
    "FixedPolicy",
    "GovernanceContract",
    "GovernorKey",
    "GovernorRegistry",
    "HybridGovernance",
    "MajorityPolicy",
    "OffchainGovernance",
    "OnchainGovernance",
    "PercentagePolicy",
    "RequiredPolicy",
    "create_governance",
    "create_policy",
    "load_genesis",
]
