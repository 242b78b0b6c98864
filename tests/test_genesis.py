"""Tests for configuration and genesis loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from govledger.chain.abi import encode_call
from govledger.chain.governed import GovernedContract
from govledger.chain.host import ContractHost
from govledger.core.config import GenesisConfig, JournalConfig, PolicyConfig, Settings
from govledger.governance.genesis import GenesisDefinition, create_governance, load_genesis
from govledger.governance.offchain import HybridGovernance, OffchainGovernance
from govledger.governance.onchain import OnchainGovernance
from govledger.governance.policy import FixedPolicy, MajorityPolicy, PercentagePolicy

from tests.conftest import ALICE, BOB, CAROL, DAVE

MIXED_CASE_BOB = "0x" + BOB[2:].upper()


@pytest.fixture()
def genesis_path(tmp_path: Path) -> Path:
    path = tmp_path / "genesis.yml"
    path.write_text(
        f"""
governors:
  - address: "{ALICE}"
    power: 2
  - address: "{MIXED_CASE_BOB}"
    power: 1
  - address: "{CAROL}"
    power: 0
"""
    )
    return path


class TestLoadGenesis:
    def test_load_governors(self, genesis_path: Path) -> None:
        genesis = load_genesis(genesis_path)
        assert [(g.address, g.power) for g in genesis.governors] == [(ALICE, 2), (BOB, 1), (CAROL, 0)]
        assert genesis.policy is None

    def test_load_policy_section(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text(f'governors:\n  - address: "{ALICE}"\n    power: 1\npolicy:\n  kind: fixed\n  threshold: 3\n')
        assert load_genesis(path).policy == {"kind": "fixed", "threshold": 3}

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_genesis(path).governors == []

    def test_duplicate_governor_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text(
            f'governors:\n  - address: "{ALICE}"\n    power: 1\n  - address: "{ALICE}"\n    power: 2\n'
        )
        with pytest.raises(ValueError, match="Duplicate governor"):
            load_genesis(path)

    def test_invalid_address_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text('governors:\n  - address: "0x12"\n    power: 1\n')
        with pytest.raises(ValueError):
            load_genesis(path)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_genesis(tmp_path / "missing.yml")

    def test_governed_section(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text(
            f"""
governors:
  - address: "{ALICE}"
    power: 1
governed:
  - label: fee_registry
    parameters:
      fee_bps: 30
  - label: treasury
    address: "{MIXED_CASE_BOB}"
"""
        )
        governed = load_genesis(path).governed
        assert [(g.label, g.address, g.parameters) for g in governed] == [
            ("fee_registry", None, {"fee_bps": 30}),
            ("treasury", BOB, {}),
        ]

    def test_duplicate_governed_label_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text("governed:\n  - label: fees\n  - label: fees\n")
        with pytest.raises(ValueError, match="Duplicate governed contract 'fees'"):
            load_genesis(path)

    def test_negative_governed_parameter_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "genesis.yml"
        path.write_text("governed:\n  - label: fees\n    parameters:\n      fee: -1\n")
        with pytest.raises(ValueError, match="Invalid parameter"):
            load_genesis(path)


class TestCreateGovernance:
    def test_zero_power_entries_are_skipped(self, genesis_path: Path) -> None:
        settings = Settings(genesis=GenesisConfig(path=str(genesis_path)))
        governance = create_governance(settings)
        assert isinstance(governance, OnchainGovernance)
        assert governance.total_power() == 3
        assert governance.power_of(CAROL) == 0
        assert isinstance(governance.policy, MajorityPolicy)

    @pytest.mark.parametrize(
        ("mode", "cls"),
        [("onchain", OnchainGovernance), ("offchain", OffchainGovernance), ("HYBRID", HybridGovernance)],
    )
    def test_modes(self, genesis_path: Path, mode: str, cls: type) -> None:
        settings = Settings(mode=mode, genesis=GenesisConfig(path=str(genesis_path)))
        assert type(create_governance(settings)) is cls

    def test_unknown_mode_raises(self, genesis_path: Path) -> None:
        settings = Settings(mode="dao", genesis=GenesisConfig(path=str(genesis_path)))
        with pytest.raises(ValueError, match="Unknown governance mode"):
            create_governance(settings)

    def test_settings_policy(self, genesis_path: Path) -> None:
        settings = Settings(
            policy=PolicyConfig(kind="percentage", percent=60),
            genesis=GenesisConfig(path=str(genesis_path)),
        )
        governance = create_governance(settings)
        assert isinstance(governance.policy, PercentagePolicy)
        assert governance.required() == 2

    def test_genesis_policy_overrides_settings(self) -> None:
        genesis = GenesisDefinition.model_validate(
            {"governors": [{"address": ALICE, "power": 1}], "policy": {"kind": "fixed", "threshold": 5}}
        )
        settings = Settings(policy=PolicyConfig(kind="percentage", percent=60))
        governance = create_governance(settings, genesis=genesis)
        assert isinstance(governance.policy, FixedPolicy)
        assert governance.required() == 5

    def test_governed_contracts_are_owned_by_governance(self) -> None:
        genesis = GenesisDefinition.model_validate(
            {
                "governors": [{"address": ALICE, "power": 1}],
                "governed": [
                    {"label": "fee_registry", "parameters": {"fee_bps": 30}},
                    {"label": "treasury", "address": DAVE},
                ],
            }
        )
        host = ContractHost()
        governance = create_governance(Settings(), host=host, genesis=genesis)

        treasury = host.get(DAVE)
        assert isinstance(treasury, GovernedContract)
        assert treasury.label == "treasury"
        assert treasury.owner == governance.address

        governed = [host.get(a) for a in host.contract_addresses if host.get(a) is not governance]
        assert [(c.label, c.parameters) for c in governed] == [
            ("fee_registry", {"fee_bps": 30}),
            ("treasury", {}),
        ]

    def test_governed_address_collision_raises(self) -> None:
        genesis = GenesisDefinition.model_validate(
            {"governed": [{"label": "a", "address": DAVE}, {"label": "b", "address": DAVE}]}
        )
        with pytest.raises(ValueError, match="already registered"):
            create_governance(Settings(), genesis=genesis)

    def test_governed_parameter_set_through_approval(self) -> None:
        genesis = GenesisDefinition.model_validate(
            {
                "governors": [{"address": ALICE, "power": 1}],
                "governed": [{"label": "fee_registry", "address": DAVE, "parameters": {"fee_bps": 30}}],
            }
        )
        governance = create_governance(Settings(), genesis=genesis)
        governance.create_transaction(ALICE, DAVE, 0, encode_call("setParameter(string,uint256)", "fee_bps", 25))
        assert governance.host.get(DAVE).parameters == {"fee_bps": 25}

    def test_registers_on_given_host(self, genesis_path: Path) -> None:
        host = ContractHost()
        governance = create_governance(Settings(genesis=GenesisConfig(path=str(genesis_path))), host=host)
        assert host.get(governance.address) is governance

    def test_persistent_journal_from_settings(self, genesis_path: Path, tmp_path: Path) -> None:
        settings = Settings(
            journal=JournalConfig(log_dir=str(tmp_path / "events")),
            genesis=GenesisConfig(path=str(genesis_path)),
        )
        governance = create_governance(settings)
        assert governance.journal.log_path == tmp_path / "events" / "events.jsonl"

    def test_bundled_genesis(self) -> None:
        governance = create_governance(Settings())
        assert len(governance.governors) == 3
        assert governance.required() == 2


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()
        assert settings.mode == "onchain"
        assert settings.policy.kind == "majority"
        assert settings.journal.log_dir is None
        assert settings.genesis.path is None

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GOVLEDGER_MODE", "hybrid")
        monkeypatch.setenv("GOVLEDGER_POLICY_KIND", "fixed")
        assert Settings().mode == "hybrid"
        assert PolicyConfig().kind == "fixed"
