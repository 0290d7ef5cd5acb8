"""Tests for the capped-supply minter."""

from __future__ import annotations

import pytest

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.engine.minter import CappedSupplyMinter
from tkoin_core.ledger.memory import InMemoryLedger
from tkoin_core.models.instruction import Instruction, InstructionType
from tkoin_core.models.outcome import FailureKind, StageStatus

from conftest import UNIT, deploy


class TestMintToCeiling:

    def test_mints_full_supply(self, ledger, treasury, deployment):
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury)
        assert report.ok
        assert report.outcome.status == StageStatus.CONFIRMED
        assert report.minted == 1_000_000_000 * UNIT
        assert report.supply_after == 1_000_000_000 * UNIT
        assert report.account_created
        assert ledger.read_mint(deployment.mint_address).supply == 1_000_000_000 * UNIT

    def test_second_run_is_noop(self, ledger, treasury, deployment):
        minter = CappedSupplyMinter(ledger, deployment)
        minter.mint_to_ceiling(treasury)
        submitted = len(ledger.confirmed_instructions)

        report = minter.mint_to_ceiling(treasury)
        assert report.ok
        assert report.outcome.status == StageStatus.EMPTY
        assert report.minted == 0
        assert len(ledger.confirmed_instructions) == submitted

    def test_exactly_one_mutation_when_account_exists(self, ledger, treasury, deployment):
        ledger.submit(treasury.sign_instruction(Instruction(
            tx_type=InstructionType.CREATE_ACCOUNT,
            mint=deployment.mint_address,
            owner=treasury.address,
        )))
        before = len(ledger.confirmed_instructions)
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury)
        assert report.ok
        assert not report.account_created
        assert len(ledger.confirmed_instructions) == before + 1
        assert ledger.confirmed_instructions[-1].instruction.tx_type == InstructionType.MINT_TO

    @pytest.mark.parametrize("already_minted", [0, 1, 999_999_999, 1_000_000_000])
    def test_tops_up_any_partial_supply(self, ledger, treasury, deployment, already_minted):
        minter = CappedSupplyMinter(ledger, deployment)
        if already_minted:
            # Bring supply to a partial level with a smaller ceiling first
            partial = deployment.model_copy(update={
                "config": deployment.config.model_copy(update={"max_supply": already_minted}),
            })
            assert CappedSupplyMinter(ledger, partial).mint_to_ceiling(treasury).ok

        report = minter.mint_to_ceiling(treasury)
        assert report.ok
        assert report.minted == (1_000_000_000 - already_minted) * UNIT
        assert ledger.read_mint(deployment.mint_address).supply == 1_000_000_000 * UNIT
        assert minter.mint_to_ceiling(treasury).minted == 0

    def test_supply_above_ceiling_is_noop(self, ledger, treasury, deployment):
        assert CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury).ok
        lower = deployment.model_copy(update={
            "config": deployment.config.model_copy(update={"max_supply": 10}),
        })
        report = CappedSupplyMinter(ledger, lower).mint_to_ceiling(treasury)
        assert report.ok
        assert report.outcome.status == StageStatus.EMPTY
        assert "ceiling already reached" in report.outcome.reason

    def test_small_precision(self, ledger, treasury):
        record = deploy(ledger, treasury, decimals=0, max_supply=21_000_000)
        report = CappedSupplyMinter(ledger, record).mint_to_ceiling(treasury)
        assert report.ok
        assert ledger.read_mint(record.mint_address).supply == 21_000_000

    def test_cap_is_the_configured_ceiling(self, ledger, treasury, deployment):
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury)
        assert report.max_supply_units == deployment.config.max_supply_units

    def test_mint_decimals_win_over_record(self, ledger, treasury, deployment):
        stale = deployment.model_copy(update={
            "config": deployment.config.model_copy(update={"decimals": 6}),
        })
        report = CappedSupplyMinter(ledger, stale).mint_to_ceiling(treasury)
        assert report.ok
        assert report.max_supply_units == deployment.config.max_supply_units
        assert ledger.read_mint(deployment.mint_address).supply == 1_000_000_000 * UNIT


class TestMintFailures:

    def test_rejection_surfaced_verbatim(self, ledger, treasury, deployment):
        ledger.reject_next(InstructionType.MINT_TO, "insufficient lamports for fee")
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury)
        assert not report.ok
        assert report.outcome.failure == FailureKind.LEDGER_REJECTION
        assert report.outcome.reason == "insufficient lamports for fee"
        assert ledger.read_mint(deployment.mint_address).supply == 0

    def test_rerun_after_rejection(self, ledger, treasury, deployment):
        ledger.reject_next(InstructionType.MINT_TO, "timeout")
        minter = CappedSupplyMinter(ledger, deployment)
        assert not minter.mint_to_ceiling(treasury).ok
        assert minter.mint_to_ceiling(treasury).ok
        assert ledger.read_mint(deployment.mint_address).supply == 1_000_000_000 * UNIT

    def test_account_creation_failure(self, ledger, treasury, deployment):
        ledger.reject_next(InstructionType.CREATE_ACCOUNT, "insufficient lamports for rent")
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(treasury)
        assert not report.ok
        assert report.outcome.stage == "create_account"
        assert report.outcome.reason == "insufficient lamports for rent"

    def test_unknown_mint(self, ledger, treasury, deployment):
        missing = deployment.model_copy(update={"mint_address": "nowhere"})
        report = CappedSupplyMinter(ledger, missing).mint_to_ceiling(treasury)
        assert not report.ok
        assert report.outcome.failure == FailureKind.LEDGER_REJECTION

    def test_wrong_authority_rejected(self, ledger, deployment):
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(SigningAuthority.generate())
        assert not report.ok
        assert "mint authority" in report.outcome.reason

    def test_concurrent_mint_is_invariant_violation(self, treasury):
        class RacingLedger(InMemoryLedger):
            """Another minter lands one extra unit alongside ours."""

            def submit(self, signed):
                result = super().submit(signed)
                if result.is_confirmed and signed.instruction.tx_type == InstructionType.MINT_TO:
                    self._mints[signed.instruction.mint].supply += 1
                return result

        ledger = RacingLedger()
        record = deploy(ledger, treasury)
        report = CappedSupplyMinter(ledger, record).mint_to_ceiling(treasury)
        assert not report.ok
        assert report.outcome.failure == FailureKind.INVARIANT_VIOLATION
        assert report.supply_after == 1_000_000_000 * UNIT + 1

    def test_create_race_tolerated(self, treasury):
        class StaleExistsLedger(InMemoryLedger):
            """account_exists answers from a stale view."""

            def account_exists(self, address):
                return False

        ledger = StaleExistsLedger()
        record = deploy(ledger, treasury)
        ledger.submit(treasury.sign_instruction(Instruction(
            tx_type=InstructionType.CREATE_ACCOUNT, mint=record.mint_address, owner=treasury.address,
        )))
        report = CappedSupplyMinter(ledger, record).mint_to_ceiling(treasury)
        assert report.ok
        assert not report.account_created

