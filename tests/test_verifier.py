"""Tests for the transfer-fee verifier."""

from __future__ import annotations

from decimal import Decimal

import pytest

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.engine.minter import CappedSupplyMinter
from tkoin_core.engine.verifier import TransferFeeVerifier, VerifierConfig
from tkoin_core.models.instruction import InstructionType
from tkoin_core.models.outcome import FailureKind, StageStatus

from conftest import UNIT, deploy


def _mint(ledger, treasury, record):
    assert CappedSupplyMinter(ledger, record).mint_to_ceiling(treasury).ok
    return record


def _with_config(record, **changes):
    return record.model_copy(update={"config": record.config.model_copy(update=changes)})


class TestVerifierConfig:

    def test_default_tolerance(self):
        assert VerifierConfig().tolerance_units(9) == 1_000_000

    def test_tolerance_rounds_down(self):
        assert VerifierConfig().tolerance_units(0) == 0
        assert VerifierConfig(Decimal("2.5")).tolerance_units(0) == 2


class TestFeeCheck:

    def test_matching_fee_passes(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, 10_000)
        assert report.ok
        assert report.outcome.status == StageStatus.CONFIRMED
        assert report.amount_units == 10_000 * UNIT
        assert report.expected_fee_units == 100 * UNIT
        assert report.received_units == 9_900 * UNIT
        assert report.measured_fee_units == 100 * UNIT
        assert report.delta_units == 0
        assert report.withheld_hint == 100 * UNIT

    def test_fee_lands_on_recipient_not_supply(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        supply = ledger.read_mint(deployment.mint_address).supply
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, "12.5")
        assert report.ok
        assert ledger.read_account(report.recipient_account).withheld_hint == report.measured_fee_units
        assert ledger.read_mint(deployment.mint_address).supply == supply

    def test_fee_cap(self, ledger, treasury):
        record = _mint(ledger, treasury, deploy(ledger, treasury, max_fee_units=5 * UNIT))
        report = TransferFeeVerifier(ledger, record).verify(treasury, 10_000)
        assert report.ok
        assert report.expected_fee_units == 5 * UNIT
        assert report.received_units == 9_995 * UNIT

    def test_dust_transfer_pays_one_unit(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, "0.000000001")
        assert report.ok
        assert report.amount_units == 1
        assert report.expected_fee_units == 1
        assert report.received_units == 0

    def test_explicit_recipient(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        recipient = SigningAuthority.generate()
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, 1, recipient=recipient)
        assert report.recipient_account == ledger.holding_address(
            deployment.mint_address, recipient.address,
        )

    def test_rate_mismatch_fails_with_delta(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        # The record claims 0.5% while the mint charges 1%
        claimed = _with_config(deployment, fee_rate_bps=50)
        report = TransferFeeVerifier(ledger, claimed).verify(treasury, 10_000)
        assert not report.ok
        assert not report.passed
        assert report.outcome.ok
        assert report.expected_fee_units == 50 * UNIT
        assert report.measured_fee_units == 100 * UNIT
        assert report.delta_units == -50 * UNIT

    def test_zero_decimals_admits_no_slack(self, ledger, treasury):
        record = _mint(ledger, treasury, deploy(ledger, treasury, decimals=0, max_supply=1_000_000))
        assert TransferFeeVerifier(ledger, record).verify(treasury, 1_000).ok

        # 101 bps on 1,000 rounds up to 11 where the mint withholds 10
        claimed = _with_config(record, fee_rate_bps=101)
        report = TransferFeeVerifier(ledger, claimed).verify(treasury, 1_000)
        assert report.tolerance_units == 0
        assert report.delta_units == 1
        assert not report.passed

    def test_difference_within_tolerance_passes(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        claimed = _with_config(deployment, fee_rate_bps=101)
        verifier = TransferFeeVerifier(ledger, claimed, VerifierConfig(Decimal("0.01")))
        # 1 token: expected fee 0.0101, mint withholds 0.01
        report = verifier.verify(treasury, 1)
        assert report.delta_units == 100_000
        assert report.passed


class TestCheckFailures:

    @pytest.mark.parametrize("amount", [0, "0.0000000001"])
    def test_non_positive_amount(self, ledger, treasury, deployment, amount):
        _mint(ledger, treasury, deployment)
        before = len(ledger.confirmed_instructions)
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, amount)
        assert not report.ok
        assert report.outcome.failure == FailureKind.CONFIGURATION
        assert len(ledger.confirmed_instructions) == before

    def test_transfer_rejected(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        ledger.reject_next(InstructionType.TRANSFER, "Blockhash not found")
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, 10)
        assert not report.ok
        assert report.outcome.stage == "transfer"
        assert report.outcome.failure == FailureKind.LEDGER_REJECTION
        assert report.outcome.reason == "Blockhash not found"

    def test_unfunded_treasury(self, ledger, treasury, deployment):
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, 10)
        assert not report.ok
        assert "could not find account" in report.outcome.reason

    def test_recipient_creation_failure(self, ledger, treasury, deployment):
        _mint(ledger, treasury, deployment)
        ledger.reject_next(InstructionType.CREATE_ACCOUNT, "insufficient lamports for rent")
        report = TransferFeeVerifier(ledger, deployment).verify(treasury, 10)
        assert not report.ok
        assert report.outcome.stage == "create_account"
