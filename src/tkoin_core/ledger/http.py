"""HTTP client for a remote ledger gateway.

The gateway exposes JSON resources::

    GET  /mints/{address}      -> MintState
    GET  /accounts/{address}   -> AccountState   (404 when absent)
    POST /transactions         -> SubmitResult   (blocks until confirmed)

A submit waits at most ``confirm_timeout`` seconds. A timeout is reported
exactly like any other rejection: the instruction may or may not have
landed, and the caller is expected to re-run the (idempotent) operation
rather than retry blindly here.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from tkoin_core.errors import AccountNotFoundError, LedgerError
from tkoin_core.ledger.base import LedgerAccessor, SubmitResult
from tkoin_core.models.instruction import SignedInstruction
from tkoin_core.models.mint import AccountState, MintState

logger = logging.getLogger(__name__)

DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_CONFIRM_TIMEOUT = 30.0


class HttpLedger(LedgerAccessor):
    """Ledger accessor backed by a JSON-over-HTTP gateway."""

    def __init__(
        self,
        base_url: str,
        confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.confirm_timeout = confirm_timeout
        self.read_timeout = read_timeout
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=self.base_url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpLedger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Reads ────────────────────────────────────────────────────

    def _get(self, path: str, address: str) -> httpx.Response:
        try:
            resp = self._client.get(f"{self.base_url}{path}", timeout=self.read_timeout)
        except httpx.HTTPError as exc:
            msg = f"Ledger read {path} failed: {exc}"
            raise LedgerError(msg) from exc
        if resp.status_code == 404:
            raise AccountNotFoundError(address)
        if resp.is_error:
            msg = f"Ledger read {path} failed: HTTP {resp.status_code} {_reason(resp)}"
            raise LedgerError(msg)
        return resp

    def read_account(self, address: str) -> AccountState:
        resp = self._get(f"/accounts/{address}", address)
        try:
            return AccountState.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            msg = f"Malformed account state for {address}: {exc}"
            raise LedgerError(msg) from exc

    def read_mint(self, address: str) -> MintState:
        resp = self._get(f"/mints/{address}", address)
        try:
            return MintState.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            msg = f"Malformed mint state for {address}: {exc}"
            raise LedgerError(msg) from exc

    def account_exists(self, address: str) -> bool:
        try:
            self._get(f"/accounts/{address}", address)
        except AccountNotFoundError:
            return False
        return True

    # ── Submit ───────────────────────────────────────────────────

    def submit(self, signed: SignedInstruction) -> SubmitResult:
        tx_type = signed.instruction.tx_type.value
        try:
            resp = self._client.post(
                f"{self.base_url}/transactions",
                json=signed.model_dump(mode="json"),
                timeout=self.confirm_timeout,
            )
        except httpx.TimeoutException:
            logger.warning("Submit %s %s timed out", tx_type, signed.id)
            return SubmitResult.rejected(
                f"confirmation timed out after {self.confirm_timeout:g}s"
            )
        except httpx.HTTPError as exc:
            return SubmitResult.rejected(f"transport error: {exc}")

        if resp.is_error:
            return SubmitResult.rejected(f"HTTP {resp.status_code}: {_reason(resp)}")
        try:
            return SubmitResult.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            return SubmitResult.rejected(f"malformed submit response: {exc}")


def _reason(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict) and "reason" in body:
        return str(body["reason"])
    return resp.text
