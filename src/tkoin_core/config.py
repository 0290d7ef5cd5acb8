"""Runtime configuration read from the environment.

    TKOIN_DEPLOYMENT_PATH     deployment record JSON (default solana/deployment.json)
    TKOIN_LEDGER_URL          ledger gateway URL (default: the record's network)
    TKOIN_TREASURY_KEY        treasury key as an inline secret
    TKOIN_TREASURY_KEY_PATH   treasury key as a PEM file
    TKOIN_CONFIRM_TIMEOUT     seconds to wait for a confirmation (default 30)
    TKOIN_LOCK_DIR            directory for harvest lease files
    TKOIN_LOG_LEVEL           logging level name (default INFO)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from tkoin_core.crypto.authority import SigningAuthority
from tkoin_core.errors import ConfigurationError
from tkoin_core.ledger.http import DEFAULT_CONFIRM_TIMEOUT
from tkoin_core.models.deployment import DeploymentRecord

DEFAULT_DEPLOYMENT_PATH = Path("solana") / "deployment.json"
DEFAULT_LOCK_DIR = Path(".tkoin") / "locks"
TREASURY_KEY_ENV = "TKOIN_TREASURY_KEY"


@dataclass(frozen=True)
class EngineSettings:
    deployment_path: Path = DEFAULT_DEPLOYMENT_PATH
    ledger_url: str | None = None
    treasury_key_path: Path | None = None
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT
    lock_dir: Path = DEFAULT_LOCK_DIR
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        env = os.environ if environ is None else environ
        timeout_raw = env.get("TKOIN_CONFIRM_TIMEOUT")
        try:
            confirm_timeout = float(timeout_raw) if timeout_raw else DEFAULT_CONFIRM_TIMEOUT
        except ValueError as exc:
            msg = f"TKOIN_CONFIRM_TIMEOUT must be a number of seconds, got {timeout_raw!r}"
            raise ConfigurationError(msg) from exc
        if confirm_timeout <= 0:
            msg = "TKOIN_CONFIRM_TIMEOUT must be positive"
            raise ConfigurationError(msg)

        key_path = env.get("TKOIN_TREASURY_KEY_PATH")
        return cls(
            deployment_path=Path(env.get("TKOIN_DEPLOYMENT_PATH") or DEFAULT_DEPLOYMENT_PATH),
            ledger_url=env.get("TKOIN_LEDGER_URL") or None,
            treasury_key_path=Path(key_path) if key_path else None,
            confirm_timeout=confirm_timeout,
            lock_dir=Path(env.get("TKOIN_LOCK_DIR") or DEFAULT_LOCK_DIR),
            log_level=(env.get("TKOIN_LOG_LEVEL") or "INFO").upper(),
        )

    def load_deployment(self) -> DeploymentRecord:
        return DeploymentRecord.from_file(self.deployment_path)

    def resolve_ledger_url(self, deployment: DeploymentRecord) -> str:
        url = self.ledger_url or deployment.network
        if not url:
            msg = "No ledger URL: set TKOIN_LEDGER_URL or the deployment record's network"
            raise ConfigurationError(msg)
        return url


def load_treasury_authority(
    settings: EngineSettings,
    deployment: DeploymentRecord,
    environ: Mapping[str, str] | None = None,
) -> SigningAuthority:
    """Load the treasury authority and check it matches the deployment record.

    The inline secret wins over the key file, as it does for the deploy
    tooling.
    """
    env = os.environ if environ is None else environ
    secret = env.get(TREASURY_KEY_ENV)
    if secret:
        authority = SigningAuthority.from_secret(secret)
    elif settings.treasury_key_path is not None:
        authority = SigningAuthority.from_file(settings.treasury_key_path)
    else:
        msg = f"Treasury key not configured: set {TREASURY_KEY_ENV} or TKOIN_TREASURY_KEY_PATH"
        raise ConfigurationError(msg)

    if authority.address != deployment.treasury_address:
        msg = (
            f"Treasury key address {authority.address} does not match the "
            f"deployment record's treasury {deployment.treasury_address}"
        )
        raise ConfigurationError(msg)
    return authority
