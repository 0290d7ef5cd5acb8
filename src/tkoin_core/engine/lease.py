"""Per-mint lease that keeps two harvest cycles from overlapping.

An advisory ``flock`` on a per-mint lock file. It serializes cycles
started on one host; it does nothing about transfers made by other
parties while a cycle runs.
"""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from typing import IO

from tkoin_core.crypto.hashing import sha256
from tkoin_core.errors import ConfigurationError, TkoinError


class LeaseHeldError(TkoinError):
    """Raised when another process already holds the lease for a mint."""


class MintLease:
    """Non-blocking exclusive lease keyed on a mint address."""

    def __init__(self, lock_dir: str | Path, mint_address: str) -> None:
        self.mint_address = mint_address
        self.path = Path(lock_dir) / f"harvest-{sha256(mint_address)[:16]}.lock"
        self._fd: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = open(self.path, "a+")
        except OSError as exc:
            msg = f"cannot use lock directory {self.path.parent}: {exc}"
            raise ConfigurationError(msg) from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            fd.close()
            msg = f"harvest lease for mint {self.mint_address} already held: {self.path}"
            raise LeaseHeldError(msg) from exc
        # Truncate only after the lock is held
        fd.seek(0)
        fd.truncate()
        fd.write(f"{os.getpid()}\n")
        fd.flush()
        self._fd = fd

    def release(self) -> None:
        if self._fd:
            try:
                fcntl.flock(self._fd, fcntl.LOCK_UN)
            finally:
                self._fd.close()
                self._fd = None

    def __enter__(self) -> MintLease:
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
