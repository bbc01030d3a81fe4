"""Rotation of extraction API credentials with failure tracking and cooldown."""

import threading
import time
from dataclasses import replace
from typing import Callable, List, Sequence

from statement_recon.config.settings import (
    CREDENTIAL_COOLDOWN_SECONDS,
    CREDENTIAL_MAX_FAILURES,
    CREDENTIAL_USAGE_WINDOW_SECONDS,
)
from statement_recon.models import CredentialState
from statement_recon.utils.exceptions import ConfigurationError
from statement_recon.utils.logger import get_logger, mask_credential


class CredentialPool:
    """Hands out API credentials, skipping ones that keep failing.

    A credential that reaches ``max_failures`` consecutive failures cools
    down for ``cooldown_seconds``. A credential that has not been used within
    ``usage_window_seconds`` gets its failure count forgiven. When nothing is
    usable the whole pool is reset and the first credential is returned.
    """

    def __init__(
        self,
        credentials: Sequence[str],
        max_failures: int = CREDENTIAL_MAX_FAILURES,
        cooldown_seconds: float = CREDENTIAL_COOLDOWN_SECONDS,
        usage_window_seconds: float = CREDENTIAL_USAGE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the pool.

        Args:
            credentials: API keys, in preference order.
            max_failures: Failures before a credential cools down.
            cooldown_seconds: How long a failing credential is skipped.
            usage_window_seconds: Idle time after which failures are forgiven.
            clock: Monotonic time source, injectable for tests.

        Raises:
            ConfigurationError: If no credentials are given.
        """
        unique = list(dict.fromkeys(c for c in credentials if c))
        if not unique:
            raise ConfigurationError("At least one extraction API credential is required")

        self.logger = get_logger(__name__)
        self.max_failures = max_failures
        self.cooldown_seconds = cooldown_seconds
        self.usage_window_seconds = usage_window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._states: List[CredentialState] = [CredentialState(credential=c) for c in unique]
        self.hard_resets = 0

    @property
    def degraded(self) -> bool:
        """True once the pool has had to hard reset at least once."""
        return self.hard_resets > 0

    def __len__(self) -> int:
        return len(self._states)

    def acquire(self) -> str:
        """Pick the next usable credential and mark it used."""
        with self._lock:
            now = self._clock()
            for state in self._states:
                if state.cooldown_until and now < state.cooldown_until:
                    continue
                if state.cooldown_until:
                    state.cooldown_until = 0.0
                    state.failure_count = 0
                if state.last_used_at and now - state.last_used_at > self.usage_window_seconds:
                    state.failure_count = 0
                if state.failure_count < self.max_failures:
                    state.last_used_at = now
                    return state.credential

            self.hard_resets += 1
            self.logger.warning(
                f"All {len(self._states)} extraction credentials are failing or cooling down; "
                f"resetting pool (reset #{self.hard_resets})"
            )
            for state in self._states:
                state.failure_count = 0
                state.cooldown_until = 0.0
            first = self._states[0]
            first.last_used_at = now
            return first.credential

    def report_failure(self, credential: str) -> None:
        """Record a failed call made with ``credential``."""
        with self._lock:
            state = self._find(credential)
            if state is None:
                return
            now = self._clock()
            state.failure_count += 1
            state.last_used_at = now
            if state.failure_count >= self.max_failures:
                state.cooldown_until = now + self.cooldown_seconds
                self.logger.warning(
                    f"Credential {mask_credential(credential)} cooling down for "
                    f"{self.cooldown_seconds:.0f}s after {state.failure_count} failures"
                )
            else:
                self.logger.debug(
                    f"Credential {mask_credential(credential)} failure "
                    f"{state.failure_count}/{self.max_failures}"
                )

    def report_success(self, credential: str) -> None:
        """Clear the failure history of ``credential``."""
        with self._lock:
            state = self._find(credential)
            if state is not None:
                state.failure_count = 0
                state.cooldown_until = 0.0

    def snapshot(self) -> List[CredentialState]:
        """Return copies of the credential states."""
        with self._lock:
            return [replace(state) for state in self._states]

    def _find(self, credential: str):
        for state in self._states:
            if state.credential == credential:
                return state
        return None
