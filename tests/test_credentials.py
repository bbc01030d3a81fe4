"""Tests for the extraction credential pool."""

import threading

import pytest

from statement_recon.extraction.credentials import CredentialPool
from statement_recon.utils.exceptions import ConfigurationError


def make_pool(clock, keys=("key-a", "key-b"), **kwargs):
    return CredentialPool(list(keys), max_failures=5, cooldown_seconds=60, usage_window_seconds=60, clock=clock, **kwargs)


class TestCredentialPool:
    """Test cases for CredentialPool."""

    def test_empty_pool_rejected(self, fake_clock):
        """Test that a pool needs at least one credential."""
        with pytest.raises(ConfigurationError):
            CredentialPool([], clock=fake_clock)
        with pytest.raises(ConfigurationError):
            CredentialPool(["", ""], clock=fake_clock)

    def test_duplicates_collapsed(self, fake_clock):
        """Test that repeated credentials are kept once."""
        pool = CredentialPool(["key-a", "key-a", "key-b"], clock=fake_clock)
        assert len(pool) == 2

    def test_acquire_prefers_first_healthy(self, fake_clock):
        """Test stable-order selection."""
        pool = make_pool(fake_clock)
        assert pool.acquire() == "key-a"
        assert pool.acquire() == "key-a"
        assert pool.snapshot()[0].last_used_at == fake_clock.now

    def test_cooldown_after_max_failures(self, fake_clock):
        """Test that five failures put a credential into cooldown."""
        pool = make_pool(fake_clock)
        for _ in range(5):
            pool.report_failure("key-a")

        state = pool.snapshot()[0]
        assert state.failure_count == 5
        assert state.cooldown_until == fake_clock.now + 60
        assert pool.acquire() == "key-b"

        fake_clock.advance(30)
        assert pool.acquire() == "key-b"

        fake_clock.advance(31)
        assert pool.acquire() == "key-a"
        assert pool.snapshot()[0].failure_count == 0
        assert pool.snapshot()[0].cooldown_until == 0.0

    def test_failures_below_threshold_keep_credential(self, fake_clock):
        """Test that four failures do not skip a credential."""
        pool = make_pool(fake_clock)
        for _ in range(4):
            pool.report_failure("key-a")
        assert pool.acquire() == "key-a"
        assert pool.snapshot()[0].cooldown_until == 0.0

    def test_idle_credential_failures_forgiven(self, fake_clock):
        """Test that failures are reset after the usage window passes."""
        pool = make_pool(fake_clock)
        for _ in range(4):
            pool.report_failure("key-a")
        fake_clock.advance(61)
        assert pool.acquire() == "key-a"
        assert pool.snapshot()[0].failure_count == 0

    def test_success_clears_state(self, fake_clock):
        """Test report_success."""
        pool = make_pool(fake_clock)
        for _ in range(5):
            pool.report_failure("key-a")
        pool.report_success("key-a")
        state = pool.snapshot()[0]
        assert state.failure_count == 0
        assert state.cooldown_until == 0.0
        assert pool.acquire() == "key-a"

    def test_hard_reset_when_all_cooling(self, fake_clock, caplog):
        """Test that an exhausted pool resets and returns the first credential."""
        pool = make_pool(fake_clock)
        for key in ("key-a", "key-b"):
            for _ in range(5):
                pool.report_failure(key)

        assert not pool.degraded
        with caplog.at_level("WARNING"):
            assert pool.acquire() == "key-a"

        assert pool.degraded
        assert pool.hard_resets == 1
        assert all(s.failure_count == 0 and s.cooldown_until == 0.0 for s in pool.snapshot())
        assert "resetting pool" in caplog.text

    def test_unknown_credential_reports_ignored(self, fake_clock):
        """Test reports for credentials outside the pool."""
        pool = make_pool(fake_clock)
        pool.report_failure("other")
        pool.report_success("other")
        assert [s.failure_count for s in pool.snapshot()] == [0, 0]

    def test_snapshot_is_a_copy(self, fake_clock):
        """Test that snapshots do not expose internal state."""
        pool = make_pool(fake_clock)
        snapshot = pool.snapshot()
        snapshot[0].failure_count = 99
        assert pool.snapshot()[0].failure_count == 0

    def test_credentials_masked_in_logs(self, fake_clock, caplog):
        """Test that full credentials never reach the log."""
        pool = make_pool(fake_clock, keys=("secret-key-9876",))
        with caplog.at_level("DEBUG"):
            for _ in range(5):
                pool.report_failure("secret-key-9876")
        assert "secret-key-9876" not in caplog.text
        assert "...9876" in caplog.text

    def test_concurrent_failures_counted(self, fake_clock):
        """Test that concurrent reports are all recorded."""
        pool = CredentialPool(["key-a"], max_failures=1000, clock=fake_clock)

        def fail():
            for _ in range(50):
                pool.report_failure("key-a")

        threads = [threading.Thread(target=fail) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert pool.snapshot()[0].failure_count == 400
