"""
Tests for the per-account lock managers.

The Redis backend is exercised against a mocked client; the
local backend with real threads.
"""

import threading
from unittest.mock import MagicMock

import pytest

from ledger_core.exceptions import LockTimeoutError
from ledger_core.locks import LocalLockManager, RedisLockManager, get_lock_manager


class TestLocalLockManager:

    def test_acquire_and_release(self):
        manager = LocalLockManager(timeout=0.1)

        release = manager.acquire(1)
        release()

        # Free again
        manager.acquire(1)()

    def test_reentrant_in_same_thread(self):
        manager = LocalLockManager(timeout=0.1)

        outer = manager.acquire(1)
        inner = manager.acquire(1)
        inner()
        outer()

    def test_other_thread_times_out(self):
        manager = LocalLockManager(timeout=0.05)
        release = manager.acquire(1)
        errors = []

        def contender():
            try:
                manager.acquire(1)
            except LockTimeoutError as e:
                errors.append(e)

        thread = threading.Thread(target=contender)
        thread.start()
        thread.join()
        release()

        assert len(errors) == 1
        assert errors[0].retryable is True
        assert errors[0].details["account_id"] == 1

    def test_disjoint_accounts_do_not_block(self):
        manager = LocalLockManager(timeout=0.05)
        release = manager.acquire(1)
        acquired = []

        def other_account():
            manager.acquire(2)()
            acquired.append(2)

        thread = threading.Thread(target=other_account)
        thread.start()
        thread.join()
        release()

        assert acquired == [2]


class TestRedisLockManager:

    def test_acquire_sets_key_with_ttl(self):
        client = MagicMock()
        client.set.return_value = True
        manager = RedisLockManager(client, ttl=30, timeout=1.0)

        manager.acquire(7)

        args, kwargs = client.set.call_args
        assert args[0] == "lock:ledger:account:7"
        assert kwargs == {"nx": True, "ex": 30}

    def test_release_runs_token_checked_script(self):
        client = MagicMock()
        client.set.return_value = True
        manager = RedisLockManager(client)

        release = manager.acquire(7)
        token = client.set.call_args[0][1]
        release()

        client.eval.assert_called_once_with(
            RedisLockManager.RELEASE_SCRIPT, 1, "lock:ledger:account:7", token
        )

    def test_retries_until_free(self):
        client = MagicMock()
        client.set.side_effect = [None, None, True]
        manager = RedisLockManager(client, timeout=1.0, poll_interval=0.001)

        manager.acquire(7)

        assert client.set.call_count == 3

    def test_timeout_raises_lock_timeout(self):
        client = MagicMock()
        client.set.return_value = None
        manager = RedisLockManager(client, timeout=0.01, poll_interval=0.001)

        with pytest.raises(LockTimeoutError) as exc_info:
            manager.acquire(7)

        assert exc_info.value.status_code == 503
        assert exc_info.value.details["key"] == "lock:ledger:account:7"
        client.eval.assert_not_called()

    def test_each_acquire_uses_new_token(self):
        client = MagicMock()
        client.set.return_value = True
        manager = RedisLockManager(client)

        manager.acquire(1)
        manager.acquire(2)

        tokens = [c.args[1] for c in client.set.call_args_list]
        assert tokens[0] != tokens[1]


class TestGetLockManager:

    def test_local_backend_by_default(self):
        get_lock_manager.cache_clear()
        try:
            manager = get_lock_manager()
            assert isinstance(manager, LocalLockManager)
            assert get_lock_manager() is manager
        finally:
            get_lock_manager.cache_clear()
