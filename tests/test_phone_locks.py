import threading
import time
import unittest
from unittest.mock import Mock

from redis.exceptions import LockError

from rottie_connect.services.phone_locks import InMemoryPhoneLocks, PhoneLockTimeout, RedisPhoneLocks


class InMemoryPhoneLocksTests(unittest.TestCase):
    def test_same_number_is_serialized(self):
        locks = InMemoryPhoneLocks(timeout_seconds=2.0)
        active = []
        overlaps = []

        def worker():
            with locks.hold("+5215512345678"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(overlaps, [])
        self.assertEqual(locks._locks, {})

    def test_different_numbers_do_not_block_each_other(self):
        locks = InMemoryPhoneLocks(timeout_seconds=0.05)
        with locks.hold("+5215511111111"):
            with locks.hold("+5215522222222"):
                pass

    def test_timeout_raises(self):
        locks = InMemoryPhoneLocks(timeout_seconds=0.05)
        with locks.hold("+5215512345678"):
            with self.assertRaises(PhoneLockTimeout):
                with locks.hold("+5215512345678"):
                    pass
        self.assertEqual(locks._locks, {})


class RedisPhoneLocksTests(unittest.TestCase):
    def test_uses_per_number_key(self):
        client = Mock()
        lock = client.lock.return_value
        lock.acquire.return_value = True
        with RedisPhoneLocks(client, timeout_seconds=3).hold("+5215512345678"):
            pass
        client.lock.assert_called_once_with("verify:lock:+5215512345678", timeout=3, blocking_timeout=3)
        lock.release.assert_called_once()

    def test_acquire_timeout_raises(self):
        client = Mock()
        client.lock.return_value.acquire.return_value = False
        with self.assertRaises(PhoneLockTimeout):
            with RedisPhoneLocks(client).hold("+5215512345678"):
                pass

    def test_expired_lock_release_is_logged(self):
        client = Mock()
        lock = client.lock.return_value
        lock.acquire.return_value = True
        lock.release.side_effect = LockError("not owned")
        with self.assertLogs("rottie.phone_locks", level="WARNING"):
            with RedisPhoneLocks(client).hold("+5215512345678"):
                pass
