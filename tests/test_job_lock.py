import json
import unittest
from unittest.mock import patch

import redis

from notify_scheduler.cache import CacheBackend, MemoryCacheBackend, RedisCacheBackend, cache
from notify_scheduler.domain.jobs.job_lock import acquire_job_lock, release_job_lock


class DictBackend(CacheBackend):
    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ttl):
        self.store[key] = value

    def delete(self, key):
        self.store.pop(key, None)

    def delete_prefix(self, prefix):
        for key in [k for k in self.store if k.startswith(prefix)]:
            self.store.pop(key, None)


class FakeRedisClient:
    def __init__(self):
        self.store = {}

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)


class DownRedisClient:
    def set(self, *args, **kwargs):
        raise redis.ConnectionError('connection refused')

    def get(self, key):
        raise redis.ConnectionError('connection refused')


class JobLockTests(unittest.TestCase):
    def setUp(self):
        cache.invalidate_prefix('job_lock')

    def test_memory_lock_is_exclusive_per_class(self):
        with patch.object(cache, 'backend', MemoryCacheBackend()):
            token = acquire_job_lock('sweep', 1)
            self.assertIsNotNone(token)
            self.assertIsNone(acquire_job_lock('sweep', 1))
            self.assertIsNotNone(acquire_job_lock('sweep', 2))
            self.assertIsNotNone(acquire_job_lock('other_job', 1))
            release_job_lock('sweep', 1, token)
            self.assertIsNotNone(acquire_job_lock('sweep', 1))

    def test_release_with_wrong_token_keeps_lock(self):
        with patch.object(cache, 'backend', MemoryCacheBackend()):
            token = acquire_job_lock('sweep', 3)
            release_job_lock('sweep', 3, 'not-the-token')
            self.assertIsNone(acquire_job_lock('sweep', 3))
            release_job_lock('sweep', 3, token)
            release_job_lock('sweep', 3, None)

    def test_generic_backend_path(self):
        with patch.object(cache, 'backend', DictBackend()):
            token = acquire_job_lock('sweep', 4)
            self.assertIsNotNone(token)
            self.assertIsNone(acquire_job_lock('sweep', 4))
            release_job_lock('sweep', 4, token)
            self.assertIsNotNone(acquire_job_lock('sweep', 4))

    def test_redis_set_nx_path(self):
        client = FakeRedisClient()
        with patch.object(cache, 'backend', RedisCacheBackend(client)):
            token = acquire_job_lock('sweep', 5)
            self.assertEqual(json.loads(client.store['job_lock:sweep:class:5']), token)
            self.assertIsNone(acquire_job_lock('sweep', 5))
            release_job_lock('sweep', 5, 'not-the-token')
            self.assertIn('job_lock:sweep:class:5', client.store)
            release_job_lock('sweep', 5, token)
            self.assertNotIn('job_lock:sweep:class:5', client.store)

    def test_unreachable_redis_means_no_lock(self):
        with patch.object(cache, 'backend', RedisCacheBackend(DownRedisClient())):
            with self.assertLogs('notify_scheduler.domain.jobs.job_lock', level='ERROR'):
                self.assertIsNone(acquire_job_lock('sweep', 6))
            with self.assertLogs('notify_scheduler.domain.jobs.job_lock', level='ERROR'):
                release_job_lock('sweep', 6, 'token')


if __name__ == '__main__':
    unittest.main()
