import sys
import time
import unittest

from mosque_edu.cache import CacheManager, MemoryCacheBackend, RedisCacheBackend, bypass_cache, cache, cache_key, org_cache_prefix


class CacheTests(unittest.TestCase):
    def setUp(self):
        cache.invalidate_prefix('attendance_summary')

    def test_cache_hit_miss(self):
        key = cache_key(org_cache_prefix('attendance_summary', 1), 'class:7')
        self.assertIsNone(cache.get_cached(key))
        cache.set_cached(key, {'total_records': 3}, ttl=5)
        self.assertEqual(cache.get_cached(key), {'total_records': 3})

    def test_org_prefix_invalidation_keeps_other_orgs(self):
        org_1 = cache_key(f"{org_cache_prefix('attendance_summary', 1)}:", 'class:7')
        org_10 = cache_key(f"{org_cache_prefix('attendance_summary', 10)}:", 'class:7')
        cache.set_cached(org_1, {'a': 1}, ttl=5)
        cache.set_cached(org_10, {'b': 2}, ttl=5)

        cache.invalidate_prefix(f"{org_cache_prefix('attendance_summary', 1)}:")

        self.assertIsNone(cache.get_cached(org_1))
        self.assertEqual(cache.get_cached(org_10), {'b': 2})

    def test_invalidate_single_key(self):
        key = cache_key('attendance_summary', 'member:9')
        cache.set_cached(key, {'cached': True}, ttl=5)
        cache.invalidate(key)
        self.assertIsNone(cache.get_cached(key))

    def test_bypass_cache_flag(self):
        self.assertTrue(bypass_cache({'bypass_cache': 'yes'}))
        self.assertFalse(bypass_cache({'bypass_cache': '0'}))
        self.assertFalse(bypass_cache(None))

    def test_memory_backend_isolated_manager(self):
        manager = CacheManager(backend=MemoryCacheBackend())
        manager.set_cached('k', [1, 2], ttl=5)
        self.assertEqual(manager.get_cached('k'), [1, 2])
        self.assertIsNone(cache.get_cached('k'))


class RedisBackendTests(unittest.TestCase):
    def setUp(self):
        self._orig_redis = sys.modules.get('redis')

        class FakeRedisClient:
            def __init__(self):
                self._store = {}

            def setex(self, key, ttl, value):
                self._store[key] = (time.time() + ttl, value)

            def get(self, key):
                item = self._store.get(key)
                if not item:
                    return None
                expires_at, value = item
                if time.time() >= expires_at:
                    self._store.pop(key, None)
                    return None
                return value

            def delete(self, *keys):
                for key in keys:
                    self._store.pop(key, None)

            def scan(self, cursor=0, match='*', count=100):
                prefix = match[:-1] if match.endswith('*') else match
                keys = [key for key in self._store.keys() if key.startswith(prefix)]
                return 0, keys

        class FakeRedisModule:
            class Redis:
                @staticmethod
                def from_url(url, decode_responses=True):
                    return FakeRedisClient()

        sys.modules['redis'] = FakeRedisModule()

    def tearDown(self):
        if self._orig_redis is None:
            sys.modules.pop('redis', None)
        else:
            sys.modules['redis'] = self._orig_redis

    def test_redis_backend_roundtrip_and_prefix_delete(self):
        manager = CacheManager(backend=RedisCacheBackend('redis://localhost:6379/0'))
        prefix = f"{org_cache_prefix('attendance_summary', 3)}:"
        manager.set_cached(f'{prefix}class:1', {'attendance_rate': 80.0}, ttl=5)
        self.assertEqual(manager.get_cached(f'{prefix}class:1'), {'attendance_rate': 80.0})

        manager.invalidate_prefix(prefix)

        self.assertIsNone(manager.get_cached(f'{prefix}class:1'))


if __name__ == '__main__':
    unittest.main()
