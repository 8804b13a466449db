from .store import CacheBackend, CacheCoherentStore, CacheEntity, RedisCacheBackend

__all__ = ["CacheBackend", "CacheCoherentStore", "CacheEntity", "RedisCacheBackend"]
