"""Local cache of upstream versions and item bundles."""

from cmdsync.cache.content_cache import CacheSize, ContentCache, version_key

__all__ = ["CacheSize", "ContentCache", "version_key"]
