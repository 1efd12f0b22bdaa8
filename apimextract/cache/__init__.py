"""Compute-once caches shared by concurrent extraction branches.

Submodules:
    once  -- OnceCache, AsyncOnceCache and AsyncLazy.
"""

from apimextract.cache.once import AsyncLazy, AsyncOnceCache, OnceCache

__all__ = ["AsyncLazy", "AsyncOnceCache", "OnceCache"]
