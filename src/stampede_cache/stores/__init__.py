"""
Store implementations.

- MemoryCacheStore: in-process store for tests and single-process use
- DaprStateStore: Dapr sidecar (state + distributed lock building blocks)
- RedisCacheStore: Redis with ``SET NX PX`` leases
"""

from .dapr import DaprStateStore
from .memory import MemoryCacheStore
from .redis import RedisCacheStore

__all__ = [
    "DaprStateStore",
    "MemoryCacheStore",
    "RedisCacheStore",
]
