"""
StarORM Adapters Module

Storage capability tables and the in-memory reference store.
"""

from .base import Adapter, RelatedAdapter
from .memory import MemoryStore

__all__ = ["Adapter", "RelatedAdapter", "MemoryStore"]
