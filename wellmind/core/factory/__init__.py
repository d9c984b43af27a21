"""
Factory modules for creating WellMind components.
"""

from wellmind.core.factory.store_factory import MemoryStoreFactory

__all__ = [
    "MemoryStoreFactory",
]
