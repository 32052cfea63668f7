"""
Collection stores for the encryption migration
"""
from .base import CollectionStore
from .memory_adapter import InMemoryStore
from .postgres_adapter import PostgreSQLStore
from .factory import StoreFactory

__all__ = [
    'CollectionStore',
    'InMemoryStore',
    'PostgreSQLStore',
    'StoreFactory'
]
