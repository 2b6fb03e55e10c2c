# database/__init__.py

from .store import Store, StoreError, StoreConflictError
from .memory import InMemoryStore
from .json_store import JsonFileStore

__all__ = [
    'Store',
    'StoreError',
    'StoreConflictError',
    'InMemoryStore',
    'JsonFileStore',
]
