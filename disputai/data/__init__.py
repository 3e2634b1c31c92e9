"""Data module - storage backends."""

from .storage import Storage, StorageBackend, get_storage

__all__ = ["Storage", "StorageBackend", "get_storage"]
