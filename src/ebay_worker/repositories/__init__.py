"""Storage backends for the tracking worker."""

from ebay_worker.repositories.base import SyncRepository
from ebay_worker.repositories.sql_repository import SQLRepository

__all__ = ["SyncRepository", "SQLRepository"]
