"""Storage layer for processing sessions and processed claims."""

from .record_store import RecordStore, InMemoryRecordStore, FileRecordStore
from .claim_repository import ClaimRepository, InMemoryClaimRepository

__all__ = [
    'RecordStore',
    'InMemoryRecordStore',
    'FileRecordStore',
    'ClaimRepository',
    'InMemoryClaimRepository'
]
