"""Repository of processing results held for lookups and analytics."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ..models.result import ProcessingResult

logger = logging.getLogger(__name__)


class ClaimRepository(ABC):
    """Keyed collection of ProcessingResults, by processing id."""

    @abstractmethod
    def save(self, result: ProcessingResult) -> None:
        pass

    @abstractmethod
    def get(self, processing_id: str) -> Optional[ProcessingResult]:
        pass

    @abstractmethod
    def all(self) -> List[ProcessingResult]:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryClaimRepository(ClaimRepository):
    """Insertion-ordered in-process repository."""

    def __init__(self):
        self._results: Dict[str, ProcessingResult] = {}
        self._lock = threading.Lock()

    def save(self, result: ProcessingResult) -> None:
        with self._lock:
            self._results[result.processing_id] = result
        logger.debug(f"Stored processing result {result.processing_id} ({result.status})")

    def get(self, processing_id: str) -> Optional[ProcessingResult]:
        return self._results.get(processing_id)

    def all(self) -> List[ProcessingResult]:
        with self._lock:
            return list(self._results.values())

    def clear(self) -> None:
        with self._lock:
            count = len(self._results)
            self._results.clear()
        logger.info(f"Cleared {count} processed claims")

    def __len__(self) -> int:
        return len(self._results)
