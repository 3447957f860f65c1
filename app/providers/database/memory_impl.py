"""
In-memory Database Provider implementation.

Demo mode: documents live in process memory and are lost on restart.
"""
from __future__ import annotations

import copy
import threading
import uuid
from typing import Any

from ...config import get_logger
from ..configs import DatabaseConfig
from .interface import DatabaseProviderInterface, Document

logger = get_logger("database.memory")


class MemoryDatabaseProvider(DatabaseProviderInterface):
    """Collections of documents kept in dictionaries."""

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__(config)
        self._collections: dict[str, dict[str, Document]] = {}
        self._lock = threading.Lock()

    async def initialize(self) -> None:
        self._initialized = True
        logger.warning("In-memory database initialized - data is NOT persisted (demo mode)")

    async def _insert(self, collection: str, document: Document) -> str:
        doc_id = uuid.uuid4().hex
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)
        return doc_id

    async def _get(self, collection: str, doc_id: str) -> Document | None:
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            if document is None:
                return None
            return {**copy.deepcopy(document), "id": doc_id}

    async def _find(self, collection: str, filters: Document, limit: int) -> list[Document]:
        results: list[Document] = []
        with self._lock:
            for doc_id, document in self._collections.get(collection, {}).items():
                if all(document.get(field) == value for field, value in filters.items()):
                    results.append({**copy.deepcopy(document), "id": doc_id})
                    if len(results) >= limit:
                        break
        return results

    async def _update(self, collection: str, doc_id: str, fields: Document) -> bool:
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            if document is None:
                return False
            document.update(copy.deepcopy(fields))
            return True

    async def _delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._collections.get(collection, {}).pop(doc_id, None) is not None

    async def _stats(self) -> dict[str, Any]:
        with self._lock:
            counts = {name: len(docs) for name, docs in self._collections.items()}
        return {
            "collections": len(counts),
            "documents": sum(counts.values()),
            "by_collection": counts,
        }

    def get_provider_name(self) -> str:
        return "memory"
