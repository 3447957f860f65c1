"""
Abstract interface for persistent store providers.

All database providers must implement this interface to ensure
consistent behavior and easy hot-swapping. Documents are plain dicts;
every returned document carries its identifier under "id".
"""
from __future__ import annotations

from abc import abstractmethod
from typing import Any, ClassVar, Mapping

from ...exceptions import DatabaseError, ValidationError
from ..base import ProviderInterface
from ..configs import DatabaseConfig

Document = dict[str, Any]

MAX_FIND_LIMIT = 1000


class DatabaseProviderInterface(ProviderInterface):
    """
    Abstract interface for document stores.

    All implementations must provide:
    - Document CRUD (_insert, _get, _find, _update, _delete)
    - Store statistics (_stats)
    - Connection management
    """

    family: ClassVar[str] = "database"

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__()
        self._config = config

    @staticmethod
    def _check_collection(collection: str) -> None:
        if not collection or "/" in collection or collection.startswith("$"):
            raise ValidationError(f"Invalid collection name '{collection}'")

    async def insert(self, collection: str, document: Mapping[str, Any]) -> str:
        """Insert a document and return its generated ID."""
        self._check_collection(collection)
        self._ensure_available()
        fields = {k: v for k, v in document.items() if k != "id"}
        return await self._call(
            "insert", self._insert(collection, fields),
            timeout=self._config.call_timeout, error_cls=DatabaseError, target=collection,
        )

    async def get(self, collection: str, doc_id: str) -> Document | None:
        """Fetch one document by ID, or None if it does not exist."""
        self._check_collection(collection)
        self._ensure_available()
        return await self._call(
            "get", self._get(collection, doc_id),
            timeout=self._config.call_timeout, error_cls=DatabaseError, target=f"{collection}/{doc_id}",
        )

    async def find(
        self,
        collection: str,
        filters: Mapping[str, Any] | None = None,
        limit: int = 100,
    ) -> list[Document]:
        """Find documents whose fields equal every value in ``filters``."""
        self._check_collection(collection)
        if limit < 1 or limit > MAX_FIND_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_FIND_LIMIT}")
        self._ensure_available()
        return await self._call(
            "find", self._find(collection, dict(filters or {}), limit),
            timeout=self._config.call_timeout, error_cls=DatabaseError, target=collection,
        )

    async def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> bool:
        """Merge fields into a document. Returns False if it does not exist."""
        self._check_collection(collection)
        self._ensure_available()
        changes = {k: v for k, v in fields.items() if k != "id"}
        return await self._call(
            "update", self._update(collection, doc_id, changes),
            timeout=self._config.call_timeout, error_cls=DatabaseError, target=f"{collection}/{doc_id}",
        )

    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""
        self._check_collection(collection)
        self._ensure_available()
        return await self._call(
            "delete", self._delete(collection, doc_id),
            timeout=self._config.call_timeout, error_cls=DatabaseError, target=f"{collection}/{doc_id}",
        )

    async def stats(self) -> dict[str, Any]:
        self._ensure_available()
        stats = await self._call(
            "stats", self._stats(),
            timeout=self._config.call_timeout, error_cls=DatabaseError,
        )
        return {"provider": self.get_provider_name(), **stats}

    @abstractmethod
    async def _insert(self, collection: str, document: Document) -> str: ...

    @abstractmethod
    async def _get(self, collection: str, doc_id: str) -> Document | None: ...

    @abstractmethod
    async def _find(self, collection: str, filters: Document, limit: int) -> list[Document]: ...

    @abstractmethod
    async def _update(self, collection: str, doc_id: str, fields: Document) -> bool: ...

    @abstractmethod
    async def _delete(self, collection: str, doc_id: str) -> bool: ...

    @abstractmethod
    async def _stats(self) -> dict[str, Any]: ...
