"""
Document collection interface consumed by the credential store.

Records are plain dicts. Every method is one atomic store operation.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

Document = Dict[str, Any]


class DocumentCollection(ABC):
    """A keyed collection of documents with query-by-field."""

    @abstractmethod
    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Document]:
        """First document whose fields equal every value in filter, or None."""

    @abstractmethod
    async def find_by_id(self, key: Any) -> Optional[Document]:
        """Document whose key field equals key, or None."""

    @abstractmethod
    async def insert(self, record: Mapping[str, Any]) -> Document:
        """Persist a new document and return it as stored."""

    @abstractmethod
    async def update_one(self, filter: Mapping[str, Any], changes: Mapping[str, Any]) -> Optional[Document]:
        """Apply changes to the first matching document; None if nothing matched."""

    @abstractmethod
    async def delete_one(self, filter: Mapping[str, Any]) -> int:
        """Delete the first matching document. Returns 0 or 1."""

    @abstractmethod
    async def delete_many(self, filter: Mapping[str, Any]) -> int:
        """Delete every matching document. Returns the number deleted."""

    @abstractmethod
    async def count(self, filter: Mapping[str, Any]) -> int:
        """Number of matching documents."""
