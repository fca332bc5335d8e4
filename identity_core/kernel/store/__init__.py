"""
Document store collaborator: interface and SQLAlchemy implementation.
"""

from identity_core.kernel.store.base import Document, DocumentCollection
from identity_core.kernel.store.sql_collection import SqlAlchemyCollection

__all__ = [
    "Document",
    "DocumentCollection",
    "SqlAlchemyCollection",
]
