"""
SQLAlchemy implementation of DocumentCollection.

Each call opens its own session and commits before returning, so no
partial write is ever observable. Driver errors are translated into the
store error taxonomy and chained to the original exception.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Mapping, Optional, Type

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from identity_core.kernel.identity.errors import (
    DuplicateRecordError,
    InvalidArgumentError,
    StoreUnavailableError,
)
from identity_core.kernel.models import Base
from identity_core.kernel.store.base import Document, DocumentCollection


class SqlAlchemyCollection(DocumentCollection):
    """
    Collection backed by one declarative model.

    Usage:
        users = SqlAlchemyCollection(session_maker, User, key_field="user_id")
        doc = await users.find_one({"username": "alice"})
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        model: Type[Base],
        key_field: str = "id",
    ):
        self.session_maker = session_maker
        self.model = model
        self.fields = tuple(model.__table__.columns.keys())
        if key_field not in self.fields:
            raise InvalidArgumentError(f"{model.__name__} has no field {key_field!r}")
        self.key_field = key_field

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_maker() as session:
                yield session
        except IntegrityError as exc:
            raise DuplicateRecordError(
                f"{self.model.__tablename__}: unique constraint violated"
            ) from exc
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"{self.model.__tablename__}: store operation failed"
            ) from exc

    def _check_fields(self, values: Mapping[str, Any]) -> None:
        unknown = set(values) - set(self.fields)
        if unknown:
            raise InvalidArgumentError(
                f"unknown {self.model.__tablename__} field(s): {', '.join(sorted(unknown))}"
            )

    def _conditions(self, filter: Mapping[str, Any]) -> List[Any]:
        self._check_fields(filter)
        return [getattr(self.model, name) == value for name, value in filter.items()]

    def _to_document(self, row) -> Document:
        return {name: getattr(row, name) for name in self.fields}

    async def _first(self, session: AsyncSession, filter: Mapping[str, Any]):
        query = select(self.model).where(*self._conditions(filter)).limit(1)
        result = await session.execute(query)
        return result.scalars().first()

    async def find_one(self, filter: Mapping[str, Any]) -> Optional[Document]:
        async with self._session() as session:
            row = await self._first(session, filter)
            return self._to_document(row) if row is not None else None

    async def find_by_id(self, key: Any) -> Optional[Document]:
        return await self.find_one({self.key_field: key})

    async def insert(self, record: Mapping[str, Any]) -> Document:
        self._check_fields(record)
        async with self._session() as session:
            row = self.model(**record)
            session.add(row)
            await session.commit()
            return self._to_document(row)

    async def update_one(self, filter: Mapping[str, Any], changes: Mapping[str, Any]) -> Optional[Document]:
        self._check_fields(changes)
        async with self._session() as session:
            row = await self._first(session, filter)
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, value)
            await session.commit()
            return self._to_document(row)

    async def delete_one(self, filter: Mapping[str, Any]) -> int:
        async with self._session() as session:
            row = await self._first(session, filter)
            if row is None:
                return 0
            await session.delete(row)
            await session.commit()
            return 1

    async def delete_many(self, filter: Mapping[str, Any]) -> int:
        if not filter:
            raise InvalidArgumentError("delete_many requires a non-empty filter")
        async with self._session() as session:
            result = await session.execute(delete(self.model).where(*self._conditions(filter)))
            await session.commit()
            return result.rowcount

    async def count(self, filter: Mapping[str, Any]) -> int:
        async with self._session() as session:
            query = select(func.count()).select_from(self.model).where(*self._conditions(filter))
            result = await session.execute(query)
            return result.scalar_one()
