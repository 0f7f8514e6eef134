"""
Generic persistence over a Tortoise model.

The model class is the schema descriptor (table, columns, primary key); rows are
returned as pydantic entities so callers never hold live ORM objects. Reads go to
the replica unless the caller asks for the primary; a repository bound to a
transaction sends everything through the transaction's connection.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Generic, List, Optional, Sequence, Tuple, Type, TypeVar

from opentelemetry import trace
from pydantic import BaseModel
from tortoise import connections, models
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.expressions import Q
from tortoise.transactions import in_transaction

from boilerplate.core.config import (
    DATABASE_MASTER_MAX_QUERY_DURATION_WARNING,
    DATABASE_SLAVE_MAX_QUERY_DURATION_WARNING,
)
from boilerplate.core.db import MASTER, SLAVE
from boilerplate.core.errors import AppError, InternalError, NotFoundError
from boilerplate.schemas.guest import Sort, SortDirection

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

EntityT = TypeVar("EntityT", bound=BaseModel)
R = TypeVar("R")


class DatabaseRepository(Generic[EntityT]):
    model: Type[models.Model]
    entity: Type[EntityT]

    def __init__(
        self,
        master: str = MASTER,
        slave: str = SLAVE,
        master_max_query_duration: float = DATABASE_MASTER_MAX_QUERY_DURATION_WARNING,
        slave_max_query_duration: float = DATABASE_SLAVE_MAX_QUERY_DURATION_WARNING,
        transaction: Optional[BaseDBAsyncClient] = None,
    ):
        self.master = master
        self.slave = slave
        self.master_max_query_duration = master_max_query_duration
        self.slave_max_query_duration = slave_max_query_duration
        self.transaction = transaction

    @property
    def table(self) -> str:
        return self.model._meta.db_table

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self.model._meta.fields_db_projection)

    @property
    def pk(self) -> str:
        return self.model._meta.pk_attr

    def _connection(self, use_master: bool) -> Tuple[BaseDBAsyncClient, float]:
        if self.transaction is not None:
            return self.transaction, self.master_max_query_duration
        if use_master:
            return connections.get(self.master), self.master_max_query_duration
        return connections.get(self.slave), self.slave_max_query_duration

    async def _execute(self, operation: str, query: Awaitable[R], max_duration: float) -> R:
        """Runs one statement inside a span; slow statements only log a warning."""
        with tracer.start_as_current_span(f"{type(self).__name__}.{operation}") as span:
            span.set_attribute("db.sql.table", self.table)
            started = time.perf_counter()
            try:
                return await query
            except AppError:
                raise
            except Exception as exc:
                span.record_exception(exc)
                logger.error("%s on %s failed: %s", operation, self.table, exc)
                raise InternalError(str(exc)) from exc
            finally:
                elapsed = time.perf_counter() - started
                if elapsed > max_duration:
                    logger.warning(
                        "Slow query: %s on %s took %.3fs (threshold %.3fs)",
                        operation, self.table, elapsed, max_duration,
                    )

    def _to_entity(self, row: dict) -> EntityT:
        return self.entity.model_validate(row)

    @staticmethod
    def _orderings(sorts: Optional[Sequence[Sort]]) -> List[str]:
        return [
            f"-{sort.field}" if sort.direction == SortDirection.DESC else sort.field
            for sort in sorts or []
        ]

    def with_transaction(self, transaction: BaseDBAsyncClient) -> "DatabaseRepository[EntityT]":
        return type(self)(
            master=self.master,
            slave=self.slave,
            master_max_query_duration=self.master_max_query_duration,
            slave_max_query_duration=self.slave_max_query_duration,
            transaction=transaction,
        )

    @asynccontextmanager
    async def begin_transaction(self) -> AsyncIterator["DatabaseRepository[EntityT]"]:
        """
        Opens a transaction on the primary and yields a repository bound to it.
        Leaving the block commits; an exception rolls back and is re-raised,
        wrapped in InternalError unless it already belongs to the error taxonomy.
        """
        try:
            async with in_transaction(self.master) as conn:
                yield self.with_transaction(conn)
        except AppError as exc:
            logger.warning("Transaction on %s rolled back: %r", self.table, exc)
            raise
        except Exception as exc:
            logger.error("Transaction on %s rolled back: %s", self.table, exc)
            raise InternalError(str(exc)) from exc

    async def count(self, condition: Q, use_master: bool = False) -> int:
        conn, max_duration = self._connection(use_master)
        query = self.model.filter(condition).using_db(conn).count()
        return await self._execute("count", query, max_duration)

    async def create(self, entity: EntityT) -> None:
        conn, max_duration = self._connection(True)
        values = entity.model_dump(include=set(self.columns))
        await self._execute("create", self.model.create(using_db=conn, **values), max_duration)

    async def update(self, entity: EntityT, condition: Q) -> int:
        """Writes every mapped column except the primary key on rows matching condition."""
        conn, max_duration = self._connection(True)
        values = entity.model_dump(include=set(self.columns) - {self.pk})
        query = self.model.filter(condition).using_db(conn).update(**values)
        return await self._execute("update", query, max_duration)

    async def delete(self, condition: Q) -> int:
        conn, max_duration = self._connection(True)
        query = self.model.filter(condition).using_db(conn).delete()
        return await self._execute("delete", query, max_duration)

    async def find_all(
        self,
        condition: Q,
        sorts: Optional[Sequence[Sort]] = None,
        take: Optional[int] = None,
        skip: int = 0,
        use_master: bool = False,
    ) -> List[EntityT]:
        # LIMIT 0 selects nothing
        if take == 0:
            return []

        conn, max_duration = self._connection(use_master)
        query = self.model.filter(condition).using_db(conn)
        orderings = self._orderings(sorts)
        if orderings:
            query = query.order_by(*orderings)
        if skip:
            query = query.offset(skip)
        if take is not None:
            query = query.limit(take)

        rows = await self._execute("find_all", query.values(*self.columns), max_duration)
        return [self._to_entity(row) for row in rows]

    async def find_one(
        self,
        condition: Q,
        sorts: Optional[Sequence[Sort]] = None,
        use_master: bool = False,
    ) -> EntityT:
        """Same as find_all limited to one row; raises NotFoundError when nothing matches."""
        rows = await self.find_all(condition, sorts=sorts, take=1, use_master=use_master)
        if not rows:
            raise NotFoundError(f"{self.table} not found")
        return rows[0]
