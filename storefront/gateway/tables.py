# storefront/gateway/tables.py
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from storefront.db.session import Base
import storefront.db.models  # noqa: F401  registers the tables on Base.metadata
from storefront.errors import GatewayError

logger = logging.getLogger(__name__)


def describe(exc: SQLAlchemyError) -> str:
    """User-facing message for a driver error (the DBAPI message when there is one)."""
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


class TableGateway:
    """
    Table-style access to one relation of the store.

    Reads take equality predicates (``eq`` / ``neq``), an ascending multi-key
    ``order`` and a comma separated projection, and return plain dict rows.
    Writes are single statements. Every failure surfaces as GatewayError.
    """

    def __init__(self, session_factory: sessionmaker, name: str):
        self._session_factory = session_factory
        self.name = name
        try:
            self.table: Table = Base.metadata.tables[name]
        except KeyError:
            raise GatewayError(f'relation "{name}" does not exist') from None

    def _column(self, name: str):
        col = self.table.c.get(name.strip())
        if col is None:
            raise GatewayError(f"column {self.name}.{name.strip()} does not exist")
        return col

    def _projection(self, columns: str):
        if columns.strip() == "*":
            return list(self.table.c)
        return [self._column(c) for c in columns.split(",") if c.strip()]

    def _where(self, stmt, eq: Optional[Dict[str, Any]], neq: Optional[Dict[str, Any]]):
        for k, v in (eq or {}).items():
            stmt = stmt.where(self._column(k) == v)
        for k, v in (neq or {}).items():
            stmt = stmt.where(self._column(k) != v)
        return stmt

    def _values(self, values: Dict[str, Any]) -> Dict[str, Any]:
        for k in values:
            self._column(k)
        return dict(values)

    async def _run(self, op: str, fn: Callable[[Session], Any]):
        def _call():
            with self._session_factory() as db:
                try:
                    return fn(db)
                except SQLAlchemyError as exc:
                    db.rollback()
                    logger.error("%s %s failed: %s", op, self.name, describe(exc))
                    raise GatewayError(describe(exc)) from exc
        return await run_in_threadpool(_call)

    async def select(
        self,
        columns: str = "*",
        *,
        eq: Optional[Dict[str, Any]] = None,
        neq: Optional[Dict[str, Any]] = None,
        order: Iterable[str] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        stmt = self._where(select(*self._projection(columns)), eq, neq)
        for key in order:
            stmt = stmt.order_by(self._column(key).asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self._run("select", lambda db: [dict(r._mapping) for r in db.execute(stmt)])

    async def maybe_single(self, columns: str = "*", *, eq: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Zero rows is None, not an error; more than one row is."""
        rows = await self.select(columns, eq=eq, limit=2)
        if len(rows) > 1:
            raise GatewayError("JSON object requested, multiple (or no) rows returned")
        return rows[0] if rows else None

    async def insert(self, values: Dict[str, Any]) -> Any:
        """Insert one row and return its generated primary key."""
        stmt = insert(self.table).values(**self._values(values))

        def _insert(db: Session):
            res = db.execute(stmt)
            db.commit()
            return res.inserted_primary_key[0]
        return await self._run("insert", _insert)

    async def update(self, values: Dict[str, Any], *, eq: Dict[str, Any]) -> int:
        stmt = self._where(update(self.table), eq, None).values(**self._values(values))

        def _update(db: Session):
            res = db.execute(stmt)
            db.commit()
            return res.rowcount
        return await self._run("update", _update)

    async def delete(self, *, eq: Dict[str, Any]) -> int:
        stmt = self._where(delete(self.table), eq, None)

        def _delete(db: Session):
            res = db.execute(stmt)
            db.commit()
            return res.rowcount
        return await self._run("delete", _delete)
