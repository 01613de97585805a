"""SQLAlchemy-backed :class:`ExecutionBackend`.

Statements are sent with ``Connection.exec_driver_sql`` so the rendered
text reaches the driver verbatim: SQLAlchemy's ``text()`` construct would
read ``:name`` sequences inside the statement as bind parameters.

Outside an explicit :meth:`SqlAlchemyBackend.begin` every call runs in its
own short transaction that is committed immediately.  Inside one, nothing
is committed until :meth:`SqlAlchemyBackend.commit`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine, RootTransaction

from merge_engine.config import Settings
from merge_engine.errors import ExecutionError

logger = logging.getLogger(__name__)


class SqlAlchemyBackend:
    """Execute rendered statements on a synchronous SQLAlchemy connection.

    Parameters
    ----------
    connection:
        An open connection.  The backend does not close it.
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._transaction: RootTransaction | None = None

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    # -- Statements ----------------------------------------------------------

    def execute(self, statement: str) -> int:
        with self._implicit_transaction():
            result = self._connection.exec_driver_sql(statement)
            rowcount = result.rowcount
            result.close()
        if rowcount is None:
            rowcount = -1
        logger.debug("Statement affected %d row(s)", rowcount)
        return int(rowcount)

    def scalar(self, statement: str) -> Any:
        with self._implicit_transaction():
            return self._connection.exec_driver_sql(statement).scalar()

    def fetch_rows(self, statement: str) -> list[dict[str, Any]]:
        with self._implicit_transaction():
            return [dict(row) for row in self._connection.exec_driver_sql(statement).mappings()]

    # -- Transactions --------------------------------------------------------

    def begin(self) -> None:
        if self._transaction is not None:
            raise ExecutionError("A transaction is already open on this backend.")
        if self._connection.in_transaction():
            # Left over from autobegin; there is no pending work of ours in it.
            self._connection.commit()
        self._transaction = self._connection.begin()

    def commit(self) -> None:
        if self._transaction is None:
            raise ExecutionError("No transaction is open on this backend.")
        transaction, self._transaction = self._transaction, None
        transaction.commit()

    def rollback(self) -> None:
        transaction, self._transaction = self._transaction, None
        if transaction is not None:
            transaction.rollback()
        elif self._connection.in_transaction():
            self._connection.rollback()

    @contextmanager
    def _implicit_transaction(self) -> Iterator[None]:
        """Commit (or roll back on error) the autobegun transaction of a standalone call."""
        if self._transaction is not None:
            yield
            return
        try:
            yield
        except Exception:
            if self._connection.in_transaction():
                self._connection.rollback()
            raise
        if self._connection.in_transaction():
            self._connection.commit()


def get_engine(settings: Settings) -> Engine:
    """Create a SQLAlchemy engine from ``settings.database_url``.

    Raises
    ------
    ExecutionError
        If no database URL is configured.
    """
    if settings.database_url is None:
        raise ExecutionError("MERGE_DATABASE_URL is not configured.")
    engine = create_engine(
        settings.database_url.get_secret_value(),
        pool_pre_ping=True,
        echo=settings.debug,
    )
    logger.info("Created engine for dialect %s", engine.dialect.name)
    return engine


@contextmanager
def connect_backend(engine: Engine) -> Iterator[SqlAlchemyBackend]:
    """Yield a backend on a fresh connection; roll back anything left open on exit."""
    with engine.connect() as connection:
        backend = SqlAlchemyBackend(connection)
        try:
            yield backend
        finally:
            if backend.in_transaction:
                logger.warning("Backend closed with an open transaction; rolling back")
                backend.rollback()
