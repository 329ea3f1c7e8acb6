# pg_db.py
from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extensions import connection as pg_connection
from psycopg2.extras import RealDictCursor

logger = logging.getLogger(__name__)


class PgSession:
    """Запросы поверх одного уже открытого соединения."""

    def __init__(self, conn: pg_connection) -> None:
        self._conn = conn

    def fetch_one(self, sql: str, params: Iterable[Any] | None = None) -> dict[str, Any] | None:
        cur = self._conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(sql, params)
            row = cur.fetchone()
            # row может быть None, либо RealDictRow (dict-подобный)
            return dict(row) if row is not None else None
        finally:
            cur.close()

    def fetch_all(self, sql: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        cur = self._conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(sql, params)
            return [dict(r) for r in cur.fetchall()]
        finally:
            cur.close()

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> int:
        cur = self._conn.cursor(cursor_factory=RealDictCursor)
        try:
            cur.execute(sql, params)
            return cur.rowcount
        finally:
            cur.close()

    def execute_returning(
        self, sql: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        """Запрос с RETURNING: первая строка результата (dict) либо None."""
        return self.fetch_one(sql, params)


class PgDB:
    """
    Доступ к PostgreSQL без ORM. Экземпляр передаётся в репозитории явно.

    Вне transaction() каждый вызов открывает соединение с autocommit=True
    и сразу закрывает его. Внутри transaction() вызовы из того же потока
    идут через одно соединение и фиксируются вместе (или откатываются).
    """

    def __init__(self, **conn_params: Any) -> None:
        self._conn_params = {k: v for k, v in conn_params.items() if v is not None}
        self._local = threading.local()

    def connect(self) -> pg_connection:
        conn: pg_connection = psycopg2.connect(**self._conn_params)  # type: ignore[call-arg]
        conn.autocommit = True
        return conn

    @contextmanager
    def transaction(self) -> Iterator[PgSession]:
        current: PgSession | None = getattr(self._local, "session", None)
        if current is not None:
            # вложенная транзакция: работаем в уже открытой
            yield current
            return

        conn: pg_connection = psycopg2.connect(**self._conn_params)  # type: ignore[call-arg]
        conn.autocommit = False
        session = PgSession(conn)
        self._local.session = session
        try:
            yield session
            conn.commit()
        except Exception:
            conn.rollback()
            logger.debug("Транзакция откачена")
            raise
        finally:
            self._local.session = None
            conn.close()

    def _run(self, method: str, sql: str, params: Iterable[Any] | None) -> Any:
        current: PgSession | None = getattr(self._local, "session", None)
        if current is not None:
            return getattr(current, method)(sql, params)
        conn = self.connect()
        try:
            return getattr(PgSession(conn), method)(sql, params)
        finally:
            conn.close()

    # --- Простые обёртки: открыть соединение, выполнить запрос, закрыть. ---

    def fetch_one(self, sql: str, params: Iterable[Any] | None = None) -> dict[str, Any] | None:
        return self._run("fetch_one", sql, params)

    def fetch_all(self, sql: str, params: Iterable[Any] | None = None) -> list[dict[str, Any]]:
        return self._run("fetch_all", sql, params)

    def execute(self, sql: str, params: Iterable[Any] | None = None) -> int:
        return self._run("execute", sql, params)

    def execute_returning(
        self, sql: str, params: Iterable[Any] | None = None
    ) -> dict[str, Any] | None:
        return self._run("execute_returning", sql, params)
