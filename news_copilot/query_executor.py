# news_copilot/query_executor.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import psycopg
from loguru import logger
from psycopg.rows import dict_row

from news_copilot.config import AppConfig, ConfigurationError


# ----------------------------
# Error taxonomy
# ----------------------------

class QueryExecutionError(Exception):
    code: str = "execution_error"

class ConnectionFailed(QueryExecutionError):
    code = "connection_failed"

class TimeoutExceeded(QueryExecutionError):
    code = "timeout_exceeded"

class RowLimitExceeded(QueryExecutionError):
    code = "row_limit_exceeded"

class PostgresExecutionError(QueryExecutionError):
    code = "postgres_error"


# ----------------------------
# Result object
# ----------------------------

@dataclass(frozen=True)
class QueryResult:
    columns: Tuple[str, ...]
    rows: List[Dict[str, Any]]
    row_count: int
    execution_time_ms: int


# ----------------------------
# Executor
# ----------------------------

class QueryExecutor:
    """
    One dedicated read-only connection per statement. No pooling, no
    retries. The connection is closed on every exit path.
    """

    def __init__(
        self,
        database_url: Optional[str],
        *,
        connect_timeout_s: int = 30,
        statement_timeout_ms: int = 60_000,
        max_rows: int = 1000,
    ):
        if not database_url:
            raise ConfigurationError("No database URL configured (set NEWS_DATABASE_URL)")
        self.database_url = database_url
        self.connect_timeout_s = connect_timeout_s
        self.statement_timeout_ms = statement_timeout_ms
        self.max_rows = max_rows

    @classmethod
    def from_config(cls, config: AppConfig, database_url: Optional[str] = None) -> "QueryExecutor":
        return cls(
            database_url or config.require_database_url(),
            connect_timeout_s=config.connect_timeout_s,
            statement_timeout_ms=config.statement_timeout_ms,
            max_rows=config.max_rows,
        )

    def _connect_readonly(self) -> psycopg.Connection:
        conn = psycopg.connect(
            self.database_url,
            connect_timeout=self.connect_timeout_s,
            options=f"-c statement_timeout={self.statement_timeout_ms}",
            row_factory=dict_row,
        )
        conn.read_only = True
        return conn

    def execute(self, sql: str) -> QueryResult:
        start = time.time()
        conn = None

        try:
            logger.debug("Connecting to PostgreSQL (connect_timeout={}s)", self.connect_timeout_s)
            try:
                conn = self._connect_readonly()
            except psycopg.OperationalError as e:
                raise ConnectionFailed(str(e)) from e

            logger.info("Executing query: {}", sql)
            with conn.cursor() as cur:
                cur.execute(sql)

                rows: List[Dict[str, Any]] = []
                if cur.description is not None:
                    for row in cur:
                        rows.append(dict(row))
                        if len(rows) > self.max_rows:
                            raise RowLimitExceeded(
                                f"row_limit_exceeded: {len(rows)} > {self.max_rows}"
                            )

                columns = tuple(d.name for d in cur.description) if cur.description else ()

            conn.rollback()

            exec_ms = int((time.time() - start) * 1000)
            logger.debug("Query returned {} rows in {}ms", len(rows), exec_ms)

            return QueryResult(
                columns=columns,
                rows=rows,
                row_count=len(rows),
                execution_time_ms=exec_ms,
            )

        except QueryExecutionError:
            raise
        except psycopg.errors.QueryCanceled as e:
            raise TimeoutExceeded(str(e)) from e
        except psycopg.Error as e:
            raise PostgresExecutionError(str(e)) from e
        finally:
            if conn is not None:
                conn.close()
                logger.debug("PostgreSQL connection closed")
