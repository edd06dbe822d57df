# news_copilot/execution_gate.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

from loguru import logger

from news_copilot.column_detector import detect_forbidden_columns
from news_copilot.config import AppConfig
from news_copilot.query_executor import QueryExecutionError, QueryExecutor, QueryResult
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy
from news_copilot.sql_rewriter import strip_forbidden_columns
from news_copilot.sql_validator import SELECT_ONLY_MESSAGE, validate_sql


class Executor(Protocol):
    def execute(self, sql: str) -> QueryResult: ...


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    executed_query: str
    rows: List[Dict[str, Any]] = field(default_factory=list)
    row_count: int = 0
    columns: Tuple[str, ...] = ()
    warning: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "executedQuery": self.executed_query,
        }
        if self.success:
            out["rows"] = self.rows
            out["rowCount"] = self.row_count
        if self.warning:
            out["warning"] = self.warning
        if not self.success:
            out["error"] = self.error
        return out


def stripped_columns_warning(columns: Tuple[str, ...]) -> str:
    return f"Forbidden columns ({', '.join(columns)}) were automatically removed from the query."


class ExecutionGate:
    """
    Last stop before the database: SELECT-only, forbidden projections
    rewritten, and every outcome returned as an ExecutionResult.
    """

    def __init__(
        self,
        executor: Executor,
        *,
        column_policy: Optional[ColumnPolicy] = None,
        sql_policy: Optional[SQLPolicy] = None,
    ):
        self.executor = executor
        self.column_policy = column_policy or ARTICLES_POLICY
        self.sql_policy = sql_policy or SQLPolicy()

    @classmethod
    def from_config(cls, config: AppConfig, database_url: Optional[str] = None) -> "ExecutionGate":
        return cls(
            QueryExecutor.from_config(config, database_url=database_url),
            column_policy=config.column_policy,
        )

    def execute(self, query: str, column_policy: Optional[ColumnPolicy] = None) -> ExecutionResult:
        policy = column_policy or self.column_policy

        dec = validate_sql(query, policy=self.sql_policy)
        if not dec.ok:
            logger.warning("Rejected statement ({}): {!r}", ", ".join(dec.reasons), query)
            return ExecutionResult(
                success=False,
                executed_query=query or "",
                error=SELECT_ONLY_MESSAGE,
                error_code="validation_failed",
            )

        sql = query
        warning = None
        report = detect_forbidden_columns(query, policy)
        if report.has_forbidden:
            sql = strip_forbidden_columns(query, policy)
            warning = stripped_columns_warning(report.forbidden_columns)
            logger.warning(
                "Query contains forbidden columns: {}. Executing sanitized query instead",
                ", ".join(report.forbidden_columns),
            )

        try:
            res = self.executor.execute(sql)
        except QueryExecutionError as e:
            logger.error("Query failed ({}): {}", e.code, e)
            return ExecutionResult(
                success=False,
                executed_query=sql,
                warning=warning,
                error=str(e),
                error_code=e.code,
            )
        except Exception as e:
            # Executors other than QueryExecutor may raise anything
            logger.exception("Executor raised an unexpected error")
            return ExecutionResult(
                success=False,
                executed_query=sql,
                warning=warning,
                error=str(e) or type(e).__name__,
                error_code=QueryExecutionError.code,
            )

        return ExecutionResult(
            success=True,
            executed_query=sql,
            rows=res.rows,
            row_count=res.row_count,
            columns=res.columns,
            warning=warning,
        )


def guarded_execute(
    query: str,
    executor: Executor,
    policy: Optional[ColumnPolicy] = None,
) -> ExecutionResult:
    return ExecutionGate(executor, column_policy=policy).execute(query)
