# tests/conftest.py
import datetime as dt
from typing import Any, Dict, List, Optional

import pytest
from loguru import logger

from news_copilot.query_executor import QueryResult


class FakeExecutor:
    """Stands in for QueryExecutor: records statements, replays rows or errors."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, errors: Optional[List[Exception]] = None):
        self.rows = rows or []
        self.errors = list(errors or [])
        self.executed: List[str] = []

    def execute(self, sql: str) -> QueryResult:
        self.executed.append(sql)
        if self.errors:
            raise self.errors.pop(0)
        columns = tuple(self.rows[0].keys()) if self.rows else ()
        return QueryResult(columns=columns, rows=list(self.rows), row_count=len(self.rows), execution_time_ms=1)


@pytest.fixture
def article_rows():
    return [
        {
            "id": 2,
            "title": "FPT công bố kết quả kinh doanh quý 3",
            "slug": "fpt-cong-bo-ket-qua-kinh-doanh-quy-3",
            "symbols": ["FPT"],
            "url": "https://cafef.vn/abc",
            "published_at": dt.datetime(2024, 12, 15, 8, 30),
        },
        {
            "id": 1,
            "title": "FPT ký hợp đồng mới với đối tác quốc tế",
            "slug": None,
            "symbols": ["FPT"],
            "url": "https://cafef.vn/def",
            "published_at": dt.datetime(2024, 12, 14, 17, 0),
        },
    ]


@pytest.fixture
def fake_executor(article_rows):
    return FakeExecutor(rows=article_rows)


@pytest.fixture
def make_executor():
    return FakeExecutor


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    # the CLI installs a stderr sink bound to the captured stream
    yield
    logger.remove()
