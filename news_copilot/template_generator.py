# news_copilot/template_generator.py
from __future__ import annotations

import re
import time
from typing import Optional, Tuple

from news_copilot.generation import GenerationResult
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy


STOCK_CODE_RE = re.compile(r"\b[A-Z][A-Z0-9]{1,3}\b")

# Upper-case tokens that show up in questions but are not tickers
NOT_TICKERS = frozenset({
    "AI", "API", "CEO", "CFO", "ETF", "GDP", "IPO", "OK", "SQL", "USD", "VND", "VN",
    "HOSE", "HNX", "UPCOM", "THE", "AND", "FOR", "NEWS", "TIN",
})


def extract_stock_symbols(question: str) -> Tuple[str, ...]:
    found = []
    for code in STOCK_CODE_RE.findall(question or ""):
        if code not in NOT_TICKERS and code not in found:
            found.append(code)
    return tuple(found)


def build_articles_query(
    column_policy: ColumnPolicy,
    symbols: Tuple[str, ...] = (),
    limit: int = 10,
) -> str:
    cols = ", ".join(column_policy.allowed_columns)
    lines = [f"SELECT {cols}", f"FROM {column_policy.guarded_table}"]
    if len(symbols) == 1:
        lines.append(f"WHERE symbols @> ARRAY['{symbols[0]}']::text[]")
    elif symbols:
        codes = ", ".join(f"'{s}'" for s in symbols)
        lines.append(f"WHERE symbols && ARRAY[{codes}]::text[]")
    lines.append("ORDER BY published_at DESC")
    lines.append(f"LIMIT {limit}")
    return "\n".join(lines)


class TemplateSQLGenerator:
    """
    Offline drafter: latest news, or news for the stock codes named in
    the question. No model involved.
    """

    model_name = "template"

    def __init__(self, *, column_policy: Optional[ColumnPolicy] = None):
        self.column_policy = column_policy or ARTICLES_POLICY

    def generate_sql(
        self,
        question: str,
        policy: Optional[SQLPolicy] = None,
        error_context: Optional[str] = None,
    ) -> GenerationResult:
        policy = policy or SQLPolicy()
        t0 = time.time()

        symbols = extract_stock_symbols(question)
        sql = build_articles_query(self.column_policy, symbols, limit=policy.default_limit)

        if symbols:
            explanation = f"Latest articles tagged with {', '.join(symbols)}."
        else:
            explanation = "Latest articles across the market."

        return GenerationResult(
            sql_raw=sql,
            sql_clean=sql,
            prompt="",
            model_name=self.model_name,
            latency_ms=int((time.time() - t0) * 1000),
            meta={"backend": "template", "symbols": list(symbols)},
            explanation=explanation,
        )
