# news_copilot/sql_validator.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from news_copilot.sql_policy import SQLPolicy, STARTS_WITH_SELECT_RE


SELECT_ONLY_MESSAGE = "Only SELECT queries are allowed for security reasons"


@dataclass(frozen=True)
class ValidationDecision:
    ok: bool
    reasons: Tuple[str, ...]


def validate_sql(raw_sql: Optional[str], policy: Optional[SQLPolicy] = None) -> ValidationDecision:
    """Statement-type check. Nothing that fails here is ever auto-corrected."""
    policy = policy or SQLPolicy()
    reasons: List[str] = []

    if raw_sql is None or not raw_sql.strip():
        return ValidationDecision(ok=False, reasons=("empty_sql",))

    if policy.allow_only_select and not STARTS_WITH_SELECT_RE.search(raw_sql):
        reasons.append("not_select")

    return ValidationDecision(ok=not reasons, reasons=tuple(reasons))
