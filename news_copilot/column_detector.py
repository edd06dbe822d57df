# news_copilot/column_detector.py
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Pattern, Tuple

from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy
from news_copilot.sql_projection import extract_projection, targets_guarded_table


@dataclass(frozen=True)
class ViolationReport:
    has_forbidden: bool
    forbidden_columns: Tuple[str, ...]


NO_VIOLATION = ViolationReport(has_forbidden=False, forbidden_columns=())


@lru_cache(maxsize=256)
def column_word_re(column: str) -> Pattern[str]:
    # \b keeps contents_summary from matching content
    return re.compile(rf"\b{re.escape(column)}\b", re.IGNORECASE)


def forbidden_names_in(text: str, policy: ColumnPolicy) -> Tuple[str, ...]:
    return tuple(c for c in policy.forbidden_columns if column_word_re(c).search(text))


def detect_forbidden_columns(sql: str, policy: Optional[ColumnPolicy] = None) -> ViolationReport:
    """
    Forbidden columns referenced in the SELECT list of a query against the
    guarded table, in policy order.

    Fails open: queries against other tables, or without an extractable
    SELECT ... FROM pair, report no violation.
    """
    policy = policy or ARTICLES_POLICY

    if not sql or not targets_guarded_table(sql, policy):
        return NO_VIOLATION

    parsed = extract_projection(sql)
    if parsed is None:
        return NO_VIOLATION

    found = forbidden_names_in(parsed.text, policy)
    return ViolationReport(has_forbidden=bool(found), forbidden_columns=found)
