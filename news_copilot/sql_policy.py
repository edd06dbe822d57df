# news_copilot/sql_policy.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple


@dataclass(frozen=True)
class SQLPolicy:
    # Hard guarantees
    allow_only_select: bool = True

    # LIMIT policy for guarded-table queries (enforced by rewriter on the
    # generation path only, the execution gate never touches LIMIT)
    default_limit: int = 10
    max_limit: int = 10


@dataclass(frozen=True)
class ColumnPolicy:
    """
    Projection policy for a single guarded table.

    forbidden_columns keep declaration order (detection reports matches in
    that order). Names are lowercased on construction.
    """

    guarded_table: str
    forbidden_columns: Tuple[str, ...]
    allowed_columns: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        table = (self.guarded_table or "").strip()
        if not table:
            raise ValueError("guarded_table must be a non-empty table name")

        forbidden = _dedupe(c.strip().lower() for c in self.forbidden_columns if c and c.strip())
        allowed = _dedupe(c.strip() for c in self.allowed_columns if c and c.strip())

        if not allowed:
            raise ValueError("allowed_columns must name at least one fallback column")

        overlap = sorted(set(forbidden) & {c.lower() for c in allowed})
        if overlap:
            raise ValueError(f"columns both forbidden and allowed: {', '.join(overlap)}")

        object.__setattr__(self, "guarded_table", table)
        object.__setattr__(self, "forbidden_columns", forbidden)
        object.__setattr__(self, "allowed_columns", allowed)

    def is_forbidden(self, column_name: str) -> bool:
        return column_name.lower() in self.forbidden_columns

    def with_overrides(
        self,
        *,
        guarded_table: Optional[str] = None,
        forbidden_columns: Optional[Iterable[str]] = None,
        allowed_columns: Optional[Iterable[str]] = None,
    ) -> "ColumnPolicy":
        return ColumnPolicy(
            guarded_table=guarded_table or self.guarded_table,
            forbidden_columns=tuple(forbidden_columns) if forbidden_columns is not None else self.forbidden_columns,
            allowed_columns=tuple(allowed_columns) if allowed_columns is not None else self.allowed_columns,
        )


def _dedupe(names: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for n in names:
        if n not in seen:
            seen.append(n)
    return tuple(seen)


ARTICLES_TABLE = "articles"

FORBIDDEN_ARTICLE_COLUMNS: Tuple[str, ...] = (
    "content", "body", "full_text", "html", "raw_content",
)

ALLOWED_ARTICLE_COLUMNS: Tuple[str, ...] = (
    "id", "title", "slug", "symbols", "url", "published_at",
)

ARTICLES_POLICY = ColumnPolicy(
    guarded_table=ARTICLES_TABLE,
    forbidden_columns=FORBIDDEN_ARTICLE_COLUMNS,
    allowed_columns=ALLOWED_ARTICLE_COLUMNS,
)


STARTS_WITH_SELECT_RE = re.compile(r"^\s*SELECT\b", re.IGNORECASE)
