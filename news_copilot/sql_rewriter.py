# news_copilot/sql_rewriter.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from news_copilot.column_detector import forbidden_names_in
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy
from news_copilot.sql_projection import (
    COMMENT,
    extract_projection,
    normalize_column_name,
    outer_limit,
    targets_guarded_table,
    tokenize,
)


@dataclass(frozen=True)
class RewriteResult:
    sql: str
    applied: Tuple[str, ...]


def _is_forbidden_expression(expression: str, policy: ColumnPolicy) -> bool:
    if policy.is_forbidden(normalize_column_name(expression)):
        return True
    # content AS c, upper(content): still a reference, so the
    # rewritten query must not keep it
    return bool(forbidden_names_in(expression, policy))


def strip_forbidden_columns(sql: str, policy: Optional[ColumnPolicy] = None) -> str:
    """
    Remove forbidden column expressions from the SELECT list.

    Kept expressions stay verbatim apart from comments, which are dropped
    from a rebuilt projection. If nothing survives, the policy's allowed
    columns become the projection. Everything after FROM is left
    byte-identical, and a query with no forbidden name in its projection
    is returned as is.
    """
    policy = policy or ARTICLES_POLICY

    parsed = extract_projection(sql)
    if parsed is None or not targets_guarded_table(sql, policy):
        return sql
    if not forbidden_names_in(parsed.text, policy):
        return sql

    kept: List[str] = [e for e in parsed.expressions if not _is_forbidden_expression(e, policy)]
    modifier = parsed.modifier
    if modifier and forbidden_names_in(modifier, policy):
        modifier = ""

    if not kept:
        kept = list(policy.allowed_columns)

    head = f"{modifier} " if modifier else ""
    projection = head + ", ".join(kept)
    return f"{sql[:parsed.select_start]}SELECT {projection} FROM{sql[parsed.from_end:]}"


def enforce_limit(validated_sql: str, policy: Optional[SQLPolicy] = None) -> RewriteResult:
    policy = policy or SQLPolicy()
    sql = validated_sql.strip()
    applied = []

    if sql.endswith(";"):
        sql = sql.rstrip(";").rstrip()
        applied.append("stripped_semicolon")

    tokens = tokenize(sql)
    limit_idx, value_idx = outer_limit(tokens)

    # If LIMIT missing, add it.
    if limit_idx is None:
        # a trailing -- comment would swallow the clause
        sep = "\n" if tokens and tokens[-1].kind == COMMENT else " "
        sql = f"{sql}{sep}LIMIT {policy.default_limit}"
        applied.append("added_limit")
        return RewriteResult(sql=sql, applied=tuple(applied))

    # If LIMIT present, cap it.
    if value_idx is not None:
        value = tokens[value_idx]
        text = value.text.upper()
        if text == "ALL" or (text.isdigit() and int(text) > policy.max_limit):
            sql = f"{sql[:value.start]}{policy.max_limit}{sql[value.end:]}"
            applied.append("capped_limit")

    return RewriteResult(sql=sql, applied=tuple(applied))
