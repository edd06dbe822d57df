# news_copilot/pipeline.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from news_copilot.column_detector import ViolationReport, detect_forbidden_columns
from news_copilot.execution_gate import ExecutionGate, ExecutionResult
from news_copilot.generation import SQLDrafter
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy
from news_copilot.sql_projection import targets_guarded_table
from news_copilot.sql_rewriter import enforce_limit, strip_forbidden_columns
from news_copilot.sql_validator import ValidationDecision, validate_sql


@dataclass(frozen=True)
class PreparedSQL:
    sql: str
    violation: ViolationReport
    applied: Tuple[str, ...]
    notes: Tuple[str, ...]


@dataclass(frozen=True)
class PipelineResult:
    sql_raw: str
    sql_clean: str
    validation: ValidationDecision
    prepared: Optional[PreparedSQL]
    final_sql: Optional[str]
    explanation: str
    assumptions: Tuple[str, ...]
    meta: Dict[str, Any]


def prepare_sql(
    sql: str,
    policy: Optional[SQLPolicy] = None,
    column_policy: Optional[ColumnPolicy] = None,
) -> PreparedSQL:
    """
    Column guard + LIMIT policy for a statement that already passed
    validate_sql. Pure; never raises.
    """
    policy = policy or SQLPolicy()
    column_policy = column_policy or ARTICLES_POLICY

    applied = []
    notes = []

    report = detect_forbidden_columns(sql, column_policy)
    if report.has_forbidden:
        cols = ", ".join(report.forbidden_columns)
        logger.warning("Generated SQL contains forbidden columns: {}. Sanitizing...", cols)
        sql = strip_forbidden_columns(sql, column_policy)
        applied.append("stripped_forbidden_columns")
        notes.append(f"Forbidden columns ({cols}) were detected and removed from the SELECT clause.")

    if targets_guarded_table(sql, column_policy):
        limited = enforce_limit(sql, policy)
        sql = limited.sql
        applied.extend(limited.applied)

    return PreparedSQL(sql=sql, violation=report, applied=tuple(applied), notes=tuple(notes))


def generate_validate_rewrite(
    question: str,
    generator: SQLDrafter,
    policy: Optional[SQLPolicy] = None,
    column_policy: Optional[ColumnPolicy] = None,
    error_context: Optional[str] = None,
) -> PipelineResult:
    policy = policy or SQLPolicy()

    gen_res = generator.generate_sql(question, policy=policy, error_context=error_context)
    dec = validate_sql(gen_res.sql_clean, policy=policy)

    prepared = None
    final_sql = None
    explanation = gen_res.explanation
    assumptions = gen_res.assumptions
    if dec.ok:
        prepared = prepare_sql(gen_res.sql_clean, policy=policy, column_policy=column_policy)
        final_sql = prepared.sql
        if prepared.notes:
            explanation = f"{explanation} [Note: {' '.join(prepared.notes)}]".strip()
            assumptions = assumptions + prepared.notes

    return PipelineResult(
        sql_raw=gen_res.sql_raw,
        sql_clean=gen_res.sql_clean,
        validation=dec,
        prepared=prepared,
        final_sql=final_sql,
        explanation=explanation,
        assumptions=assumptions,
        meta={
            "latency_ms": gen_res.latency_ms,
            "model_name": gen_res.model_name,
            **gen_res.meta,
        },
    )


def generate_validate_execute(
    question: str,
    generator: SQLDrafter,
    gate: ExecutionGate,
    policy: Optional[SQLPolicy] = None,
) -> Tuple[PipelineResult, Optional[ExecutionResult]]:
    out = generate_validate_rewrite(question, generator, policy=policy, column_policy=gate.column_policy)
    if out.final_sql is None:
        return out, None
    return out, gate.execute(out.final_sql)
