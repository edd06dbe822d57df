# news_copilot/retry_logic.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from news_copilot.execution_gate import ExecutionGate, ExecutionResult
from news_copilot.generation import GenerationResult, SQLDrafter
from news_copilot.pipeline import prepare_sql
from news_copilot.sql_policy import SQLPolicy
from news_copilot.sql_validator import validate_sql


FIX_INSTRUCTION = (
    "Fix the SQL. Use only schema columns. Never select forbidden columns. Output SQL only."
)


@dataclass(frozen=True)
class ErrorFeedback:
    category: str  # "validation" | "oscillation" | an ExecutionResult.error_code
    message: str
    details: Dict[str, Any]


@dataclass(frozen=True)
class AttemptRecord:
    attempt: int
    sql_raw: str
    sql_clean: str
    validated_ok: bool
    validation_reasons: Tuple[str, ...]
    rewritten_sql: Optional[str]
    executed_ok: bool
    error_feedback: Optional[ErrorFeedback]
    latency_ms: int
    warning: Optional[str] = None


@dataclass(frozen=True)
class RetryResult:
    ok: bool
    final_sql: Optional[str]
    result: Optional[ExecutionResult]
    attempts: Tuple[AttemptRecord, ...]
    stop_reason: str  # "success" | "max_retries" | "oscillation"
    explanation: str = ""


def _attempt(i: int, draft: GenerationResult, **kw: Any) -> AttemptRecord:
    return AttemptRecord(
        attempt=i,
        sql_raw=draft.sql_raw,
        sql_clean=draft.sql_clean,
        latency_ms=draft.latency_ms,
        **kw,
    )


def _sql_key(sql: str) -> str:
    return " ".join(sql.split()).upper()


class RetryRunner:
    """
    Caller-side retry with self-correction. The gate never retries; this
    runner re-asks the drafter with structured feedback instead.
    """

    def __init__(
        self,
        generator: SQLDrafter,
        gate: ExecutionGate,
        *,
        policy: Optional[SQLPolicy] = None,
        max_attempts: int = 3,
        stop_on_repeat_sql: bool = True,
    ):
        self.generator = generator
        self.gate = gate
        self.policy = policy or SQLPolicy()
        self.max_attempts = max_attempts
        self.stop_on_repeat_sql = stop_on_repeat_sql

    def run(self, question: str) -> RetryResult:
        attempts: List[AttemptRecord] = []
        first_seen: Dict[str, int] = {}
        context = ""

        for i in range(1, self.max_attempts + 1):
            draft: GenerationResult = self.generator.generate_sql(
                question, policy=self.policy, error_context=context
            )

            key = _sql_key(draft.sql_clean)
            if self.stop_on_repeat_sql and key in first_seen:
                earlier = first_seen[key]
                attempts.append(_attempt(
                    i,
                    draft,
                    validated_ok=False,
                    validation_reasons=("oscillation_detected",),
                    rewritten_sql=None,
                    executed_ok=False,
                    error_feedback=ErrorFeedback(
                        "oscillation", f"Repeated SQL from attempt {earlier}", {"repeated_attempt": earlier}
                    ),
                ))
                logger.warning("Attempt {} repeated the SQL of attempt {}, stopping", i, earlier)
                return RetryResult(False, None, None, tuple(attempts), "oscillation")
            first_seen.setdefault(key, i)

            dec = validate_sql(draft.sql_clean, policy=self.policy)
            if not dec.ok:
                fb = ErrorFeedback("validation", "SQL failed validation rules.", {"reasons": list(dec.reasons)})
                attempts.append(_attempt(
                    i,
                    draft,
                    validated_ok=False,
                    validation_reasons=dec.reasons,
                    rewritten_sql=None,
                    executed_ok=False,
                    error_feedback=fb,
                ))
                logger.warning("Attempt {} failed validation: {}", i, ", ".join(dec.reasons))
                context = self._format_error_context(i + 1, draft.sql_clean, fb)
                continue

            prepared = prepare_sql(draft.sql_clean, policy=self.policy, column_policy=self.gate.column_policy)
            res = self.gate.execute(prepared.sql)

            fb = None
            if not res.success:
                fb = ErrorFeedback(
                    res.error_code or "execution_error",
                    res.error or "",
                    {"executed_query": res.executed_query},
                )
            attempts.append(_attempt(
                i,
                draft,
                validated_ok=True,
                validation_reasons=(),
                rewritten_sql=res.executed_query,
                executed_ok=res.success,
                error_feedback=fb,
                warning=res.warning,
            ))

            if res.success:
                explanation = " ".join((draft.explanation,) + prepared.notes).strip()
                return RetryResult(True, res.executed_query, res, tuple(attempts), "success", explanation)

            logger.warning("Attempt {} failed to execute ({}): {}", i, fb.category, fb.message)
            context = self._format_error_context(i + 1, res.executed_query, fb)

        return RetryResult(False, None, None, tuple(attempts), "max_retries")

    def _format_error_context(self, attempt: int, previous_sql: Optional[str], feedback: ErrorFeedback) -> str:
        # JSON block appended to the next prompt
        payload = {
            "attempt": attempt,
            "previous_sql": previous_sql,
            "error": {
                "category": feedback.category,
                "message": feedback.message,
                "details": feedback.details,
            },
            "instruction": FIX_INSTRUCTION,
        }
        return json.dumps(payload, ensure_ascii=False)
