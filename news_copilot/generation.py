# news_copilot/generation.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, Tuple

from news_copilot.prompts.schema_prompt import (
    GUARDED_TABLE_RULES_TEMPLATE,
    SCHEMA_CONTEXT_TEMPLATE,
)
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy


CODE_FENCE_RE = re.compile(r"```(?:sql)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class GenerationError(Exception):
    pass


@dataclass(frozen=True)
class GenerationConfig:
    model_name: str = "Qwen/Qwen2.5-Coder-7B-Instruct"
    max_new_tokens: int = 256
    temperature: float = 0.0  # ignored when do_sample=False, kept for logging
    do_sample: bool = False
    top_p: float = 1.0
    repetition_penalty: float = 1.05
    device: Optional[str] = None  # "cuda", "cpu", etc.
    dtype: Optional[str] = None   # "float16", "bfloat16", "float32"


@dataclass(frozen=True)
class GenerationResult:
    sql_raw: str
    sql_clean: str
    prompt: str
    model_name: str
    latency_ms: int
    meta: Dict[str, Any]
    explanation: str = ""
    assumptions: Tuple[str, ...] = field(default=())


class SQLDrafter(Protocol):
    def generate_sql(
        self,
        question: str,
        policy: Optional[SQLPolicy] = None,
        error_context: Optional[str] = None,
    ) -> GenerationResult: ...


def guarded_table_rules(column_policy: ColumnPolicy, policy: SQLPolicy) -> str:
    return GUARDED_TABLE_RULES_TEMPLATE.format(
        table=column_policy.guarded_table,
        forbidden=", ".join(column_policy.forbidden_columns),
        allowed=", ".join(column_policy.allowed_columns),
        limit=policy.default_limit,
    )


def build_sql_prompt(
    *,
    schema_blob: str,
    question: str,
    policy: Optional[SQLPolicy] = None,
    column_policy: Optional[ColumnPolicy] = None,
    error_context: Optional[str] = None,
) -> str:
    """
    Schema + hard rules + SQL anchor. Keep it minimal and stable.
    """
    policy = policy or SQLPolicy()
    column_policy = column_policy or ARTICLES_POLICY

    rules = f"""
{SCHEMA_CONTEXT_TEMPLATE.format(schema_blob=schema_blob).strip()}

Hard rules:
- Output ONE PostgreSQL SELECT statement. No explanations. No markdown.
- SELECT only. No INSERT, UPDATE, DELETE, DDL or transactions.
- Qualify column names with table names when joining tables.
- Use ILIKE for case-insensitive text search.

{guarded_table_rules(column_policy, policy).strip()}

User question:
{question}
""".strip()

    if error_context:
        rules += f"""

Previous attempt feedback (JSON):
{error_context}
""".rstrip()

    rules += "\n\nSQL:\n"
    return rules


def _strip_code_fences(text: str) -> str:
    m = CODE_FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text.strip()


def postprocess_to_sql(model_text: str) -> str:
    """
    Make the output safe-ish before validation:
    - strip code fences
    - stop at narration lines
    - cut at the first semicolon
    """
    s = _strip_code_fences(model_text)

    cleaned_lines = []
    for line in s.splitlines():
        # Stop if the model starts narrating
        if line.strip().lower().startswith(("explanation", "reason", "note")):
            break
        cleaned_lines.append(line)
    s = "\n".join(cleaned_lines).strip()

    if ";" in s:
        s = s.split(";", 1)[0].strip()

    return s
