# news_copilot/openai_generator.py
from __future__ import annotations

import time
from typing import Any, List, Optional

from loguru import logger
from openai import OpenAI
from pydantic import BaseModel, Field, ValidationError

from news_copilot.generation import GenerationError, GenerationResult, build_sql_prompt, postprocess_to_sql
from news_copilot.schema_service import SchemaService
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy, SQLPolicy


class SQLDraft(BaseModel):
    sql: str = Field(description="The generated SQL query")
    explanation: str = Field(default="", description="Explanation of what the query does")
    confidence: float = Field(default=0.0, ge=0, le=1)
    assumptions: List[str] = Field(default_factory=list)
    tables_used: List[str] = Field(default_factory=list)


DRAFT_INSTRUCTIONS = (
    "Answer with a JSON object with keys: sql (string), explanation (string), "
    "confidence (number 0-1), assumptions (array of strings), tables_used (array of strings)."
)


class OpenAISQLGenerator:
    """
    Hosted-model drafter. Output is a structured draft; sql is untrusted.
    """

    def __init__(
        self,
        schema_service: SchemaService,
        *,
        model_name: str = "gpt-4o",
        temperature: float = 0.1,
        column_policy: Optional[ColumnPolicy] = None,
        client: Optional[Any] = None,
    ):
        self.schema_service = schema_service
        self.model_name = model_name
        self.temperature = temperature
        self.column_policy = column_policy or ARTICLES_POLICY
        self.client = client or OpenAI()

    def generate_sql(
        self,
        question: str,
        policy: Optional[SQLPolicy] = None,
        error_context: Optional[str] = None,
    ) -> GenerationResult:
        prompt = build_sql_prompt(
            schema_blob=self.schema_service.schema_blob(),
            question=question,
            policy=policy,
            column_policy=self.column_policy,
            error_context=error_context,
        )

        logger.info("Generating SQL query for: {}", question)
        t0 = time.time()
        response = self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": f"{prompt.rstrip()}\n\n{DRAFT_INSTRUCTIONS}"},
                {"role": "user", "content": f'Generate a SQL query for this question: "{question}"'},
            ],
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        latency_ms = int((time.time() - t0) * 1000)

        content = response.choices[0].message.content or ""
        draft = parse_draft(content)

        return GenerationResult(
            sql_raw=draft.sql,
            sql_clean=postprocess_to_sql(draft.sql),
            prompt=prompt,
            model_name=self.model_name,
            latency_ms=latency_ms,
            meta={
                "backend": "openai",
                "temperature": self.temperature,
                "confidence": draft.confidence,
                "tables_used": list(draft.tables_used),
            },
            explanation=draft.explanation,
            assumptions=tuple(draft.assumptions),
        )


def parse_draft(content: str) -> SQLDraft:
    try:
        return SQLDraft.model_validate_json(content)
    except ValidationError as e:
        # Some models answer with bare SQL despite the JSON instruction
        stripped = content.strip()
        if stripped and not stripped.startswith("{"):
            return SQLDraft(sql=stripped)
        raise GenerationError(f"Failed to generate SQL query: {e}") from e

