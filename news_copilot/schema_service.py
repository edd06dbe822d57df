# news_copilot/schema_service.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from news_copilot.schema_loader import load_schema, serialize_schema_for_prompt, Schema
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy

@dataclass
class SchemaService:
    database_url: str
    schema_name: str = "public"
    connect_timeout_s: int = 30
    column_policy: ColumnPolicy = ARTICLES_POLICY
    _schema: Optional[Schema] = None
    _schema_blob: Optional[str] = None

    def refresh(self) -> None:
        self._schema = load_schema(
            self.database_url,
            schema_name=self.schema_name,
            include_row_counts=True,
            connect_timeout_s=self.connect_timeout_s,
        )
        self._schema_blob = serialize_schema_for_prompt(self._schema, column_policy=self.column_policy)

    def schema(self) -> Schema:
        if self._schema is None:
            self.refresh()
        return self._schema

    def schema_blob(self) -> str:
        if self._schema_blob is None:
            self.refresh()
        return self._schema_blob

    def schema_version(self) -> str:
        return self.schema().schema_version
