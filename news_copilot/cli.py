# news_copilot/cli.py
from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from dotenv import load_dotenv

from news_copilot.column_detector import detect_forbidden_columns
from news_copilot.config import AppConfig, ConfigurationError
from news_copilot.end_to_end import RunAndReportConfig, run_and_report
from news_copilot.execution_gate import ExecutionGate
from news_copilot.logger import setup_logger
from news_copilot.sql_rewriter import strip_forbidden_columns


def _build_generator(backend: str, config: AppConfig, database_url: Optional[str]):
    if backend == "template":
        from news_copilot.template_generator import TemplateSQLGenerator
        return TemplateSQLGenerator(column_policy=config.column_policy)

    from news_copilot.schema_service import SchemaService
    svc = SchemaService(
        database_url or config.require_database_url(),
        connect_timeout_s=config.connect_timeout_s,
        column_policy=config.column_policy,
    )

    if backend == "openai":
        from news_copilot.openai_generator import OpenAISQLGenerator
        return OpenAISQLGenerator(svc, model_name=config.model_name, column_policy=config.column_policy)

    # Heavy imports (torch, transformers) only when asked for
    from news_copilot.sql_generator import SQLGenerator
    return SQLGenerator(svc, column_policy=config.column_policy)


def cmd_check(args: argparse.Namespace, config: AppConfig) -> int:
    report = detect_forbidden_columns(args.sql, config.column_policy)
    out = {
        "hasForbidden": report.has_forbidden,
        "forbiddenColumns": list(report.forbidden_columns),
        "rewrittenQuery": strip_forbidden_columns(args.sql, config.column_policy),
    }
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 1 if report.has_forbidden else 0


def cmd_run(args: argparse.Namespace, config: AppConfig) -> int:
    gate = ExecutionGate.from_config(config, database_url=args.database_url)
    res = gate.execute(args.sql)
    print(json.dumps(res.to_dict(), ensure_ascii=False, indent=2, default=str))
    return 0 if res.success else 1


def cmd_ask(args: argparse.Namespace, config: AppConfig) -> int:
    gate = ExecutionGate.from_config(config, database_url=args.database_url)
    generator = _build_generator(args.backend, config, args.database_url)

    cfg = RunAndReportConfig(
        primary_domain_url=config.primary_domain_url,
        max_attempts=args.max_attempts,
    )
    out = run_and_report(args.question, cfg=cfg, generator=generator, gate=gate, out_dir=args.out)
    print(out["markdown"])
    return 0 if out["ok"] else 1


def cmd_schema(args: argparse.Namespace, config: AppConfig) -> int:
    from news_copilot.schema_service import SchemaService

    svc = SchemaService(
        args.database_url or config.require_database_url(),
        schema_name=args.schema,
        connect_timeout_s=config.connect_timeout_s,
        column_policy=config.column_policy,
    )
    print(svc.schema_blob())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="news-copilot",
        description="Guarded natural-language SQL assistant for the stock-news database",
    )
    parser.add_argument("--env-file", default=None, help="Load environment from this .env file.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="PostgreSQL connection string. Defaults to env NEWS_DATABASE_URL.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_check = sub.add_parser("check", help="Detect and strip forbidden columns (no database).")
    p_check.add_argument("sql", help="SQL query to inspect.")
    p_check.set_defaults(func=cmd_check)

    p_run = sub.add_parser("run", help="Execute a SELECT through the execution gate.")
    p_run.add_argument("sql", help="SQL query to execute.")
    p_run.set_defaults(func=cmd_run)

    p_ask = sub.add_parser("ask", help="Answer a question about the news database.")
    p_ask.add_argument("-q", "--question", action="append", required=True, help="Question (repeatable).")
    p_ask.add_argument(
        "--backend",
        choices=("openai", "local", "template"),
        default="openai",
        help="SQL drafter: hosted OpenAI model, local Hugging Face model, or offline templates.",
    )
    p_ask.add_argument("--max-attempts", type=int, default=3)
    p_ask.add_argument("--out", default=None, help="Write report.md and run_log.json here.")
    p_ask.set_defaults(func=cmd_ask)

    p_schema = sub.add_parser("schema", help="Print the schema description given to the model.")
    p_schema.add_argument("--schema", default="public")
    p_schema.set_defaults(func=cmd_schema)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv(args.env_file)

    try:
        config = AppConfig.from_env()
        setup_logger(config.log_level)
        return args.func(args, config)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
