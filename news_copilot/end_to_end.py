# news_copilot/end_to_end.py
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from news_copilot.article_digest import render_rows
from news_copilot.execution_gate import ExecutionGate
from news_copilot.generation import SQLDrafter
from news_copilot.retry_logic import RetryResult, RetryRunner
from news_copilot.sql_policy import SQLPolicy
from news_copilot.template_generator import extract_stock_symbols


@dataclass(frozen=True)
class ReportItem:
    id: str
    title: str
    question: str


@dataclass(frozen=True)
class RunAndReportConfig:
    report_title: str = "Bản tin chứng khoán"
    primary_domain_url: Optional[str] = None
    max_attempts: int = 3
    preview_rows: int = 12


def _json_safe(obj: Any) -> Any:
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, tuple):
        return [_json_safe(x) for x in obj]
    if isinstance(obj, list):
        return [_json_safe(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if hasattr(obj, "__dict__"):
        return _json_safe(obj.__dict__.copy())
    return str(obj)


def _normalize_items(items: Union[str, List[str], List[ReportItem]]) -> List[ReportItem]:
    if isinstance(items, str):
        return [ReportItem(id="q1", title="Câu hỏi 1", question=items)]
    if items and isinstance(items[0], str):
        return [
            ReportItem(id=f"q{i+1}", title=f"Câu hỏi {i+1}", question=q)  # type: ignore[arg-type]
            for i, q in enumerate(items)
        ]
    return list(items)  # type: ignore[arg-type]


def answer_question(
    question: str,
    runner: RetryRunner,
    *,
    primary_domain_url: Optional[str] = None,
    preview_rows: int = 12,
) -> Dict[str, Any]:
    rr: RetryResult = runner.run(question)
    symbols = extract_stock_symbols(question)
    subject = ", ".join(symbols) if symbols else None

    if not rr.ok or rr.result is None:
        return {"ok": False, "answer": None, "retry": rr}

    res = rr.result
    answer = render_rows(
        res.columns,
        res.rows,
        subject=subject,
        primary_domain_url=primary_domain_url,
        max_rows=preview_rows,
    )
    return {"ok": True, "answer": answer, "retry": rr}


def run_and_report(
    items: Union[str, List[str], List[ReportItem]],
    *,
    cfg: RunAndReportConfig,
    generator: SQLDrafter,
    gate: ExecutionGate,
    out_dir: Optional[str] = "reports/demo",
) -> Dict[str, Any]:
    """
    Questions -> SQL -> column guard -> read-only execution -> Vietnamese
    digest, written as a markdown report plus a JSON run log.
    """
    report_items = _normalize_items(items)
    runner = RetryRunner(
        generator,
        gate,
        policy=SQLPolicy(),
        max_attempts=cfg.max_attempts,
        stop_on_repeat_sql=True,
    )

    md_blocks: List[str] = []
    logs: List[Dict[str, Any]] = []

    md_blocks.append(f"# {cfg.report_title}")
    md_blocks.append("")

    ok_count = 0

    for it in report_items:
        logger.info("Answering {}: {}", it.id, it.question)
        out = answer_question(
            it.question,
            runner,
            primary_domain_url=cfg.primary_domain_url,
            preview_rows=cfg.preview_rows,
        )
        rr: RetryResult = out["retry"]

        md_blocks.append(f"## {it.title}")
        md_blocks.append("")
        md_blocks.append(f"**Câu hỏi:** {it.question}")
        md_blocks.append("")

        if not out["ok"]:
            md_blocks.append(f"**Trạng thái:** THẤT BẠI ({rr.stop_reason})")
            md_blocks.append("")
            if rr.attempts:
                last = rr.attempts[-1]
                md_blocks.append("```sql")
                md_blocks.append(((last.rewritten_sql or last.sql_clean) or "").strip())
                md_blocks.append("```")
                if last.error_feedback:
                    md_blocks.append(f"- Lỗi: {last.error_feedback.category}: {last.error_feedback.message}")
            md_blocks.append("")

            logs.append({
                "id": it.id,
                "question": it.question,
                "ok": False,
                "stop_reason": rr.stop_reason,
                "attempts_used": len(rr.attempts),
                "attempts": rr.attempts,
            })
            continue

        ok_count += 1
        res = rr.result

        md_blocks.append("```sql")
        md_blocks.append((rr.final_sql or "").strip())
        md_blocks.append("```")
        if res.warning:
            md_blocks.append(f"> {res.warning}")
        md_blocks.append("")
        md_blocks.append(out["answer"])
        md_blocks.append("")

        logs.append({
            "id": it.id,
            "question": it.question,
            "ok": True,
            "stop_reason": rr.stop_reason,
            "attempts_used": len(rr.attempts),
            "sql": rr.final_sql,
            "warning": res.warning,
            "row_count": res.row_count,
        })

    md_blocks.insert(2, f"- Thành công: {ok_count}/{len(report_items)}\n")

    md_text = "\n".join(md_blocks)
    md_file = None
    json_file = None

    if out_dir:
        out_path = Path(out_dir)
        out_path.mkdir(parents=True, exist_ok=True)
        md_file = out_path / "report.md"
        json_file = out_path / "run_log.json"

        md_file.write_text(md_text, encoding="utf-8")
        json_file.write_text(json.dumps(_json_safe(logs), indent=2, ensure_ascii=False), encoding="utf-8")

    return {
        "ok": ok_count == len(report_items),
        "success_count": ok_count,
        "total": len(report_items),
        "markdown": md_text,
        "report_path": str(md_file) if md_file else None,
        "run_log_path": str(json_file) if json_file else None,
        "logs": logs if not out_dir else None,
    }
