# scripts/demo_end_to_end.py
import argparse

from dotenv import load_dotenv

from news_copilot.config import AppConfig
from news_copilot.end_to_end import RunAndReportConfig, ReportItem, run_and_report
from news_copilot.execution_gate import ExecutionGate
from news_copilot.logger import setup_logger
from news_copilot.template_generator import TemplateSQLGenerator


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", default="reports/demo")
    ap.add_argument("--title", default="Bản tin chứng khoán")
    ap.add_argument("--max_attempts", type=int, default=3)
    ap.add_argument("--preview_rows", type=int, default=12)
    ap.add_argument("--q", action="append", help="Question (repeatable). If omitted, uses a default suite.")
    args = ap.parse_args()

    load_dotenv()
    config = AppConfig.from_env()
    setup_logger(config.log_level)

    cfg = RunAndReportConfig(
        report_title=args.title,
        primary_domain_url=config.primary_domain_url,
        max_attempts=args.max_attempts,
        preview_rows=args.preview_rows,
    )

    if args.q:
        items = [ReportItem(id=f"q{i+1}", title=f"Câu hỏi {i+1}", question=q) for i, q in enumerate(args.q)]
    else:
        items = [
            ReportItem("r1", "Tin mới nhất", "Tin tức chứng khoán mới nhất hôm nay?"),
            ReportItem("r2", "FPT", "Có tin gì mới về FPT không?"),
            ReportItem("r3", "Ngân hàng", "Tin tức về VCB và TCB"),
            ReportItem("r4", "Thép", "HPG gần đây thế nào?"),
        ]

    # Template drafter: runs without a model, only the database is needed
    out = run_and_report(
        items,
        cfg=cfg,
        generator=TemplateSQLGenerator(column_policy=config.column_policy),
        gate=ExecutionGate.from_config(config),
        out_dir=args.out,
    )
    print(out)


if __name__ == "__main__":
    main()
