import json

from news_copilot.end_to_end import RunAndReportConfig, run_and_report
from news_copilot.execution_gate import ExecutionGate
from news_copilot.generation import GenerationResult
from news_copilot.template_generator import TemplateSQLGenerator


def test_run_and_report_writes_report(tmp_path, fake_executor):
    cfg = RunAndReportConfig(primary_domain_url="https://tin.example.vn")
    out = run_and_report(
        ["Tin tức mới nhất về FPT?"],
        cfg=cfg,
        generator=TemplateSQLGenerator(),
        gate=ExecutionGate(fake_executor),
        out_dir=str(tmp_path),
    )

    assert out["ok"]
    assert out["success_count"] == 1
    md = (tmp_path / "report.md").read_text(encoding="utf-8")
    assert md.startswith("# Bản tin chứng khoán")
    assert "- Thành công: 1/1" in md
    assert "WHERE symbols @> ARRAY['FPT']::text[]" in md
    assert "**📰 Tin tức liên quan đến FPT**" in md
    assert "https://tin.example.vn/articles/fpt-cong-bo-ket-qua-kinh-doanh-quy-3" in md

    log = json.loads((tmp_path / "run_log.json").read_text(encoding="utf-8"))
    assert log[0]["ok"] is True
    assert log[0]["row_count"] == 2
    assert fake_executor.executed[0].endswith("LIMIT 10")


def test_failed_question_is_reported(make_executor):
    executor = make_executor()

    class Deleter:
        def generate_sql(self, question, policy=None, error_context=None):
            return GenerationResult("DELETE FROM articles", "DELETE FROM articles", "", "x", 0, {})

    out = run_and_report(
        "xóa tin",
        cfg=RunAndReportConfig(max_attempts=2),
        generator=Deleter(),
        gate=ExecutionGate(executor),
        out_dir=None,
    )

    assert not out["ok"]
    assert out["report_path"] is None
    assert "THẤT BẠI (oscillation)" in out["markdown"]
    assert out["logs"][0]["attempts_used"] == 2
    assert executor.executed == []


def test_empty_result_says_nothing_found(make_executor, tmp_path):
    out = run_and_report(
        "Tin về XYZ",
        cfg=RunAndReportConfig(),
        generator=TemplateSQLGenerator(),
        gate=ExecutionGate(make_executor(rows=[])),
        out_dir=str(tmp_path),
    )
    assert out["ok"]
    assert "Không tìm thấy bài viết phù hợp trong cơ sở dữ liệu" in out["markdown"]
