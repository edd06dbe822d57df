# news_copilot/article_digest.py
from __future__ import annotations

import datetime as dt
import re
from typing import Any, Dict, List, Optional, Sequence

NO_ARTICLES = "Không tìm thấy bài viết phù hợp trong cơ sở dữ liệu"
URL_UNAVAILABLE = "URL không khả dụng"
UNKNOWN_DATE = "Không rõ ngày"
MARKET_SUBJECT = "thị trường"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")  # ISO-ish prefix


def article_url(slug: Any, primary_domain_url: Optional[str]) -> str:
    """
    Public link for an article, built from its slug. The stored source
    url is never shown.
    """
    if slug is None or not str(slug).strip() or not primary_domain_url:
        return URL_UNAVAILABLE
    return f"{primary_domain_url.rstrip('/')}/articles/{slug}"


def _to_date(x: Any) -> Optional[dt.date]:
    if x is None:
        return None
    if isinstance(x, dt.datetime):
        return x.date()
    if isinstance(x, dt.date):
        return x
    if isinstance(x, str) and _DATE_RE.match(x.strip()):
        try:
            return dt.date.fromisoformat(x.strip()[:10])
        except ValueError:
            return None
    return None


def format_published_date(value: Any) -> str:
    d = _to_date(value)
    if d is None:
        return UNKNOWN_DATE
    return f"Ngày {d:%d/%m/%Y}"


def render_article_digest(
    rows: Sequence[Dict[str, Any]],
    *,
    subject: Optional[str] = None,
    primary_domain_url: Optional[str] = None,
) -> str:
    if not rows:
        return NO_ARTICLES

    lines: List[str] = [f"**📰 Tin tức liên quan đến {subject or MARKET_SUBJECT}**", ""]

    for row in rows:
        lines.append(f"- **Tiêu đề**: {row.get('title') or '(không có tiêu đề)'}")
        lines.append(f"- **Ngày đăng**: {format_published_date(row.get('published_at'))}")
        lines.append(f"- **URL**: {article_url(row.get('slug'), primary_domain_url)}")
        lines.append("")

    dates = [d for d in (_to_date(r.get("published_at")) for r in rows) if d is not None]
    lines.append("**📌 Kết luận nhanh**")
    lines.append(f"- Tìm thấy {len(rows)} bài viết.")
    if dates:
        lines.append(f"- Khoảng thời gian: {min(dates):%d/%m/%Y} đến {max(dates):%d/%m/%Y}.")

    return "\n".join(lines)


def render_markdown_table(columns: Sequence[str], rows: Sequence[Dict[str, Any]], *, max_rows: int = 15) -> str:
    cols = list(columns) or (list(rows[0].keys()) if rows else [])
    show_rows = rows[:max_rows]

    def esc(x: Any) -> str:
        s = "" if x is None else str(x)
        return s.replace("\n", " ").replace("|", "\\|")

    header = "| " + " | ".join(cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    body = "\n".join("| " + " | ".join(esc(r.get(c)) for c in cols) + " |" for r in show_rows)
    if not body:
        body = "| " + " | ".join([""] * len(cols)) + " |"

    more = ""
    if len(rows) > max_rows:
        more = f"\n\nShowing first {max_rows} rows of {len(rows)}."

    return "\n".join([header, sep, body]) + more


def render_rows(
    columns: Sequence[str],
    rows: Sequence[Dict[str, Any]],
    *,
    subject: Optional[str] = None,
    primary_domain_url: Optional[str] = None,
    max_rows: int = 15,
) -> str:
    # Article-shaped results get the digest, anything else a plain table
    if not rows or "title" in (columns or rows[0].keys()):
        return render_article_digest(rows, subject=subject, primary_domain_url=primary_domain_url)
    return render_markdown_table(columns, rows, max_rows=max_rows)
