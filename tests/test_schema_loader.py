from news_copilot.schema_loader import Column, Table, build_schema, serialize_schema_for_prompt
from news_copilot.schema_service import SchemaService


def _articles():
    cols = (
        Column("id", "INTEGER", True, None, True),
        Column("title", "CHARACTER VARYING", True, None, False, max_length=500),
        Column("content", "TEXT", False, None, False),
        Column("slug", "TEXT", False, None, False),
    )
    return Table("public", "articles", cols, ("id",), (), indexes=("articles_pkey",), row_count=1200)


def _comments():
    cols = (
        Column("id", "INTEGER", True, None, True),
        Column("content", "TEXT", False, None, False),
    )
    return Table("public", "comments", cols, ("id",), ())


def test_schema_version_is_stable():
    a = build_schema([_comments(), _articles()])
    b = build_schema([_articles(), _comments()])
    assert a.schema_version == b.schema_version
    assert [t.name for t in a.tables] == ["articles", "comments"]


def test_schema_version_changes_with_columns():
    a = build_schema([_articles()])
    t = _articles()
    b = build_schema([Table(t.schema, t.name, t.columns[:2], t.primary_key, t.foreign_keys)])
    assert a.schema_version != b.schema_version


def test_prompt_marks_forbidden_columns_only_on_guarded_table():
    blob = serialize_schema_for_prompt(build_schema([_articles(), _comments()]))

    assert "DIALECT: postgresql" in blob
    assert "- public.articles (1200 rows)" in blob
    assert "  RESTRICTED TABLE - long text columns are forbidden" in blob
    assert "    - content: [FORBIDDEN - DO NOT SELECT]" in blob
    assert "    - title: CHARACTER VARYING(500) [NOT_NULL]" in blob
    assert "    - id: INTEGER [NOT_NULL|PK]" in blob
    # comments.content is an ordinary column
    assert "    - content: TEXT" in blob


def test_prompt_drops_indexes_first_when_too_long():
    schema = build_schema([_articles()])
    full = serialize_schema_for_prompt(schema)
    assert "INDEXES: articles_pkey" in full

    pruned = serialize_schema_for_prompt(schema, max_chars=len(full) - 1)
    assert "INDEXES" not in pruned
    assert len(serialize_schema_for_prompt(schema, max_chars=40)) == 40


def test_schema_service_caches(monkeypatch):
    calls = []

    def fake_load_schema(url, **kwargs):
        calls.append((url, kwargs))
        return build_schema([_articles()])

    monkeypatch.setattr("news_copilot.schema_service.load_schema", fake_load_schema)
    svc = SchemaService("postgresql://reader@db/news")

    blob = svc.schema_blob()
    assert "FORBIDDEN" in blob
    assert svc.schema_version() == build_schema([_articles()]).schema_version
    assert len(calls) == 1
    assert calls[0][1]["schema_name"] == "public"
