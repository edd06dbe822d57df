from news_copilot.column_detector import detect_forbidden_columns
from news_copilot.sql_policy import ColumnPolicy


def test_flags_content_on_articles():
    report = detect_forbidden_columns("SELECT id, title, content FROM articles ORDER BY published_at DESC")
    assert report.has_forbidden
    assert report.forbidden_columns == ("content",)


def test_other_tables_are_ignored():
    report = detect_forbidden_columns("SELECT content FROM comments WHERE article_id = 1")
    assert not report.has_forbidden
    assert report.forbidden_columns == ()


def test_compliant_query_passes():
    report = detect_forbidden_columns("SELECT id, title, slug FROM articles WHERE symbols @> ARRAY['FPT']::text[]")
    assert not report.has_forbidden


def test_reports_in_policy_order_without_duplicates():
    report = detect_forbidden_columns("SELECT a.body, content, a.content FROM articles a")
    assert report.forbidden_columns == ("content", "body")


def test_case_and_schema_qualification():
    assert detect_forbidden_columns("select ID, Content from ARTICLES").forbidden_columns == ("content",)
    assert detect_forbidden_columns("SELECT html FROM public.articles").forbidden_columns == ("html",)
    assert detect_forbidden_columns('SELECT "raw_content" FROM "articles"').forbidden_columns == ("raw_content",)


def test_whole_word_matching():
    report = detect_forbidden_columns("SELECT contents_summary, body_length, id FROM articles")
    assert not report.has_forbidden


def test_only_the_projection_is_inspected():
    report = detect_forbidden_columns("SELECT id FROM articles WHERE content ILIKE '%lãi suất%'")
    assert not report.has_forbidden


def test_select_star_is_not_flagged():
    assert not detect_forbidden_columns("SELECT * FROM articles").has_forbidden


def test_unparseable_input_fails_open():
    assert not detect_forbidden_columns("SELECT content").has_forbidden
    assert not detect_forbidden_columns("").has_forbidden
    assert not detect_forbidden_columns("DELETE FROM articles").has_forbidden


def test_string_literals_are_matched_as_text():
    # Known imprecision: literals in the projection are not told apart from columns
    report = detect_forbidden_columns("SELECT 'content' AS label, id FROM articles")
    assert report.forbidden_columns == ("content",)


def test_custom_policy():
    policy = ColumnPolicy("posts", ("payload",), ("id", "title"))
    assert detect_forbidden_columns("SELECT id, payload FROM posts", policy).forbidden_columns == ("payload",)
    assert not detect_forbidden_columns("SELECT id, content FROM articles", policy).has_forbidden
