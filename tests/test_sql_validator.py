# tests/test_sql_validator.py
from news_copilot.sql_policy import SQLPolicy
from news_copilot.sql_validator import validate_sql


def test_allows_simple_select():
    dec = validate_sql("SELECT 1")
    assert dec.ok
    assert dec.reasons == ()


def test_allows_lowercase_and_leading_whitespace():
    assert validate_sql("\n   select id from articles").ok


def test_blocks_writes():
    for sql in (
        "UPDATE articles SET title = 'x' WHERE id = 1",
        "DELETE FROM articles",
        "INSERT INTO articles (title) VALUES ('x')",
        "DROP TABLE articles",
    ):
        dec = validate_sql(sql)
        assert not dec.ok
        assert dec.reasons == ("not_select",)


def test_select_must_be_a_whole_word():
    assert not validate_sql("SELECTED id FROM articles").ok


def test_cte_is_not_treated_as_select():
    assert not validate_sql("WITH x AS (SELECT 1) SELECT * FROM x").ok


def test_blocks_empty():
    assert validate_sql("").reasons == ("empty_sql",)
    assert validate_sql("   ").reasons == ("empty_sql",)
    assert validate_sql(None).reasons == ("empty_sql",)


def test_policy_can_disable_select_only():
    assert validate_sql("DELETE FROM articles", policy=SQLPolicy(allow_only_select=False)).ok
