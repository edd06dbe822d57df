import pytest

from news_copilot.config import AppConfig, ConfigurationError
from news_copilot.execution_gate import ExecutionGate, guarded_execute
from news_copilot.query_executor import PostgresExecutionError
from news_copilot.sql_policy import ColumnPolicy


def test_rejects_update_without_touching_the_database(make_executor):
    executor = make_executor()
    res = ExecutionGate(executor).execute("UPDATE articles SET title = 'x' WHERE id = 1")

    assert not res.success
    assert res.error == "Only SELECT queries are allowed for security reasons"
    assert res.error_code == "validation_failed"
    assert res.executed_query == "UPDATE articles SET title = 'x' WHERE id = 1"
    assert executor.executed == []


def test_rejects_empty_query(make_executor):
    executor = make_executor()
    res = ExecutionGate(executor).execute("")
    assert not res.success
    assert res.executed_query == ""
    assert executor.executed == []


def test_forbidden_columns_are_stripped_before_execution(fake_executor, article_rows):
    res = ExecutionGate(fake_executor).execute("SELECT id, title, content FROM articles ORDER BY published_at DESC")

    assert res.success
    assert fake_executor.executed == ["SELECT id, title FROM articles ORDER BY published_at DESC"]
    assert res.executed_query == "SELECT id, title FROM articles ORDER BY published_at DESC"
    assert res.warning == "Forbidden columns (content) were automatically removed from the query."
    assert res.row_count == len(article_rows)


def test_warning_lists_every_stripped_column(make_executor):
    res = ExecutionGate(make_executor()).execute("SELECT content, body FROM articles")
    assert res.warning == "Forbidden columns (content, body) were automatically removed from the query."
    assert res.executed_query == "SELECT id, title, slug, symbols, url, published_at FROM articles"


def test_other_tables_run_unmodified(make_executor):
    executor = make_executor()
    sql = "SELECT content FROM comments WHERE article_id = 1"
    res = ExecutionGate(executor).execute(sql)

    assert res.success
    assert res.warning is None
    assert executor.executed == [sql]
    assert res.executed_query == sql


def test_compliant_query_is_not_limited_or_changed(fake_executor):
    sql = "SELECT id, title, slug FROM articles WHERE symbols @> ARRAY['FPT']::text[] ORDER BY published_at DESC"
    res = ExecutionGate(fake_executor).execute(sql)
    assert res.executed_query == sql
    assert fake_executor.executed == [sql]


def test_execution_errors_become_results(make_executor):
    executor = make_executor(errors=[PostgresExecutionError('column "contnt" does not exist')])
    res = ExecutionGate(executor).execute("SELECT id, content FROM articles")

    assert not res.success
    assert res.error == 'column "contnt" does not exist'
    assert res.error_code == "postgres_error"
    assert res.executed_query == "SELECT id FROM articles"
    assert res.warning is not None


def test_unexpected_executor_errors_become_results(make_executor):
    executor = make_executor(errors=[RuntimeError("boom")])
    res = ExecutionGate(executor).execute("SELECT id, content FROM articles")

    assert not res.success
    assert res.error == "boom"
    assert res.error_code == "execution_error"
    assert res.executed_query == "SELECT id FROM articles"
    assert res.to_dict()["error"] == "boom"


def test_commented_forbidden_column_is_stripped(fake_executor):
    res = ExecutionGate(fake_executor).execute("SELECT /* content */ id FROM articles")

    assert res.success
    assert fake_executor.executed == ["SELECT id FROM articles"]
    assert res.warning == "Forbidden columns (content) were automatically removed from the query."


def test_per_call_policy_override(make_executor):
    executor = make_executor()
    gate = ExecutionGate(executor)
    policy = ColumnPolicy("posts", ("payload",), ("id",))

    res = gate.execute("SELECT id, payload FROM posts", column_policy=policy)
    assert executor.executed == ["SELECT id FROM posts"]
    assert res.warning == "Forbidden columns (payload) were automatically removed from the query."


def test_to_dict_shapes(fake_executor, make_executor):
    ok = ExecutionGate(fake_executor).execute("SELECT id, title FROM articles").to_dict()
    assert set(ok) == {"success", "executedQuery", "rows", "rowCount"}

    bad = ExecutionGate(make_executor()).execute("DELETE FROM articles").to_dict()
    assert bad == {
        "success": False,
        "executedQuery": "DELETE FROM articles",
        "error": "Only SELECT queries are allowed for security reasons",
    }


def test_guarded_execute(fake_executor):
    res = guarded_execute("SELECT title, html FROM articles", fake_executor)
    assert res.executed_query == "SELECT title FROM articles"


def test_from_config_requires_database_url():
    with pytest.raises(ConfigurationError):
        ExecutionGate.from_config(AppConfig())
