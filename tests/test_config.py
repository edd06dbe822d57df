import pytest

from news_copilot.config import AppConfig, ConfigurationError
from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy


def test_defaults_from_empty_environment():
    cfg = AppConfig.from_env({})
    assert cfg.database_url is None
    assert cfg.primary_domain_url is None
    assert cfg.connect_timeout_s == 30
    assert cfg.statement_timeout_ms == 60_000
    assert cfg.model_name == "gpt-4.1-mini"
    assert cfg.column_policy == ARTICLES_POLICY


def test_reads_environment():
    cfg = AppConfig.from_env({
        "NEWS_DATABASE_URL": "postgresql://reader@db/news",
        "PRIMARY_DOMAIN_URL": "https://tin.example.vn",
        "MODEL": "gpt-4o",
        "NEWS_DB_STATEMENT_TIMEOUT_MS": "5000",
        "NEWS_DB_MAX_ROWS": "200",
        "LOG_LEVEL": "debug",
    })
    assert cfg.require_database_url() == "postgresql://reader@db/news"
    assert cfg.primary_domain_url == "https://tin.example.vn"
    assert cfg.model_name == "gpt-4o"
    assert cfg.statement_timeout_ms == 5000
    assert cfg.max_rows == 200
    assert cfg.log_level == "DEBUG"


def test_column_policy_overrides():
    cfg = AppConfig.from_env({
        "NEWS_FORBIDDEN_COLUMNS": "content, summary_html",
        "NEWS_ALLOWED_COLUMNS": "id,title",
    })
    assert cfg.column_policy.guarded_table == "articles"
    assert cfg.column_policy.forbidden_columns == ("content", "summary_html")
    assert cfg.column_policy.allowed_columns == ("id", "title")


def test_overlapping_policy_is_rejected():
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"NEWS_ALLOWED_COLUMNS": "id,content"})


@pytest.mark.parametrize("value", ["abc", "0", "-5"])
def test_bad_integers_are_rejected(value):
    with pytest.raises(ConfigurationError):
        AppConfig.from_env({"NEWS_DB_CONNECT_TIMEOUT_S": value})


def test_missing_database_url():
    with pytest.raises(ConfigurationError, match="NEWS_DATABASE_URL"):
        AppConfig().require_database_url()


def test_column_policy_normalizes_names():
    policy = ColumnPolicy(" articles ", ("Content", "BODY", "content"), ("id", "title", "id"))
    assert policy.guarded_table == "articles"
    assert policy.forbidden_columns == ("content", "body")
    assert policy.allowed_columns == ("id", "title")
    assert policy.is_forbidden("Body")


def test_column_policy_requires_fallback_columns():
    with pytest.raises(ValueError):
        ColumnPolicy("articles", ("content",), ())
    with pytest.raises(ValueError):
        ColumnPolicy("", ("content",), ("id",))
