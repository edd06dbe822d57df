from dotenv import load_dotenv

from news_copilot.config import AppConfig
from news_copilot.generation import GenerationConfig
from news_copilot.schema_service import SchemaService
from news_copilot.sql_generator import SQLGenerator

load_dotenv()
config = AppConfig.from_env()

svc = SchemaService(config.require_database_url(), column_policy=config.column_policy)
gen = SQLGenerator(svc, GenerationConfig(max_new_tokens=200, do_sample=False), column_policy=config.column_policy)

res = gen.generate_sql("Tin tức mới nhất về FPT?")
print("SQL:\n", res.sql_clean)
print("Latency(ms):", res.latency_ms)
