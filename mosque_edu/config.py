from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_prefix='MOSQUE_EDU_', extra='ignore')

    app_name: str = 'Mosque Education'
    app_env: str = 'local'
    app_timezone: str = 'UTC'
    database_url: str = 'sqlite:///./mosque_edu.db'
    education_fund_name: str = 'Education'
    default_ledger_months: int = 3
    default_payment_method: str = 'cash'
    default_class_name_prefix: str = 'Default Class'
    cache_backend: str = 'memory'
    cache_redis_url: str | None = None
    default_cache_ttl: int = 60
    attendance_summary_cache_ttl: int = 120
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
