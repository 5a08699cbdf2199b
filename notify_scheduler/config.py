from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', extra='ignore')

    app_name: str = 'Class Notification Scheduler'
    app_env: str = 'local'
    app_timezone: str = 'Asia/Kuala_Lumpur'
    database_url: str = 'sqlite:///./notify_scheduler.db'
    cache_backend: str = 'memory'
    cache_redis_url: str | None = None
    default_cache_ttl: int = 60
    settings_cache_ttl: int = 3600
    notification_lookahead_days: int = 7
    notification_sweep_interval_minutes: int = 60
    notification_job_lock_ttl_seconds: int = 900
    enable_scheduler: bool = True
    db_slow_query_ms: int = 100
    metrics_slow_ms: int = 200


settings = Settings()
