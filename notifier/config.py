from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    admin_token: str = "Oosh3ieThahshee4ai"
    app_url: str = "http://localhost:5000"
    base_url: str = "http://localhost:8000"
    database_url: str = "postgresql+psycopg://postgres:postgres@db:5432/notifier"
    debug: bool = False
    sentry_dsn: str | None = None

    aws_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_queue_url: str | None = None

    notification_email: str = "no-reply@example.com"
    from_email: str | None = None

    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_max_delay: float = 60.0
    retry_jitter: float = 1.0

    consumer_enabled: bool = False
    consumer_max_messages: int = 10
    consumer_wait_seconds: int = 20
    consumer_error_backoff: float = 5.0

    password_reset_token_ttl: int = 3600

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )


settings = Settings()
