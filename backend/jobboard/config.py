from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    database_url: str = "sqlite:///./data/jobboard.db"
    secret_key: str = "dev-secret-key-change-in-production"
    cron_secret: str = "dev-cron-secret"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # Local business timezone (auto-jump windows, daily resets, D-day notices)
    local_timezone: str = "Asia/Seoul"

    # Redis configuration
    redis_url: str = "redis://localhost:6379"
    rate_limit_backend: str = "memory"  # "memory" or "redis"

    # Celery configuration
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/0"

    # Run periodic jobs in-process instead of relying on external cron calls
    enable_scheduler: bool = False

    # Toss Payments gateway
    toss_secret_key: str = ""
    toss_api_url: str = "https://api.tosspayments.com/v1"
    gateway_timeout_seconds: float = 10.0

    # NTS business registry lookup
    nts_api_key: str = ""
    nts_api_url: str = "https://api.odcloud.kr/api/nts-businessman/v1/status"
    registry_timeout_seconds: float = 5.0

    # Email delivery (Resend)
    resend_api_key: str = ""
    resend_from_email: str = "Jobboard <onboarding@resend.dev>"
    site_url: str = "http://localhost:3000"

    # Ad lifecycle rules
    deposit_deadline_hours: int = 48
    manual_jump_cooldown_minutes: int = 30
    auto_jump_batch_size: int = 50

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
