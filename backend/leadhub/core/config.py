from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = "mysql+pymysql://leadhub:leadhub@db:3306/leadhub?charset=utf8mb4"

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"

    # Security
    AES_KEY: str = ""

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_CURRENCY: str = "usd"

    # Resend
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = "noreply@example.com"

    # Site
    SITE_URL: str = "http://localhost:8000"
    SITE_NAME: str = "LeadHub"
    ALLOWED_ORIGINS: str = "http://localhost:8000,http://localhost:5173"

    # Sessions
    SESSION_TIMEOUT_MINUTES: int = 60

    # LeadCoins
    SIGNUP_BONUS_COINS: int = 20
    LOW_BALANCE_THRESHOLDS: str = "10,5,0"

    # Payments: create an active subscription when a paid session matches no record.
    # Off by default; unmatched payments go to the reconciliation queue.
    WEBHOOK_FALLBACK_ACTIVATION: bool = False

    # Scheduler
    SCHEDULER_TIMEZONE: str = "UTC"
    INACTIVE_USER_DAYS: int = 3

    # Environment
    ENV: str = "development"
    DEBUG: bool = True

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def low_balance_thresholds(self) -> list[int]:
        return sorted(
            {int(t.strip()) for t in self.LOW_BALANCE_THRESHOLDS.split(",") if t.strip()},
            reverse=True,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
