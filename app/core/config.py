from functools import lru_cache
import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.logger import setup_logger, init_sentry


class Settings(BaseSettings):
    # Application settings
    ENVIRONMENT: str = "development"  # Options: development, production, test
    APP_NAME: str = "MedJobs"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = """
MedJobs connects doctors and hospitals: hospitals publish job postings,
doctors apply, and administrators moderate both sides.

This service hosts the record lifecycle (soft deletion), transactional
email delivery and the background cleanup of expired session tokens.
"""
    DEBUG: bool = False
    LOG_DIR: str = "logs"

    # Public URLs used in outgoing emails
    APP_WEB_URL: str = "https://medjobs.example.com"
    FRONTEND_RESET_PASSWORD_URL: str | None = None  # may contain a {token} placeholder
    MOBILE_RESET_PASSWORD_URL: str = "medjobs://reset-password"
    PASSWORD_RESET_EXPIRY_MINUTES: int = 60

    # Database settings
    DATABASE_URL: str

    # SMTP settings; leaving host/port unset switches email delivery to simulation
    SMTP_HOST: str | None = None
    SMTP_PORT: int | None = None
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_SECURE: bool = False  # implicit TLS; always on for port 465
    SMTP_IGNORE_TLS: bool = False  # skip STARTTLS on plain connections
    SMTP_TIMEOUT_SECONDS: float = 30.0
    EMAIL_FROM: str = "no-reply@medjobs.example.com"
    EMAIL_TEMPLATE_DIR: str = "app/templates/email"

    # Token cleanup settings
    TOKEN_RETENTION_DAYS: int = 30
    ENABLE_SCHEDULER: bool = True

    # Sentry settings
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = "development"
    SENTRY_TRACES_SAMPLE_RATE: float = 0.1

    model_config: SettingsConfigDict = SettingsConfigDict(  # type: ignore
        env_file=".env",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Refuse configurations that are only acceptable outside production."""
        if self.ENVIRONMENT != "production":
            return self

        problems: list[str] = []
        if self.DEBUG:
            problems.append("DEBUG must be disabled")
        if self.EMAIL_FROM.endswith("@medjobs.example.com"):
            problems.append("EMAIL_FROM still uses the placeholder domain")
        if self.APP_WEB_URL == "https://medjobs.example.com":
            problems.append("APP_WEB_URL still uses the placeholder domain")

        if problems:
            raise ValueError(
                "ENVIRONMENT is 'production' but the configuration is unsafe: "
                + "; ".join(problems)
            )

        return self

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_PORT)


@lru_cache()
def get_settings() -> Settings:
    return Settings()  # type: ignore


settings = get_settings()

if not settings.DEBUG:
    init_sentry(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

# One logger per component, each with its own file and Sentry tag
app_logger = setup_logger(
    name="app_logger",
    log_file=f"{settings.LOG_DIR}/app.log",
    level=logging.INFO,
    sentry_tag="app",
)
database_logger = setup_logger(
    name="database_logger",
    log_file=f"{settings.LOG_DIR}/database.log",
    level=logging.INFO,
    sentry_tag="database",
)
request_logger = setup_logger(
    name="request_logger",
    log_file=f"{settings.LOG_DIR}/requests.log",
    level=logging.INFO,
    sentry_tag="request",
)
email_logger = setup_logger(
    name="email_logger",
    log_file=f"{settings.LOG_DIR}/email.log",
    level=logging.INFO,
    sentry_tag="email",
)
template_logger = setup_logger(
    name="template_logger",
    log_file=f"{settings.LOG_DIR}/template.log",
    level=logging.INFO,
    sentry_tag="template",
)
scheduler_logger = setup_logger(
    name="scheduler_logger",
    log_file=f"{settings.LOG_DIR}/scheduler.log",
    level=logging.INFO,
    sentry_tag="scheduler",
)
