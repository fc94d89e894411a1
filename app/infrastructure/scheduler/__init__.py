from app.infrastructure.scheduler.jobs import (
    log_token_stats,
    purge_expired_tokens,
    purge_old_tokens,
)
from app.infrastructure.scheduler.main import (
    CLEANUP_JOBS,
    CleanupJob,
    CleanupScheduler,
)

__all__ = [
    "CleanupJob",
    "CleanupScheduler",
    "CLEANUP_JOBS",
    "log_token_stats",
    "purge_expired_tokens",
    "purge_old_tokens",
]
