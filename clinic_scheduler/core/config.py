import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

# The default engine is an in-memory SQLite database scoped to the process.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

SLOT_DURATION_MINUTES = int(os.getenv("SLOT_DURATION_MINUTES", "30"))
NEXT_SLOT_LOOKAHEAD_DAYS = int(os.getenv("NEXT_SLOT_LOOKAHEAD_DAYS", "7"))
CANCELLED_RETENTION_DAYS = int(os.getenv("CANCELLED_RETENTION_DAYS", "30"))

CORS_ALLOWED_ORIGINS = _get_list(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    default=["http://localhost:4200"],
)

def validate_runtime_config() -> None:
    if SLOT_DURATION_MINUTES <= 0 or SLOT_DURATION_MINUTES > 24 * 60:
        raise RuntimeError("SLOT_DURATION_MINUTES must be between 1 and 1440.")
    if NEXT_SLOT_LOOKAHEAD_DAYS < 1:
        raise RuntimeError("NEXT_SLOT_LOOKAHEAD_DAYS must be at least 1.")
    if CANCELLED_RETENTION_DAYS < 0:
        raise RuntimeError("CANCELLED_RETENTION_DAYS cannot be negative.")
