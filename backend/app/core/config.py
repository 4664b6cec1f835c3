import os


def _optional_int(name: str) -> int | None:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


class Settings:
    PROJECT_NAME: str = "SecureLink"
    PROJECT_VERSION: str = "1.0.0"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    SECRET_KEY: str = os.getenv("SECRET_KEY", "your-secret-key")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./securelink.db")
    SQL_ECHO: bool = os.getenv("SQL_ECHO", "false").lower() == "true"

    MINIO_ENDPOINT: str = os.getenv("MINIO_ENDPOINT", "minio:9000")
    MINIO_ACCESS_KEY: str = os.getenv("MINIO_ACCESS_KEY", "minioadmin")
    MINIO_SECRET_KEY: str = os.getenv("MINIO_SECRET_KEY", "minioadmin")
    MINIO_BUCKET: str = os.getenv("MINIO_BUCKET", "securelink")
    MINIO_SECURE: bool = os.getenv("MINIO_SECURE", "false").lower() == "true"
    MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(50 * 1024 * 1024)))

    PUBLIC_BASE_URL: str = os.getenv("PUBLIC_BASE_URL", "")

    # Most recent entries kept per link
    ACCESS_LOG_LIMIT: int = int(os.getenv("ACCESS_LOG_LIMIT", "1000"))

    SWEEP_ENABLED: bool = os.getenv("SWEEP_ENABLED", "true").lower() == "true"
    SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SWEEP_INTERVAL_SECONDS", "3600"))
    # Unset means the scheduled loop never purges
    PURGE_INACTIVE_AFTER_DAYS: int | None = _optional_int("PURGE_INACTIVE_AFTER_DAYS")

    FIRST_SUPERUSER_EMAIL: str | None = os.getenv("FIRST_SUPERUSER_EMAIL")
    FIRST_SUPERUSER_USERNAME: str = os.getenv("FIRST_SUPERUSER_USERNAME", "admin")
    FIRST_SUPERUSER_PASSWORD: str | None = os.getenv("FIRST_SUPERUSER_PASSWORD")

settings = Settings()
