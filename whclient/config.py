from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> str | None:
    cur = Path(__file__).resolve()
    for parent in [cur.parent, *cur.parents]:
        candidate = parent / ".env"
        if candidate.exists():
            return str(candidate)
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    API_BASE_URL: str = "http://localhost:3000/api"
    HTTP_TIMEOUT_SEC: float = 8.0
    # "memory" | "redis"
    CREDENTIAL_BACKEND: str = "memory"
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    CREDENTIAL_TTL_SEC: int = 0
    LOG_LEVEL: str = "INFO"


settings = Settings()
