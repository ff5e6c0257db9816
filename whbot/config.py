from pydantic_settings import SettingsConfigDict

from whclient.config import Settings as ClientSettings, _find_env_file


class Settings(ClientSettings):
    model_config = SettingsConfigDict(
        env_file=_find_env_file() or ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    BOT_TOKEN: str
    TICK_INTERVAL_SEC: float = 5.0


settings = Settings()
