from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")
    DATABASE_URL: str
    SECRET_KEY: str
    ENV: str = "dev"

    APP_TZ: str = "Asia/Ho_Chi_Minh"

    TARGET_WINDOW_DAYS: int = 90
    DEFAULT_PENALTY_KM: float = 2.0
    RP_PER_KM: int = 10

    SKIP_CARD_WEEKLY_LIMIT: int = 2
    SKIP_CARD_TTL_HOURS: int = 24

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

settings = Settings()
