from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # Database
    DB_USER: str = Field("health_admin")
    DB_PASSWORD: str = Field("HealthPass2024")
    DB_NAME: str = Field("employee_health")
    DB_HOST: str = Field("postgres")
    DB_PORT: int = Field(5432)
    DATABASE_URL: str | None = Field(None)

    # Redis
    REDIS_HOST: str = Field("redis")
    REDIS_PORT: int = Field(6379)
    REDIS_PASSWORD: str | None = Field(None)

    # App
    API_HOST: str = Field("0.0.0.0")
    API_PORT: int = Field(8000)
    DEBUG: bool = Field(False)
    CORS_ORIGIN_REGEX: str = Field(r"http://(localhost|127\.0\.0\.1)(:\d+)?")

    # Calling
    CALL_INVITE_TIMEOUT_SECONDS: float = Field(45.0)
    COLLABORATOR_TIMEOUT_SECONDS: float = Field(2.0)
    SEND_TIMEOUT_SECONDS: float = Field(5.0)
    PRESENCE_TTL_SECONDS: int = Field(60)
    STATS_LOG_INTERVAL_SECONDS: int = Field(30)
    METRICS_PORT: int | None = Field(None)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8"
    )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )


settings = Settings()
