from __future__ import annotations

from typing import Literal

from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from portal_chat.domain.value_objects.enums import CourseFanoutScope


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_ECHO: bool = False

    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "info"

    REDIS_URL: str = "redis://localhost:6379/0"

    JWT_SECRET: str = ""
    JWT_VERIFY_MODE: Literal["hs256", "jwks"] = "hs256"
    JWT_ALGORITHM: str = "HS256"
    JWKS_URL: str | None = None

    CORS_ORIGINS: list[str] = ["*"]

    # claim: trust the userId in the authenticate event; jwt: also require a matching token
    WS_AUTH_MODE: Literal["claim", "jwt"] = "claim"
    WS_AUTH_TIMEOUT_SECONDS: float = 10.0
    WS_HEARTBEAT_SECONDS: float = 30.0

    PERSIST_TIMEOUT_SECONDS: float = 5.0
    COURSE_FANOUT_SCOPE: CourseFanoutScope = CourseFanoutScope.MEMBERS

    FANOUT_RELAY: Literal["local", "redis"] = "local"
    REDIS_PUBSUB_CHANNEL: str = "portal.chat.fanout"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
