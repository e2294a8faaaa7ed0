from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings


class DatabaseSettings(BaseSettings):
    """Connection settings for the task store (async SQLAlchemy engine)."""
    DATABASE_URL: str
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = 5
    DATABASE_POOL_PRE_PING: bool = True

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @field_validator("DATABASE_URL")
    @classmethod
    def _use_async_driver(cls, value: str) -> str:
        # Plain postgres URLs (as handed out by most hosts) get the asyncpg driver.
        for prefix in ("postgres://", "postgresql://"):
            if value.startswith(prefix):
                return "postgresql+asyncpg://" + value[len(prefix):]
        return value


def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()  # type: ignore[call-arg]
