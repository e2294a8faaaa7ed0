from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class CelerySettings(BaseSettings):
    """Broker for the worker and the schedule of the expired-lease sweep."""
    REDIS_URL: str = "redis://redis:6379/0"
    RESULT_TTL_SECONDS: int = 3600
    SWEEP_INTERVAL_SECONDS: float = Field(default=60.0, gt=0)
    SWEEP_QUEUE: str = "maintenance"

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_celery_settings() -> CelerySettings:
    return CelerySettings()
