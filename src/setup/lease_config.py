from pydantic import ConfigDict, model_validator
from pydantic_settings import BaseSettings


class LeaseSettings(BaseSettings):
    """Bounds for task leases and the expiry sweep batch size."""
    DEFAULT_LEASE_MINUTES: int = 30
    MIN_LEASE_MINUTES: int = 5
    MAX_LEASE_MINUTES: int = 120
    SWEEP_BATCH_SIZE: int = 100

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def _check_bounds(self) -> "LeaseSettings":
        if not self.MIN_LEASE_MINUTES <= self.DEFAULT_LEASE_MINUTES <= self.MAX_LEASE_MINUTES:
            raise ValueError("DEFAULT_LEASE_MINUTES must lie within MIN/MAX_LEASE_MINUTES")
        if self.SWEEP_BATCH_SIZE < 1:
            raise ValueError("SWEEP_BATCH_SIZE must be positive")
        return self


def get_lease_settings() -> LeaseSettings:
    """Return a fresh lease settings instance."""
    return LeaseSettings()
