from __future__ import annotations

from fastapi import FastAPI

from src.setup.api_config import get_api_settings
from src.setup.app_config import configure_di
from src.setup.logging_config import configure_logging
from src.market.presentation.errors import register_error_handlers

# Configure logging and DI once at process start
_settings = get_api_settings()
configure_logging(_settings.LOG_LEVEL)
configure_di()

app = FastAPI(
    title=_settings.APP_NAME,
    version=_settings.APP_VERSION,
    description="Labeling marketplace task API: leasing, submission and QC review",
)
register_error_handlers(app)

# Routes instantiate their services at import time, so import AFTER configure_di()
from src.market.presentation.routes import router as api_router  # noqa: E402

app.include_router(api_router, prefix="")
