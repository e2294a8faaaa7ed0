import os

from src.market.infrastructure.celery.app import celery_app
from src.setup.api_config import get_api_settings
from src.setup.celery_config import get_celery_settings
from src.setup.logging_config import configure_logging


def main() -> None:
    log_level = os.getenv("LOG_LEVEL", get_api_settings().LOG_LEVEL)
    concurrency = os.getenv("CELERY_CONCURRENCY", "1")
    queues = os.getenv("CELERY_QUEUES", get_celery_settings().SWEEP_QUEUE)
    configure_logging(log_level)
    # Embedded beat: run exactly one such worker per deployment.
    celery_app.worker_main(
        [
            "worker",
            "--beat",
            "-l",
            log_level,
            "--concurrency",
            concurrency,
            "-Q",
            queues,
        ]
    )


if __name__ == "__main__":
    main()
