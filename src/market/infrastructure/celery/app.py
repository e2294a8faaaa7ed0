from celery import Celery

from src.setup.celery_config import get_celery_settings

_settings = get_celery_settings()

celery_app = Celery(
    "label_market",
    broker=_settings.REDIS_URL,
    include=["src.market.worker.tasks.sweep"],
)

celery_app.conf.update(
    task_ignore_result=True,
    result_expires=_settings.RESULT_TTL_SECONDS,
    task_routes={"sweep_expired_leases": {"queue": _settings.SWEEP_QUEUE}},
    # A late sweep is harmless; a pile of queued ones is not.
    beat_schedule={
        "sweep-expired-leases": {
            "task": "sweep_expired_leases",
            "schedule": _settings.SWEEP_INTERVAL_SECONDS,
            "options": {"expires": _settings.SWEEP_INTERVAL_SECONDS},
        },
    },
)
