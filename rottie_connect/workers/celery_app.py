from celery import Celery
from rottie_connect.core.config import settings

celery_app = Celery("rottie_connect", broker=settings.REDIS_URL, backend=settings.REDIS_URL)
celery_app.conf.include = ["rottie_connect.workers.tasks.retention"]

celery_app.conf.beat_schedule = {
    "purge_expired_verification_codes": {
        "task": "rottie_connect.workers.tasks.retention.purge_expired_verification_codes",
        "schedule": 3600.0,
    },
}
celery_app.conf.timezone = "UTC"
