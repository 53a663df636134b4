from celery import Celery
from celery.schedules import crontab

from roofdesk.config import get_settings
from roofdesk.logging_config import setup_logging

settings = get_settings()
setup_logging()

celery_app = Celery(
    "roofdesk",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["roofdesk.workers.tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes max per task
    task_soft_time_limit=540,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "roofdesk.workers.tasks.build_claim_packet": {"queue": "packets"},
        "roofdesk.workers.tasks.analyze_claim_photos": {"queue": "ai"},
        "roofdesk.workers.tasks.generate_claim_narratives": {"queue": "ai"},
        "roofdesk.workers.tasks.sync_vendor_catalog": {"queue": "vendors"},
        "roofdesk.workers.tasks.sync_vendor_catalogs": {"queue": "vendors"},
    },
    task_annotations={
        # A full catalog run walks every vendor feed.
        "roofdesk.workers.tasks.sync_vendor_catalogs": {
            "time_limit": 1800,
            "soft_time_limit": 1740,
        },
    },
    beat_schedule={
        "sync-vendor-catalogs": {
            "task": "roofdesk.workers.tasks.sync_vendor_catalogs",
            "schedule": crontab(
                hour=settings.vendor_sync_cron_hour,
                minute=settings.vendor_sync_cron_minute,
            ),
        },
    },
)
