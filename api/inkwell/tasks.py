from __future__ import annotations

import logging
import os
from typing import Any

from celery import Celery

from . import settings

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "inkwell",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    beat_schedule={
        "reconcile-counters": {
            "task": "inkwell.tasks.reconcile_counters",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
    },
    timezone="UTC",
)


@celery_app.task(name="inkwell.tasks.reconcile_counters", bind=True)
def reconcile_counters(self, blog_id: int | None = None, dry_run: bool = False) -> dict[str, Any]:
    """
    Recount engagement rows and correct drifted blog counters.

    Runs on the beat schedule over every blog, or on demand for one blog.
    """
    from .db import SessionLocal
    from .errors import NotFound
    from .services.counters import reconcile_all, reconcile_blog

    db = SessionLocal()
    try:
        if blog_id is not None:
            try:
                results = [reconcile_blog(db, blog_id, dry_run=dry_run)]
            except NotFound:
                logger.error("Blog %s not found, nothing to reconcile", blog_id)
                return {"status": "error", "message": "Blog not found"}
        else:
            results = reconcile_all(db, dry_run=dry_run)

        drifted = [r for r in results if r.drifted]
        return {
            "status": "success",
            "dry_run": dry_run,
            "drifted": {
                str(r.blog_id): {name: list(values) for name, values in r.corrections.items()}
                for r in drifted
            },
        }
    except Exception as e:
        logger.error("Counter reconciliation failed: %s", e, exc_info=True)
        return {"status": "error", "message": str(e)}
    finally:
        db.close()
