"""Operational endpoints for moderators."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import require_moderator
from ..deps import get_db
from ..services.counters import ReconcileResult, reconcile_all, reconcile_blog

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def to_entry(result: ReconcileResult) -> schemas.ReconcileEntry:
    return schemas.ReconcileEntry(
        blog_id=result.blog_id,
        applied=result.applied,
        corrections=[
            schemas.CounterCorrection(counter=name, stored=stored, actual=actual)
            for name, (stored, actual) in result.corrections.items()
        ],
    )


@router.post("/reconcile", response_model=schemas.ReconcileReport)
def reconcile_counters(
    blog_id: int | None = Query(None),
    dry_run: bool = Query(False),
    db: Session = Depends(get_db),
    moderator: models.User = Depends(require_moderator),
) -> schemas.ReconcileReport:
    """
    Recount likes, bookmarks, comments and views and correct drifted counters.

    Reconciles one blog when ``blog_id`` is given, otherwise every blog.
    With ``dry_run`` the drift is reported but nothing is written.
    """
    logger.info(f"Counter reconciliation requested by user {moderator.id} (blog_id={blog_id}, dry_run={dry_run})")

    if blog_id is not None:
        result = reconcile_blog(db, blog_id, dry_run=dry_run)
        results = [result] if result.drifted else []
    else:
        results = reconcile_all(db, dry_run=dry_run)

    return schemas.ReconcileReport(dry_run=dry_run, drifted=[to_entry(r) for r in results])
