"""Test the scheduled reconciliation task."""

from __future__ import annotations

from inkwell.tasks import celery_app, reconcile_counters


def test_beat_schedule_registers_reconciliation():
    entry = celery_app.conf.beat_schedule["reconcile-counters"]
    assert entry["task"] == "inkwell.tasks.reconcile_counters"


def test_task_reconciles_every_blog(make_blog, author, reload_blog):
    drifted = make_blog(author, "Drifted", view_count=9)
    make_blog(author, "Clean")

    outcome = reconcile_counters()

    assert outcome["status"] == "success"
    assert outcome["drifted"] == {str(drifted.id): {"view_count": [9, 0]}}
    assert reload_blog(drifted.id).view_count == 0


def test_task_dry_run_for_one_blog(make_blog, author, reload_blog):
    drifted = make_blog(author, "Drifted", like_count=2)

    outcome = reconcile_counters(blog_id=drifted.id, dry_run=True)

    assert outcome["dry_run"] is True
    assert outcome["drifted"] == {str(drifted.id): {"like_count": [2, 0]}}
    assert reload_blog(drifted.id).like_count == 2


def test_task_reports_missing_blog(blog):
    outcome = reconcile_counters(blog_id=blog.id + 999)
    assert outcome == {"status": "error", "message": "Blog not found"}
