from datetime import date

from foodlink import db
from foodlink.models.status import PostStatus
from foodlink.models.surplus import SurplusPost
from foodlink.scheduler import run_expiry_sweep, start_scheduler


def test_expiry_sweep_job_is_registered(app):
    app.config["EXPIRY_SWEEP_INTERVAL_SECONDS"] = 120
    scheduler = start_scheduler(app)
    try:
        job = scheduler.get_job("expiry_sweep")
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True
        assert job.trigger.interval.total_seconds() == 120
    finally:
        scheduler.shutdown(wait=False)


def test_scheduled_run_uses_its_own_app_context(app, make_post):
    post = make_post(expiry_date=date(2000, 1, 1))

    run_expiry_sweep(app)

    db.session.expire_all()
    assert db.session.get(SurplusPost, post.id).status is PostStatus.EXPIRED
