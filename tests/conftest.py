from datetime import date, datetime, time, timedelta

import pytest

from config import Config
from foodlink import create_app, db
from foodlink.models.status import PostStatus
from foodlink.models.surplus import PickupSlot, SurplusPost
from foodlink.services.admin_override_service import AdminOverrideService
from foodlink.services.claim_service import ClaimWorkflowService, WorkflowSettings
from foodlink.services.expiry_sweep import ExpirySweep
from foodlink.services.pickup_window import PickupToleranceConfig


DONOR_ID = 1
RECEIVER_A = 2
RECEIVER_B = 3
ADMIN_ID = 99
OUTSIDER_ID = 50

NOW = datetime(2026, 10, 18, 13, 50)
PICKUP_DAY = date(2026, 10, 18)
SLOT_START = time(14, 0)
SLOT_END = time(15, 0)


class SqliteMemoryConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SECRET_KEY = "test-secret"
    WTF_CSRF_ENABLED = False
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    PICKUP_EARLY_TOLERANCE_MINUTES = 15
    PICKUP_LATE_TOLERANCE_MINUTES = 30
    PICKUP_CODE_TTL_MINUTES = 10
    PICKUP_CODE_HOLDER = "either"


class FakeClock:
    def __init__(self, current):
        self.current = current

    def now(self):
        return self.current

    def set(self, value):
        self.current = value

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class CodeFeed:
    """Deterministic stand-in for the random code generator."""

    def __init__(self, *codes):
        self.codes = list(codes)

    def push(self, *codes):
        self.codes.extend(codes)

    def __call__(self):
        return self.codes.pop(0) if self.codes else "482913"


@pytest.fixture
def app():
    app = create_app(SqliteMemoryConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def code_feed():
    return CodeFeed()


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def settings():
    return WorkflowSettings(
        tolerance=PickupToleranceConfig(early_minutes=15, late_minutes=30),
        code_ttl_minutes=10,
        secret_key="test-secret",
    )


@pytest.fixture
def workflow(app, settings, clock, code_feed, notifications):
    def record(event_type, post_id, claim_id, actor_role):
        notifications.append((event_type, post_id, claim_id, actor_role))

    return ClaimWorkflowService(settings, clock=clock, code_generator=code_feed, notifier=record)


@pytest.fixture
def overrides(workflow):
    return AdminOverrideService(workflow)


@pytest.fixture
def sweep(workflow):
    return ExpirySweep(workflow)


@pytest.fixture
def make_post(app):
    def _make_post(
        donor_id=DONOR_ID,
        expiry_date=date(2026, 10, 20),
        slots=((PICKUP_DAY, SLOT_START, SLOT_END),),
        status=PostStatus.AVAILABLE,
    ):
        post = SurplusPost(
            donor_id=donor_id,
            title="Vegetable trays",
            food_categories=["PRODUCE"],
            quantity_value=12,
            quantity_unit="kg",
            pickup_location="12 Harbour Street",
            expiry_date=expiry_date,
            status=status,
            pickup_slots=[
                PickupSlot(pickup_date=day, start_time=start, end_time=end, slot_order=order)
                for order, (day, start, end) in enumerate(slots, start=1)
            ],
        )
        db.session.add(post)
        db.session.commit()
        return post

    return _make_post


@pytest.fixture
def claimed(workflow, make_post):
    """A post claimed by RECEIVER_A on the 14:00-15:00 slot."""
    post = make_post()
    claim = workflow.claim_post(post.id, RECEIVER_A)
    return post, claim
