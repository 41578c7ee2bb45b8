from datetime import date, time

import pytest

from foodlink import db
from foodlink.errors import InvalidInput, InvalidPickupSlot
from foodlink.models.status import PostStatus
from foodlink.models.surplus import SurplusPost
from foodlink.models.timeline import TimelineEntry, TimelineEvent
from foodlink.services.surplus_service import create_surplus_post

from conftest import DONOR_ID


def payload(**overrides):
    data = {
        "title": "  Fruit boxes ",
        "food_categories": ["produce", " Fruit "],
        "quantity_value": 8,
        "pickup_location": "Market stall 14",
        "expiry_date": "2026-10-21",
        "pickup_slots": [
            {"pickup_date": "2026-10-19", "start_time": "16:00", "end_time": "17:00"},
            {"pickup_date": "2026-10-18", "start_time": "09:00", "end_time": "09:30", "notes": "Back door"},
        ],
    }
    data.update(overrides)
    return data


def test_post_is_created_available_with_ordered_slots(workflow, notifications):
    post = create_surplus_post(DONOR_ID, payload(), workflow)

    stored = db.session.get(SurplusPost, post.id)
    assert stored.status is PostStatus.AVAILABLE
    assert stored.title == "Fruit boxes"
    assert stored.food_categories == ["FRUIT", "PRODUCE"]
    assert stored.quantity_unit == "kg"
    assert stored.expiry_date == date(2026, 10, 21)
    assert [slot.slot_order for slot in stored.pickup_slots] == [1, 2]
    assert stored.pickup_slots[1].start_time == time(9, 0)
    assert stored.pickup_slots[1].notes == "Back door"

    created = TimelineEntry.query.filter_by(surplus_post_id=post.id).one()
    assert created.event_type == TimelineEvent.POST_CREATED
    assert created.new_status == "AVAILABLE"
    assert notifications == [(TimelineEvent.POST_CREATED, post.id, None, "donor")]


@pytest.mark.parametrize(
    "overrides",
    [
        {"title": "   "},
        {"pickup_location": None},
        {"food_categories": "produce"},
        {"quantity_value": "a lot"},
        {"quantity_value": 0},
        {"expiry_date": "21/10/2026"},
    ],
)
def test_invalid_posts_are_rejected(workflow, overrides):
    with pytest.raises(InvalidInput):
        create_surplus_post(DONOR_ID, payload(**overrides), workflow)
    assert SurplusPost.query.count() == 0


@pytest.mark.parametrize(
    "slots",
    [
        [],
        [{"pickup_date": "2026-10-19", "start_time": "17:00", "end_time": "16:00"}],
        [{"pickup_date": "2026-10-19", "start_time": "16:00"}],
        [{"pickup_date": "2026-10-19", "start_time": "16:00+05:30", "end_time": "17:00+05:30"}],
        ["2026-10-19 16:00-17:00"],
        "2026-10-19 16:00-17:00",
    ],
)
def test_invalid_slots_are_rejected(workflow, slots):
    with pytest.raises(InvalidPickupSlot):
        create_surplus_post(DONOR_ID, payload(pickup_slots=slots), workflow)
    assert SurplusPost.query.count() == 0


@pytest.mark.parametrize("body", [["title", "Fruit boxes"], "Fruit boxes", 12])
def test_non_object_payload_is_invalid_input(workflow, body):
    with pytest.raises(InvalidInput):
        create_surplus_post(DONOR_ID, body, workflow)
    assert SurplusPost.query.count() == 0
