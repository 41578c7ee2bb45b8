from datetime import date

from flask import current_app

from foodlink import db
from foodlink.errors import InvalidInput, InvalidPickupSlot
from foodlink.models.status import PostStatus
from foodlink.models.surplus import PickupSlot, SurplusPost
from foodlink.models.timeline import TimelineEvent
from foodlink.services.pickup_window import parse_slot_time


def _parse_slot(raw, order):
    if not isinstance(raw, dict):
        raise InvalidPickupSlot(f"Pickup slot #{order} must be an object.")
    try:
        pickup_date = date.fromisoformat(str(raw["pickup_date"]))
    except (KeyError, TypeError, ValueError):
        raise InvalidPickupSlot(f"Pickup slot #{order} needs pickup_date, start_time and end_time.") from None
    start_time = parse_slot_time(raw.get("start_time"), f"Pickup slot #{order} start_time")
    end_time = parse_slot_time(raw.get("end_time"), f"Pickup slot #{order} end_time")

    if end_time <= start_time:
        raise InvalidPickupSlot(f"Pickup slot #{order} must end after it starts.")

    return PickupSlot(
        pickup_date=pickup_date,
        start_time=start_time,
        end_time=end_time,
        notes=(raw.get("notes") or "").strip() or None,
        slot_order=order,
    )


def create_surplus_post(donor_id, payload, workflow, now=None):
    now = workflow.now(now)
    payload = payload or {}
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object.")

    title = (payload.get("title") or "").strip()
    pickup_location = (payload.get("pickup_location") or "").strip()
    food_categories = payload.get("food_categories") or []
    raw_slots = payload.get("pickup_slots") or []

    if not title or not pickup_location:
        raise InvalidInput("Title and pickup location are required.")
    if not isinstance(food_categories, list) or not all(isinstance(item, str) for item in food_categories):
        raise InvalidInput("food_categories must be a list of names.")

    try:
        quantity_value = float(payload.get("quantity_value"))
    except (TypeError, ValueError):
        raise InvalidInput("Quantity must be a valid number.") from None
    if quantity_value <= 0:
        raise InvalidInput("Quantity must be greater than zero.")

    try:
        expiry_date = date.fromisoformat(str(payload.get("expiry_date")))
    except ValueError:
        raise InvalidInput("expiry_date must be an ISO date (YYYY-MM-DD).") from None

    if not raw_slots:
        raise InvalidPickupSlot("At least one pickup slot is required.")
    slots = [_parse_slot(raw, order) for order, raw in enumerate(raw_slots, start=1)]

    post = SurplusPost(
        donor_id=donor_id,
        title=title,
        food_categories=sorted({item.strip().upper() for item in food_categories if item.strip()}),
        quantity_value=quantity_value,
        quantity_unit=(payload.get("quantity_unit") or "kg").strip(),
        pickup_location=pickup_location,
        expiry_date=expiry_date,
        description=(payload.get("description") or "").strip() or None,
        status=PostStatus.AVAILABLE,
        created_at=now,
        updated_at=now,
        pickup_slots=slots,
    )
    db.session.add(post)
    db.session.flush()

    workflow.timeline.append(
        post.id,
        TimelineEvent.POST_CREATED,
        actor="donor",
        actor_user_id=donor_id,
        timestamp=now,
        new_status=PostStatus.AVAILABLE,
        details=f"Surplus post created with {len(slots)} pickup slot(s)",
    )
    workflow.commit("surplus post")

    current_app.logger.info("Donor %s created surplus post %s", donor_id, post.id)
    workflow.notify(TimelineEvent.POST_CREATED, post.id, actor_role="donor")
    return post
