"""Pickup slot selection and the early/late tolerance window around it."""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from foodlink.errors import InvalidPickupSlot


WITHIN_WINDOW = "WITHIN_WINDOW"
EARLY_TOLERANCE = "EARLY_TOLERANCE"
LATE_TOLERANCE = "LATE_TOLERANCE"
TOO_EARLY = "TOO_EARLY"
TOO_LATE = "TOO_LATE"


@dataclass(frozen=True)
class PickupToleranceConfig:
    early_minutes: int = 15
    late_minutes: int = 30

    def __post_init__(self):
        if self.early_minutes < 0 or self.late_minutes < 0:
            raise ValueError("Pickup tolerance minutes cannot be negative")

    @classmethod
    def from_mapping(cls, config):
        return cls(
            early_minutes=int(config.get("PICKUP_EARLY_TOLERANCE_MINUTES", 15)),
            late_minutes=int(config.get("PICKUP_LATE_TOLERANCE_MINUTES", 30)),
        )


@dataclass(frozen=True)
class SlotSelection:
    """Either a reference to one of the post's slots or an inline slot."""

    slot_id: Optional[int] = None
    pickup_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @property
    def is_inline(self):
        return self.slot_id is None and self.pickup_date is not None

    @classmethod
    def from_payload(cls, payload):
        payload = payload or {}
        if not isinstance(payload, dict):
            raise InvalidPickupSlot("Slot selection must be a JSON object.")
        slot_id = payload.get("pickup_slot_id")
        inline = payload.get("pickup_slot")
        if slot_id is not None and inline is not None:
            raise InvalidPickupSlot("Send either pickup_slot_id or pickup_slot, not both.")
        if slot_id is not None:
            if isinstance(slot_id, bool):
                raise InvalidPickupSlot("pickup_slot_id must be an integer.")
            try:
                return cls(slot_id=int(slot_id))
            except (TypeError, ValueError):
                raise InvalidPickupSlot("pickup_slot_id must be an integer.") from None
        if inline is not None:
            if not isinstance(inline, dict):
                raise InvalidPickupSlot("pickup_slot must be an object with pickup_date, start_time and end_time.")
            return cls(
                pickup_date=_parse(date.fromisoformat, inline.get("pickup_date"), "pickup_date"),
                start_time=parse_slot_time(inline.get("start_time"), "start_time"),
                end_time=parse_slot_time(inline.get("end_time"), "end_time"),
            )
        return None


def _parse(parser, raw, field):
    if raw is None:
        raise InvalidPickupSlot(f"{field} is missing or malformed.")
    try:
        return parser(str(raw))
    except (TypeError, ValueError):
        raise InvalidPickupSlot(f"{field} is missing or malformed.") from None


def parse_slot_time(raw, field):
    """ISO time of day without a UTC offset; slot times are naive UTC like every stored datetime."""
    value = _parse(time.fromisoformat, raw, field)
    if value.tzinfo is not None:
        raise InvalidPickupSlot(f"{field} must not carry a UTC offset; send the time in UTC.")
    return value


@dataclass(frozen=True)
class PickupWindow:
    pickup_date: date
    start_time: time
    end_time: time

    @property
    def start(self):
        return datetime.combine(self.pickup_date, self.start_time)

    @property
    def end(self):
        return datetime.combine(self.pickup_date, self.end_time)


@dataclass(frozen=True)
class WindowCheck:
    allowed: bool
    reason: str
    message: str
    earliest: datetime
    latest: datetime


def resolve_pickup_window(post, selection, now):
    """Pick the window a claim will be bound to and make sure it is usable."""
    if selection is None:
        if len(post.pickup_slots) != 1:
            raise InvalidPickupSlot("Choose one of the post's pickup slots.")
        slot = post.pickup_slots[0]
        window = PickupWindow(slot.pickup_date, slot.start_time, slot.end_time)
    elif selection.slot_id is not None:
        slot = post.find_slot(selection.slot_id)
        if slot is None:
            raise InvalidPickupSlot(f"Pickup slot {selection.slot_id} does not belong to post {post.id}.")
        window = PickupWindow(slot.pickup_date, slot.start_time, slot.end_time)
    elif selection.is_inline and selection.start_time and selection.end_time:
        window = PickupWindow(selection.pickup_date, selection.start_time, selection.end_time)
    else:
        raise InvalidPickupSlot("Pickup slot needs a date, a start time and an end time.")

    if window.end <= window.start:
        raise InvalidPickupSlot("Pickup slot must end after it starts.")
    if window.end < now:
        raise InvalidPickupSlot("Pickup slot is already in the past.")
    return window


def check_pickup_time(start, end, now, tolerance):
    """Classify ``now`` against ``[start - early, end + late]``; both bounds inclusive."""
    earliest = start - timedelta(minutes=tolerance.early_minutes)
    latest = end + timedelta(minutes=tolerance.late_minutes)

    if now < earliest:
        minutes_left = int((earliest - now).total_seconds() // 60)
        message = (
            f"Pickup confirmation not yet allowed. Please wait until {earliest:%H:%M} "
            f"(in {minutes_left} minutes); the early tolerance window opens "
            f"{tolerance.early_minutes} minutes before the scheduled start of {start:%H:%M}."
        )
        return WindowCheck(False, TOO_EARLY, message, earliest, latest)

    if now > latest:
        minutes_over = int((now - latest).total_seconds() // 60)
        message = (
            f"Pickup confirmation window has expired. The late tolerance window ended at "
            f"{latest:%H:%M} ({tolerance.late_minutes} minutes after the scheduled end of "
            f"{end:%H:%M}), {minutes_over} minutes ago."
        )
        return WindowCheck(False, TOO_LATE, message, earliest, latest)

    if now < start:
        minutes_early = int((start - now).total_seconds() // 60)
        message = f"Pickup confirmed {minutes_early} minutes before the scheduled start of {start:%H:%M}."
        return WindowCheck(True, EARLY_TOLERANCE, message, earliest, latest)

    if now > end:
        minutes_late = int((now - end).total_seconds() // 60)
        message = f"Pickup confirmed {minutes_late} minutes after the scheduled end of {end:%H:%M}."
        return WindowCheck(True, LATE_TOLERANCE, message, earliest, latest)

    return WindowCheck(True, WITHIN_WINDOW, "Pickup confirmed within the scheduled pickup window.", earliest, latest)
