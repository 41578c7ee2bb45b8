from datetime import datetime

from foodlink import db
from foodlink.models.status import PostStatus
from foodlink.utils.clock import utc_now


class SurplusPost(db.Model):
	__tablename__ = "surplus_posts"

	id = db.Column(db.Integer, primary_key=True)
	donor_id = db.Column(db.Integer, nullable=False, index=True)
	title = db.Column(db.String(150), nullable=False)
	food_categories = db.Column(db.JSON, nullable=False, default=list)
	quantity_value = db.Column(db.Float, nullable=False)
	quantity_unit = db.Column(db.String(30), nullable=False, default="kg")
	pickup_location = db.Column(db.String(255), nullable=False)
	expiry_date = db.Column(db.Date, nullable=False)
	description = db.Column(db.Text, nullable=True)
	status = db.Column(
		db.Enum(PostStatus, native_enum=False, length=20, validate_strings=True),
		nullable=False,
		default=PostStatus.AVAILABLE,
		index=True,
	)
	flagged = db.Column(db.Boolean, nullable=False, default=False)
	flag_reason = db.Column(db.String(255), nullable=True)
	pickup_photo_url = db.Column(db.String(255), nullable=True)
	pickup_temperature = db.Column(db.Float, nullable=True)
	packaging_condition = db.Column(db.String(100), nullable=True)
	created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
	updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

	pickup_slots = db.relationship(
		"PickupSlot",
		backref="surplus_post",
		lazy=True,
		order_by="PickupSlot.slot_order",
		cascade="all, delete-orphan",
	)
	claims = db.relationship("Claim", backref="surplus_post", lazy=True)

	def is_expired(self, now: datetime) -> bool:
		return self.expiry_date is not None and now.date() > self.expiry_date

	def find_slot(self, slot_id):
		return next((slot for slot in self.pickup_slots if slot.id == slot_id), None)

	def to_summary(self):
		return {
			"id": self.id,
			"donor_id": self.donor_id,
			"title": self.title,
			"food_categories": sorted(self.food_categories or []),
			"quantity": {"value": self.quantity_value, "unit": self.quantity_unit},
			"pickup_location": self.pickup_location,
			"expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
			"description": self.description,
			"status": self.status.value,
			"flagged": self.flagged,
			"flag_reason": self.flag_reason,
			"pickup_slots": [slot.to_dict() for slot in self.pickup_slots],
		}


class PickupSlot(db.Model):
	__tablename__ = "pickup_slots"

	id = db.Column(db.Integer, primary_key=True)
	surplus_post_id = db.Column(db.Integer, db.ForeignKey("surplus_posts.id"), nullable=False)
	pickup_date = db.Column(db.Date, nullable=False)
	start_time = db.Column(db.Time, nullable=False)
	end_time = db.Column(db.Time, nullable=False)
	notes = db.Column(db.Text, nullable=True)
	slot_order = db.Column(db.Integer, nullable=False, default=1)
	created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

	def to_dict(self):
		return {
			"id": self.id,
			"pickup_date": self.pickup_date.isoformat(),
			"start_time": self.start_time.strftime("%H:%M"),
			"end_time": self.end_time.strftime("%H:%M"),
			"notes": self.notes,
		}
