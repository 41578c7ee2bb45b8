from sqlalchemy import event

from foodlink import db
from foodlink.utils.clock import utc_now


class TimelineEvent:
	POST_CREATED = "POST_CREATED"
	CLAIMED = "CLAIMED"
	OTP_GENERATED = "OTP_GENERATED"
	PICKUP_CONFIRMED = "PICKUP_CONFIRMED"
	CANCELLED = "CANCELLED"
	EXPIRED = "EXPIRED"
	ADMIN_OVERRIDE = "ADMIN_OVERRIDE"
	POST_FLAGGED = "POST_FLAGGED"
	POST_UNFLAGGED = "POST_UNFLAGGED"


class TimelineEntry(db.Model):
	__tablename__ = "post_timeline"

	id = db.Column(db.Integer, primary_key=True)
	surplus_post_id = db.Column(db.Integer, db.ForeignKey("surplus_posts.id"), nullable=False, index=True)
	event_type = db.Column(db.String(50), nullable=False)
	timestamp = db.Column(db.DateTime, nullable=False, default=utc_now)
	actor = db.Column(db.String(20), nullable=False)
	actor_user_id = db.Column(db.Integer, nullable=True)
	old_status = db.Column(db.String(20), nullable=True)
	new_status = db.Column(db.String(20), nullable=True)
	details = db.Column(db.Text, nullable=True)
	visible_to_users = db.Column(db.Boolean, nullable=False, default=True)
	temperature = db.Column(db.Float, nullable=True)
	packaging_condition = db.Column(db.String(100), nullable=True)
	pickup_evidence_url = db.Column(db.String(255), nullable=True)

	def to_dict(self):
		return {
			"id": self.id,
			"post_id": self.surplus_post_id,
			"event_type": self.event_type,
			"timestamp": self.timestamp.isoformat(),
			"actor": self.actor,
			"actor_user_id": self.actor_user_id,
			"old_status": self.old_status,
			"new_status": self.new_status,
			"details": self.details,
			"visible_to_users": self.visible_to_users,
			"temperature": self.temperature,
			"packaging_condition": self.packaging_condition,
			"pickup_evidence_url": self.pickup_evidence_url,
		}


@event.listens_for(TimelineEntry, "before_update")
def _reject_timeline_update(mapper, connection, target):
	raise ValueError(f"Timeline entry {target.id} is append-only")
