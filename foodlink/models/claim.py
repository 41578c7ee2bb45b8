from datetime import datetime

from foodlink import db
from foodlink.models.status import ClaimStatus
from foodlink.utils.clock import utc_now


class Claim(db.Model):
	__tablename__ = "claims"
	__table_args__ = (
		# At most one ACTIVE claim per post, enforced by the database as well.
		db.Index(
			"uq_claims_one_active_per_post",
			"surplus_post_id",
			unique=True,
			sqlite_where=db.text("status = 'ACTIVE'"),
			postgresql_where=db.text("status = 'ACTIVE'"),
		),
	)

	id = db.Column(db.Integer, primary_key=True)
	surplus_post_id = db.Column(db.Integer, db.ForeignKey("surplus_posts.id"), nullable=False, index=True)
	receiver_id = db.Column(db.Integer, nullable=False, index=True)
	claimed_at = db.Column(db.DateTime, nullable=False, default=utc_now)
	status = db.Column(
		db.Enum(ClaimStatus, native_enum=False, length=20, validate_strings=True),
		nullable=False,
		default=ClaimStatus.ACTIVE,
	)
	confirmed_pickup_date = db.Column(db.Date, nullable=False)
	confirmed_pickup_start_time = db.Column(db.Time, nullable=False)
	confirmed_pickup_end_time = db.Column(db.Time, nullable=False)
	pickup_code_hash = db.Column(db.String(64), nullable=True)
	code_generated_at = db.Column(db.DateTime, nullable=True)
	code_expires_at = db.Column(db.DateTime, nullable=True)
	picked_up_at = db.Column(db.DateTime, nullable=True)
	cancelled_at = db.Column(db.DateTime, nullable=True)
	cancellation_reason = db.Column(db.String(255), nullable=True)

	@property
	def pickup_start(self) -> datetime:
		return datetime.combine(self.confirmed_pickup_date, self.confirmed_pickup_start_time)

	@property
	def pickup_end(self) -> datetime:
		return datetime.combine(self.confirmed_pickup_date, self.confirmed_pickup_end_time)

	def involves(self, user_id) -> bool:
		return user_id is not None and user_id in (self.receiver_id, self.surplus_post.donor_id)

	def to_summary(self):
		return {
			"claim_id": self.id,
			"post_id": self.surplus_post_id,
			"receiver_id": self.receiver_id,
			"status": self.status.value,
			"claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
			"confirmed_pickup_date": self.confirmed_pickup_date.isoformat(),
			"confirmed_pickup_start": self.confirmed_pickup_start_time.strftime("%H:%M"),
			"confirmed_pickup_end": self.confirmed_pickup_end_time.strftime("%H:%M"),
			"code_expires_at": self.code_expires_at.isoformat() if self.code_expires_at else None,
			"picked_up_at": self.picked_up_at.isoformat() if self.picked_up_at else None,
		}
