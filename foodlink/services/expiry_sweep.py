from dataclasses import dataclass, field
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from foodlink import db
from foodlink.models.claim import Claim
from foodlink.models.status import ClaimStatus, PostStatus
from foodlink.models.surplus import SurplusPost


@dataclass
class SweepResult:
    ran_at: datetime
    expired_post_ids: list = field(default_factory=list)
    cancelled_claim_ids: list = field(default_factory=list)
    failures: int = 0


class ExpirySweep:
    """Periodic cleanup: AVAILABLE posts past expiry -> EXPIRED, missed pickups -> CANCELLED.

    Safe to run repeatedly and alongside user requests: each item goes through
    the same status-guarded update the workflow uses and is committed on its own.
    """

    def __init__(self, workflow):
        self.workflow = workflow

    def run(self, now=None) -> SweepResult:
        now = self.workflow.now(now)
        result = SweepResult(ran_at=now)

        expired_candidates = [
            post_id
            for (post_id,) in db.session.query(SurplusPost.id)
            .filter(SurplusPost.status == PostStatus.AVAILABLE, SurplusPost.expiry_date < now.date())
            .all()
        ]
        for post_id in expired_candidates:
            if self._attempt(result, self.workflow.expire_post_if_due, post_id, now):
                result.expired_post_ids.append(post_id)

        # Coarse filter on the date; the exact deadline is checked per claim.
        latest_date = (now - timedelta(minutes=self.workflow.tolerance.late_minutes)).date()
        claim_candidates = [
            claim_id
            for (claim_id,) in db.session.query(Claim.id)
            .filter(Claim.status == ClaimStatus.ACTIVE, Claim.confirmed_pickup_date <= latest_date)
            .all()
        ]
        for claim_id in claim_candidates:
            if self._attempt(result, self.workflow.cancel_missed_pickup, claim_id, now):
                result.cancelled_claim_ids.append(claim_id)

        if result.expired_post_ids or result.cancelled_claim_ids or result.failures:
            current_app.logger.info(
                "Expiry sweep at %s: %s posts expired, %s claims auto-cancelled, %s failures",
                now.isoformat(),
                len(result.expired_post_ids),
                len(result.cancelled_claim_ids),
                result.failures,
            )
        return result

    @staticmethod
    def _attempt(result, step, item_id, now) -> bool:
        try:
            return step(item_id, now)
        except SQLAlchemyError:
            db.session.rollback()
            result.failures += 1
            current_app.logger.error("Expiry sweep skipped item %s after a storage failure", item_id)
            return False
