from flask import current_app

from foodlink import db
from foodlink.errors import StateConflict
from foodlink.models.status import ClaimStatus, PostStatus, parse_post_status
from foodlink.models.timeline import TimelineEvent


class AdminOverrideService:
    """Out-of-band status changes. Always audited, never visible to donors or receivers."""

    def __init__(self, workflow):
        self.workflow = workflow

    @property
    def timeline(self):
        return self.workflow.timeline

    def override_status(self, post_id, new_status, reason, admin_id, now=None):
        target = parse_post_status(new_status)
        now = self.workflow.now(now)
        post = self.workflow.get_post(post_id)
        old_status = post.status
        active_claim = self.workflow.active_claim_for_post(post.id)

        if target is PostStatus.CLAIMED and active_claim is None:
            raise StateConflict(f"Surplus post {post_id} has no active claim; it cannot be forced to CLAIMED.")

        if not self.workflow.update_post_status(post.id, old_status, target, now, override=True):
            db.session.rollback()
            raise StateConflict(f"Surplus post {post_id} changed while the override was applied.")

        if active_claim is not None and target is not PostStatus.CLAIMED:
            self._close_active_claim(active_claim, target, now, reason)

        self.timeline.append(
            post.id,
            TimelineEvent.ADMIN_OVERRIDE,
            actor="admin",
            actor_user_id=admin_id,
            timestamp=now,
            old_status=old_status,
            new_status=target,
            details=reason or "Admin manual override",
            visible_to_users=False,
        )
        self.workflow.commit("admin override")

        current_app.logger.info(
            "Admin %s overrode post %s status %s -> %s", admin_id, post_id, old_status.value, target.value
        )
        if old_status.is_terminal and target is not old_status:
            current_app.logger.warning("Post %s reopened from terminal status %s by admin %s", post_id, old_status.value, admin_id)
        self.workflow.notify(TimelineEvent.ADMIN_OVERRIDE, post_id, active_claim.id if active_claim else None, "admin")
        return self.workflow.get_post(post_id)

    def _close_active_claim(self, claim, target, now, reason):
        if target is PostStatus.COMPLETED:
            closed = self.workflow.update_claim_status(
                claim.id, ClaimStatus.ACTIVE, ClaimStatus.COMPLETED, picked_up_at=now, pickup_code_hash=None
            )
        else:
            closed = self.workflow.update_claim_status(
                claim.id,
                ClaimStatus.ACTIVE,
                ClaimStatus.CANCELLED,
                cancelled_at=now,
                cancellation_reason=f"Admin override to {target.value}"[:255],
                pickup_code_hash=None,
            )
        if not closed:
            db.session.rollback()
            raise StateConflict(f"Claim {claim.id} changed while the override was applied.")

    def cancel_claim(self, claim_id, admin_id, reason, now=None):
        return self.workflow.cancel_claim(claim_id, admin_id, reason=reason, now=now, as_admin=True)

    def flag_post(self, post_id, reason, admin_id, now=None):
        return self._set_flag(post_id, True, reason, admin_id, now)

    def unflag_post(self, post_id, admin_id, now=None):
        return self._set_flag(post_id, False, None, admin_id, now)

    def _set_flag(self, post_id, flagged, reason, admin_id, now):
        now = self.workflow.now(now)
        post = self.workflow.get_post(post_id)
        post.flagged = flagged
        post.flag_reason = reason if flagged else None
        self.timeline.append(
            post.id,
            TimelineEvent.POST_FLAGGED if flagged else TimelineEvent.POST_UNFLAGGED,
            actor="admin",
            actor_user_id=admin_id,
            timestamp=now,
            details=reason,
            visible_to_users=False,
        )
        self.workflow.commit("post moderation")
        current_app.logger.info("Admin %s %s post %s", admin_id, "flagged" if flagged else "unflagged", post_id)
        return post
