"""Claim and pickup-confirmation workflow.

This is the only place that moves a post or a claim between statuses during
normal operation. Every transition is a conditional UPDATE guarded on the
status the caller expects; a guard that matches no row means someone else
won the race and the whole transaction is rolled back.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from foodlink import db
from foodlink.errors import (
    ClaimConflict,
    ClaimNotActive,
    ClaimNotFound,
    CodeExpired,
    Forbidden,
    InvalidCode,
    InvalidCodeFormat,
    InvalidInput,
    OutsidePickupWindow,
    PickupCodeAlreadyUsed,
    PostNotAvailable,
    PostNotFound,
    StateConflict,
)
from foodlink.models.claim import Claim
from foodlink.models.status import ClaimStatus, PostStatus, can_transition, can_transition_claim
from foodlink.models.surplus import SurplusPost
from foodlink.models.timeline import TimelineEvent
from foodlink.services.pickup_window import PickupToleranceConfig, check_pickup_time, resolve_pickup_window
from foodlink.services.realtime_service import publish_claim_event
from foodlink.services.timeline_service import TimelineRecorder
from foodlink.utils.clock import SystemClock
from foodlink.utils.otp_generator import (
    code_expiry,
    generate_otp,
    hash_pickup_code,
    is_code_expired,
    is_well_formed_code,
    verify_pickup_code,
)


CODE_HOLDERS = {"donor", "receiver", "either"}


@dataclass(frozen=True)
class WorkflowSettings:
    tolerance: PickupToleranceConfig = PickupToleranceConfig()
    code_ttl_minutes: int = 10
    # Side that requests and shows the code; the other side types it in.
    code_holder: str = "either"
    secret_key: str = ""

    def __post_init__(self):
        if self.code_holder not in CODE_HOLDERS:
            raise ValueError(f"code_holder must be one of {sorted(CODE_HOLDERS)}, got {self.code_holder!r}")
        if self.code_ttl_minutes <= 0:
            raise ValueError("code_ttl_minutes must be positive")

    @classmethod
    def from_mapping(cls, config):
        return cls(
            tolerance=PickupToleranceConfig.from_mapping(config),
            code_ttl_minutes=int(config.get("PICKUP_CODE_TTL_MINUTES", 10)),
            code_holder=str(config.get("PICKUP_CODE_HOLDER", "either")).lower(),
            secret_key=config.get("SECRET_KEY", ""),
        )


@dataclass(frozen=True)
class PickupCodeIssued:
    claim_id: int
    code: str
    generated_at: datetime
    expires_at: datetime

    def to_dict(self):
        return {
            "claim_id": self.claim_id,
            "code": self.code,
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class PickupEvidence:
    temperature: Optional[float] = None
    packaging_condition: Optional[str] = None
    photo_url: Optional[str] = None

    @classmethod
    def from_payload(cls, payload):
        """Accepts an existing PickupEvidence, a request body mapping or None."""
        if isinstance(payload, cls):
            return payload
        payload = payload or {}
        if not isinstance(payload, dict):
            raise InvalidInput("Pickup evidence must be a JSON object.")
        temperature = payload.get("temperature")
        if temperature is not None:
            try:
                temperature = float(temperature)
            except (TypeError, ValueError):
                raise InvalidInput("temperature must be a number.") from None
        return cls(
            temperature=temperature,
            packaging_condition=str(payload.get("packaging_condition") or "").strip() or None,
            photo_url=str(payload.get("pickup_evidence_url") or "").strip() or None,
        )


@dataclass(frozen=True)
class PickupCompletion:
    claim_id: int
    post_id: int
    picked_up_at: datetime
    window_reason: str

    def to_dict(self):
        return {
            "claim_id": self.claim_id,
            "post_id": self.post_id,
            "picked_up_at": self.picked_up_at.isoformat(),
            "window_reason": self.window_reason,
        }


class ClaimWorkflowService:
    def __init__(
        self,
        settings: WorkflowSettings,
        clock=None,
        code_generator=generate_otp,
        timeline: TimelineRecorder = None,
        notifier=publish_claim_event,
    ):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.code_generator = code_generator
        self.timeline = timeline or TimelineRecorder()
        self.notifier = notifier

    @property
    def tolerance(self) -> PickupToleranceConfig:
        return self.settings.tolerance

    # -- lookups -----------------------------------------------------------

    def now(self, now=None) -> datetime:
        return now if now is not None else self.clock.now()

    def get_post(self, post_id) -> SurplusPost:
        post = db.session.get(SurplusPost, post_id)
        if post is None:
            raise PostNotFound(f"Surplus post {post_id} does not exist.")
        return post

    def get_claim(self, claim_id) -> Claim:
        claim = db.session.get(Claim, claim_id)
        if claim is None:
            raise ClaimNotFound(f"Claim {claim_id} does not exist.")
        return claim

    def active_claim_for_post(self, post_id) -> Optional[Claim]:
        return Claim.query.filter_by(surplus_post_id=post_id, status=ClaimStatus.ACTIVE).first()

    # -- guarded writes ----------------------------------------------------

    def update_post_status(self, post_id, expected, target, now, override=False, **values) -> bool:
        # Only an admin override may leave the transition table.
        if not override and not can_transition(expected, target):
            raise StateConflict(f"Surplus post {post_id} cannot move from {expected.value} to {target.value}.")
        values.update({"status": target, "updated_at": now})
        rows = SurplusPost.query.filter_by(id=post_id, status=expected).update(values, synchronize_session=False)
        return rows == 1

    def update_claim_status(self, claim_id, expected, target, guard=None, **values) -> bool:
        if not can_transition_claim(expected, target):
            raise StateConflict(f"Claim {claim_id} cannot move from {expected.value} to {target.value}.")
        values["status"] = target
        rows = (
            Claim.query.filter_by(id=claim_id, status=expected, **(guard or {}))
            .update(values, synchronize_session=False)
        )
        return rows == 1

    def update_active_claim(self, claim_id, **values) -> bool:
        """Write to a claim without moving it, provided it is still ACTIVE."""
        rows = Claim.query.filter_by(id=claim_id, status=ClaimStatus.ACTIVE).update(values, synchronize_session=False)
        return rows == 1

    def commit(self, what):
        try:
            db.session.commit()
        except IntegrityError:
            # Constraint violations are translated by the caller.
            db.session.rollback()
            raise
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Storage failure while committing %s", what)
            raise

    def notify(self, event_type, post_id, claim_id=None, actor_role="system"):
        try:
            self.notifier(event_type, post_id, claim_id, actor_role)
        except Exception as exc:
            current_app.logger.error(
                "Notification dispatch failed for %s on post=%s claim=%s: %s", event_type, post_id, claim_id, exc
            )

    @staticmethod
    def actor_role(claim, user_id) -> str:
        return "donor" if user_id == claim.surplus_post.donor_id else "receiver"

    # -- claim -------------------------------------------------------------

    def claim_post(self, post_id, receiver_id, selection=None, now=None) -> Claim:
        now = self.now(now)
        post = self.get_post(post_id)

        if post.donor_id == receiver_id:
            raise Forbidden("Donors cannot claim their own surplus posts.")
        if post.status is not PostStatus.AVAILABLE:
            raise PostNotAvailable(f"Surplus post {post_id} is {post.status.value}.", status=post.status.value)
        if post.is_expired(now):
            raise PostNotAvailable(f"Surplus post {post_id} has expired and cannot be claimed.", status="EXPIRED")

        existing = Claim.query.filter_by(
            surplus_post_id=post.id, receiver_id=receiver_id, status=ClaimStatus.ACTIVE
        ).first()
        if existing is not None:
            raise ClaimConflict(f"Receiver {receiver_id} already holds claim {existing.id} on this post.")

        window = resolve_pickup_window(post, selection, now)

        try:
            if not self.update_post_status(post.id, PostStatus.AVAILABLE, PostStatus.CLAIMED, now):
                db.session.rollback()
                current_app.logger.info("Claim race lost for post=%s receiver=%s", post_id, receiver_id)
                raise ClaimConflict(f"Surplus post {post_id} was claimed by someone else.")

            claim = Claim(
                surplus_post_id=post.id,
                receiver_id=receiver_id,
                claimed_at=now,
                status=ClaimStatus.ACTIVE,
                confirmed_pickup_date=window.pickup_date,
                confirmed_pickup_start_time=window.start_time,
                confirmed_pickup_end_time=window.end_time,
            )
            db.session.add(claim)
            db.session.flush()
            self.timeline.append(
                post.id,
                TimelineEvent.CLAIMED,
                actor="receiver",
                actor_user_id=receiver_id,
                timestamp=now,
                old_status=PostStatus.AVAILABLE,
                new_status=PostStatus.CLAIMED,
                details=f"Claimed by receiver {receiver_id} for {window.start:%Y-%m-%d %H:%M}-{window.end_time:%H:%M}",
            )
            claim_id = claim.id
            self.commit("claim")
        except IntegrityError:
            db.session.rollback()
            raise ClaimConflict(f"Surplus post {post_id} already has an active claim.") from None

        current_app.logger.info("Post %s claimed by receiver %s (claim=%s)", post_id, receiver_id, claim_id)
        self.notify(TimelineEvent.CLAIMED, post_id, claim_id, "receiver")
        return claim

    # -- pickup code -------------------------------------------------------

    def generate_pickup_code(self, claim_id, requester_id, now=None) -> PickupCodeIssued:
        now = self.now(now)
        claim = self.get_claim(claim_id)

        if not claim.involves(requester_id):
            raise Forbidden("Only the donor or the receiver of this claim can request a pickup code.")
        if claim.status is not ClaimStatus.ACTIVE:
            raise ClaimNotActive(f"Claim {claim_id} is {claim.status.value}.")
        role = self.actor_role(claim, requester_id)
        if self.settings.code_holder not in ("either", role):
            raise Forbidden(f"Pickup codes are issued to the {self.settings.code_holder} only.")

        code = self.code_generator()
        if not is_well_formed_code(code):
            raise ValueError("Code generator must return a 6-digit string")
        expires_at = code_expiry(now, minutes=self.settings.code_ttl_minutes)
        replaced = claim.pickup_code_hash is not None and not is_code_expired(claim.code_expires_at, now)
        post_id = claim.surplus_post_id

        updated = self.update_active_claim(
            claim_id,
            pickup_code_hash=hash_pickup_code(code, claim_id, self.settings.secret_key),
            code_generated_at=now,
            code_expires_at=expires_at,
        )
        if not updated:
            db.session.rollback()
            raise ClaimNotActive(f"Claim {claim_id} is no longer active.")

        details = f"Pickup code issued to {role}, valid until {expires_at:%Y-%m-%d %H:%M}"
        if replaced:
            details += "; previous code revoked"
        self.timeline.append(
            post_id,
            TimelineEvent.OTP_GENERATED,
            actor=role,
            actor_user_id=requester_id,
            timestamp=now,
            details=details,
        )
        self.commit("pickup code")

        current_app.logger.info("Pickup code issued for claim=%s by %s %s", claim_id, role, requester_id)
        self.notify(TimelineEvent.OTP_GENERATED, post_id, claim_id, role)
        return PickupCodeIssued(claim_id=claim_id, code=code, generated_at=now, expires_at=expires_at)

    # -- confirmation ------------------------------------------------------

    def confirm_pickup(self, claim_id, submitted_code, confirmer_id, now=None, evidence=None) -> PickupCompletion:
        now = self.now(now)
        claim = self.get_claim(claim_id)

        if not claim.involves(confirmer_id):
            raise Forbidden("Only the donor or the receiver of this claim can confirm the pickup.")
        if claim.status is ClaimStatus.COMPLETED:
            raise PickupCodeAlreadyUsed(f"Claim {claim_id} is already completed; its pickup code was consumed.")
        if claim.status is not ClaimStatus.ACTIVE:
            raise ClaimNotActive(f"Claim {claim_id} is {claim.status.value}.")
        role = self.actor_role(claim, confirmer_id)
        if self.settings.code_holder == role:
            raise Forbidden(f"The pickup code is entered by the counter-party of the {role}.")

        code = submitted_code if isinstance(submitted_code, str) else ""
        if not is_well_formed_code(code):
            raise InvalidCodeFormat("Pickup code must be exactly 6 digits.")
        if not verify_pickup_code(claim.pickup_code_hash, code, claim_id, self.settings.secret_key):
            current_app.logger.warning("Invalid pickup code submitted for claim=%s by user=%s", claim_id, confirmer_id)
            raise InvalidCode("Pickup code does not match.")
        if is_code_expired(claim.code_expires_at, now):
            current_app.logger.warning("Expired pickup code submitted for claim=%s by user=%s", claim_id, confirmer_id)
            raise CodeExpired("Pickup code has expired. Request a new one.", expired_at=claim.code_expires_at.isoformat())

        check = check_pickup_time(claim.pickup_start, claim.pickup_end, now, self.tolerance)
        if not check.allowed:
            current_app.logger.warning("Pickup denied for claim=%s: %s", claim_id, check.reason)
            raise OutsidePickupWindow(
                check.message,
                reason=check.reason,
                earliest=check.earliest.isoformat(),
                latest=check.latest.isoformat(),
            )

        evidence = PickupEvidence.from_payload(evidence)

        post_id = claim.surplus_post_id
        # The verified hash is part of the guard: a code replaced or consumed
        # since the claim was read must not complete it.
        if not self.update_claim_status(
            claim_id,
            ClaimStatus.ACTIVE,
            ClaimStatus.COMPLETED,
            guard={"pickup_code_hash": claim.pickup_code_hash},
            picked_up_at=now,
            pickup_code_hash=None,
        ):
            current = db.session.query(Claim.status).filter_by(id=claim_id).scalar()
            db.session.rollback()
            current_app.logger.warning("Pickup confirmation for claim=%s lost a race (claim is %s)", claim_id, current)
            if current is ClaimStatus.ACTIVE:
                raise InvalidCode("Pickup code was replaced. Use the latest code.")
            if current is ClaimStatus.COMPLETED:
                raise PickupCodeAlreadyUsed(f"Claim {claim_id} is already completed; its pickup code was consumed.")
            raise ClaimNotActive(f"Claim {claim_id} is no longer active.")
        if not self.update_post_status(
            post_id,
            PostStatus.CLAIMED,
            PostStatus.COMPLETED,
            now,
            pickup_temperature=evidence.temperature,
            packaging_condition=evidence.packaging_condition,
            pickup_photo_url=evidence.photo_url,
        ):
            db.session.rollback()
            raise StateConflict(f"Surplus post {post_id} is no longer CLAIMED.")

        self.timeline.append(
            post_id,
            TimelineEvent.PICKUP_CONFIRMED,
            actor=role,
            actor_user_id=confirmer_id,
            timestamp=now,
            old_status=PostStatus.CLAIMED,
            new_status=PostStatus.COMPLETED,
            details=f"Pickup confirmed by {role} {confirmer_id} ({check.reason}). {check.message}",
            temperature=evidence.temperature,
            packaging_condition=evidence.packaging_condition,
            pickup_evidence_url=evidence.photo_url,
        )
        self.commit("pickup confirmation")

        current_app.logger.info("Pickup confirmed for claim=%s post=%s (%s)", claim_id, post_id, check.reason)
        self.notify(TimelineEvent.PICKUP_CONFIRMED, post_id, claim_id, role)
        return PickupCompletion(claim_id=claim_id, post_id=post_id, picked_up_at=now, window_reason=check.reason)

    # -- cancellation ------------------------------------------------------

    def cancel_claim(self, claim_id, actor_id, reason=None, now=None, as_admin=False) -> Claim:
        now = self.now(now)
        claim = self.get_claim(claim_id)

        if not as_admin and not claim.involves(actor_id):
            raise Forbidden("Only the donor or the receiver of this claim can cancel it.")
        if claim.status is not ClaimStatus.ACTIVE:
            raise ClaimNotActive(f"Claim {claim_id} is {claim.status.value} and cannot be cancelled.")

        actor = "admin" if as_admin else self.actor_role(claim, actor_id)
        details = f"Claim cancelled by {actor} {actor_id}"
        if reason:
            details += f": {reason}"
        post_id = claim.surplus_post_id
        new_status = self.release_claim(claim, now, actor, actor_id, reason, details)
        if as_admin:
            self.timeline.append(
                post_id,
                TimelineEvent.ADMIN_OVERRIDE,
                actor="admin",
                actor_user_id=actor_id,
                timestamp=now,
                old_status=PostStatus.CLAIMED,
                new_status=new_status,
                details=reason or "Admin cancelled claim",
                visible_to_users=False,
            )
        self.commit("claim cancellation")

        current_app.logger.info("Claim %s cancelled by %s %s; post %s -> %s", claim_id, actor, actor_id, post_id, new_status.value)
        self.notify(TimelineEvent.CANCELLED, post_id, claim_id, actor)
        return claim

    def release_claim(self, claim, now, actor, actor_id, reason, details) -> PostStatus:
        """Stage ACTIVE -> CANCELLED for the claim and CLAIMED -> AVAILABLE/EXPIRED for its post.

        The caller commits.
        """
        post = claim.surplus_post
        target = PostStatus.EXPIRED if post.is_expired(now) else PostStatus.AVAILABLE

        if not self.update_claim_status(
            claim.id,
            ClaimStatus.ACTIVE,
            ClaimStatus.CANCELLED,
            cancelled_at=now,
            cancellation_reason=(reason or "")[:255] or None,
            pickup_code_hash=None,
        ):
            db.session.rollback()
            raise ClaimNotActive(f"Claim {claim.id} is no longer active.")
        if not self.update_post_status(post.id, PostStatus.CLAIMED, target, now):
            db.session.rollback()
            raise StateConflict(f"Surplus post {post.id} is no longer CLAIMED.")

        self.timeline.append(
            post.id,
            TimelineEvent.CANCELLED,
            actor=actor,
            actor_user_id=actor_id,
            timestamp=now,
            old_status=PostStatus.CLAIMED,
            new_status=target,
            details=details,
        )
        return target

    # -- sweep steps -------------------------------------------------------

    def expire_post_if_due(self, post_id, now=None) -> bool:
        now = self.now(now)
        rows = SurplusPost.query.filter(
            SurplusPost.id == post_id,
            SurplusPost.status == PostStatus.AVAILABLE,
            SurplusPost.expiry_date < now.date(),
        ).update({"status": PostStatus.EXPIRED, "updated_at": now}, synchronize_session=False)
        if rows != 1:
            db.session.rollback()
            return False

        self.timeline.append(
            post_id,
            TimelineEvent.EXPIRED,
            actor="system",
            timestamp=now,
            old_status=PostStatus.AVAILABLE,
            new_status=PostStatus.EXPIRED,
            details="Expiry date passed without a claim",
        )
        self.commit("post expiry")
        self.notify(TimelineEvent.EXPIRED, post_id)
        return True

    def pickup_deadline(self, claim) -> datetime:
        return claim.pickup_end + timedelta(minutes=self.tolerance.late_minutes)

    def cancel_missed_pickup(self, claim_id, now=None) -> bool:
        now = self.now(now)
        claim = self.get_claim(claim_id)
        if claim.status.is_terminal or self.pickup_deadline(claim) >= now:
            return False

        post_id = claim.surplus_post_id
        try:
            self.release_claim(
                claim,
                now,
                "system",
                None,
                "Pickup window missed",
                f"Claim {claim_id} cancelled automatically; pickup window ended without confirmation",
            )
        except StateConflict:
            current_app.logger.info("Claim %s changed while sweeping; skipped", claim_id)
            return False
        self.commit("missed pickup cancellation")
        self.notify(TimelineEvent.CANCELLED, post_id, claim_id)
        return True


def build_claim_workflow(config, **overrides) -> ClaimWorkflowService:
    return ClaimWorkflowService(WorkflowSettings.from_mapping(config), **overrides)
