from flask import Blueprint, current_app, jsonify, request

from foodlink import limiter
from foodlink.errors import Forbidden, InvalidInput
from foodlink.services.pickup_window import SlotSelection
from foodlink.utils.decorators import current_role, current_user_id, role_required


claims = Blueprint("claims", __name__)


def _workflow():
	return current_app.extensions["claim_workflow"]


def _json_body():
	payload = request.get_json(silent=True)
	if payload is None:
		return {}
	if not isinstance(payload, dict):
		raise InvalidInput("Request body must be a JSON object.")
	return payload


def _confirm_rate_limit():
	return current_app.config.get("CONFIRM_PICKUP_RATE_LIMIT", "10 per minute")


@claims.route("/api/posts/<int:post_id>/claim", methods=["POST"])
@role_required("receiver")
def claim_post(post_id):
	selection = SlotSelection.from_payload(_json_body())
	claim = _workflow().claim_post(post_id, current_user_id(), selection)
	return jsonify({"ok": True, "claim": claim.to_summary()}), 201


@claims.route("/api/claims/<int:claim_id>")
@role_required("donor", "receiver", "admin")
def get_claim(claim_id):
	claim = _workflow().get_claim(claim_id)
	if current_role() != "admin" and not claim.involves(current_user_id()):
		raise Forbidden("You are not a party to this claim.")
	return jsonify({"ok": True, "claim": claim.to_summary()})


@claims.route("/api/claims/<int:claim_id>/pickup-code", methods=["POST"])
@role_required("donor", "receiver")
def generate_pickup_code(claim_id):
	issued = _workflow().generate_pickup_code(claim_id, current_user_id())
	return jsonify({"ok": True, "pickup_code": issued.to_dict()}), 201


@claims.route("/api/claims/<int:claim_id>/confirm-pickup", methods=["POST"])
@limiter.limit(_confirm_rate_limit, methods=["POST"])
@role_required("donor", "receiver")
def confirm_pickup(claim_id):
	payload = _json_body()
	completion = _workflow().confirm_pickup(
		claim_id,
		payload.get("code"),
		current_user_id(),
		evidence=payload,
	)
	return jsonify({"ok": True, "pickup": completion.to_dict()})


@claims.route("/api/claims/<int:claim_id>/cancel", methods=["POST"])
@role_required("donor", "receiver")
def cancel_claim(claim_id):
	reason = str(_json_body().get("reason") or "").strip() or None
	claim = _workflow().cancel_claim(claim_id, current_user_id(), reason)
	return jsonify({"ok": True, "claim": claim.to_summary(), "post_status": claim.surplus_post.status.value})


@claims.route("/api/posts/<int:post_id>/timeline")
@role_required("donor", "receiver")
def post_timeline(post_id):
	workflow = _workflow()
	workflow.get_post(post_id)
	entries = workflow.timeline.entries_for_post(post_id)
	return jsonify({"ok": True, "timeline": [entry.to_dict() for entry in entries]})
