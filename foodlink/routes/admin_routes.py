from flask import Blueprint, current_app, jsonify, request

from foodlink.errors import InvalidInput
from foodlink.utils.decorators import current_user_id, role_required


admin = Blueprint("admin", __name__)


def _overrides():
	return current_app.extensions["admin_override"]


def _json_body():
	payload = request.get_json(silent=True)
	if payload is None:
		return {}
	if not isinstance(payload, dict):
		raise InvalidInput("Request body must be a JSON object.")
	return payload


def _reason(payload):
	return str(payload.get("reason") or "").strip() or None


@admin.route("/api/admin/posts/<int:post_id>/status", methods=["POST"])
@role_required("admin")
def admin_override_status(post_id):
	payload = _json_body()
	post = _overrides().override_status(post_id, payload.get("status"), _reason(payload), current_user_id())
	return jsonify({"ok": True, "post": post.to_summary()})


@admin.route("/api/admin/posts/<int:post_id>/flag", methods=["POST"])
@role_required("admin")
def admin_flag_post(post_id):
	post = _overrides().flag_post(post_id, _reason(_json_body()), current_user_id())
	return jsonify({"ok": True, "post": post.to_summary()})


@admin.route("/api/admin/posts/<int:post_id>/unflag", methods=["POST"])
@role_required("admin")
def admin_unflag_post(post_id):
	post = _overrides().unflag_post(post_id, current_user_id())
	return jsonify({"ok": True, "post": post.to_summary()})


@admin.route("/api/admin/claims/<int:claim_id>/cancel", methods=["POST"])
@role_required("admin")
def admin_cancel_claim(claim_id):
	claim = _overrides().cancel_claim(claim_id, current_user_id(), _reason(_json_body()))
	return jsonify({"ok": True, "claim": claim.to_summary(), "post_status": claim.surplus_post.status.value})


@admin.route("/api/admin/posts/<int:post_id>/timeline")
@role_required("admin")
def admin_post_timeline(post_id):
	overrides = _overrides()
	overrides.workflow.get_post(post_id)
	entries = overrides.timeline.entries_for_post(post_id, include_internal=True)
	return jsonify({"ok": True, "timeline": [entry.to_dict() for entry in entries]})
