from flask import Blueprint, current_app, jsonify, request

from foodlink.services.surplus_service import create_surplus_post
from foodlink.utils.decorators import current_user_id, login_required, role_required

posts = Blueprint("posts", __name__)


def _workflow():
    return current_app.extensions["claim_workflow"]


@posts.route("/api/posts", methods=["POST"])
@role_required("donor")
def create_post():
    post = create_surplus_post(current_user_id(), request.get_json(silent=True), _workflow())
    return jsonify({"ok": True, "post": post.to_summary()}), 201


@posts.route("/api/posts/<int:post_id>")
@login_required
def get_post(post_id):
    post = _workflow().get_post(post_id)
    return jsonify({"ok": True, "post": post.to_summary()})
