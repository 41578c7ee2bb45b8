from functools import wraps

from flask import jsonify, session


def current_user_id():
	try:
		return int(session.get("user_id"))
	except (TypeError, ValueError):
		return None


def current_role():
	return session.get("role")


def login_required(view_func):
	@wraps(view_func)
	def wrapper(*args, **kwargs):
		if current_user_id() is None:
			return jsonify({"ok": False, "error": "UNAUTHENTICATED", "message": "Please login to continue."}), 401
		return view_func(*args, **kwargs)

	return wrapper


def role_required(*allowed_roles):
	def decorator(view_func):
		@wraps(view_func)
		def wrapper(*args, **kwargs):
			if current_user_id() is None:
				return jsonify({"ok": False, "error": "UNAUTHENTICATED", "message": "Please login to continue."}), 401

			if current_role() not in allowed_roles:
				return jsonify({"ok": False, "error": "FORBIDDEN", "message": "You are not authorized to access this resource."}), 403

			return view_func(*args, **kwargs)

		return wrapper

	return decorator
