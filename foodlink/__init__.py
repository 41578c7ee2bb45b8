from flask import Flask, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFError, CSRFProtect
from sqlalchemy.exc import SQLAlchemyError

from config import Config

db = SQLAlchemy()

migrate = Migrate()

socketio = SocketIO()
csrf = CSRFProtect()
limiter = Limiter(key_func=get_remote_address, default_limits=[])


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)
    socketio.init_app(app, cors_allowed_origins="*", async_mode="threading")
    csrf.init_app(app)
    limiter.init_app(app)

    from foodlink.errors import WorkflowError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        return jsonify({"ok": False, "error": "CSRF_FAILED", "message": error.description}), 400

    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error):
        db.session.rollback()
        app.logger.exception("Storage failure while handling request: %s", error)
        return jsonify({"ok": False, "error": "INTERNAL_ERROR", "message": "Internal error"}), 500

    from foodlink.models import claim, surplus, timeline

    from foodlink.services.claim_service import build_claim_workflow
    from foodlink.services.admin_override_service import AdminOverrideService
    from foodlink.services.expiry_sweep import ExpirySweep

    workflow = build_claim_workflow(app.config)
    app.extensions["claim_workflow"] = workflow
    app.extensions["admin_override"] = AdminOverrideService(workflow)
    app.extensions["expiry_sweep"] = ExpirySweep(workflow)

    # Register Blueprints
    from foodlink.routes.surplus_routes import posts
    app.register_blueprint(posts)

    from foodlink.routes.claim_routes import claims
    app.register_blueprint(claims)

    from foodlink.routes.admin_routes import admin
    app.register_blueprint(admin)

    if app.config.get("SCHEDULER_ENABLED"):
        from foodlink.scheduler import start_scheduler
        app.extensions["scheduler"] = start_scheduler(app)

    return app
