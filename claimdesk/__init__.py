"""
claimdesk/__init__.py

Flask application factory for the claim missions back office.

- JSON API consumed by the single-page front end (/auth, /api/missions).
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev.
- UI is never trusted; every route builds an ActorContext and the services
  enforce access control.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from .enums import Role, parse_enum
from .errors import DomainError
from .extensions import csrf, db, login_manager, migrate
from .logging_setup import configure_logging
from .models import User

logger = logging.getLogger(__name__)


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            user = db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None
        if user is None or not user.is_active:
            return None
        return user

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "unauthorized", "message": "Authentification requise"}), 401

    # ----------------------------------------------------------------------
    # Errors rendered as JSON
    # ----------------------------------------------------------------------
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        code = (exc.name or "error").lower().replace(" ", "_")
        return jsonify({"error": code, "message": exc.description}), exc.code

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.missions import missions_bp
    from .blueprints.attachments import attachments_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(missions_bp)
    app.register_blueprint(attachments_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (use `flask db upgrade` once migrations exist)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("create-user")
    @click.argument("username")
    @click.option("--role", default=Role.AGENT.value, show_default=True, help="manager or agent")
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_user_command(username: str, role: str, password: str):
        """Create a login account."""
        username = username.strip()
        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"User '{username}' already exists.")
        try:
            parsed_role = parse_enum(Role, role, "role")
        except DomainError as exc:
            raise click.BadParameter(exc.message, param_hint="--role") from exc

        user = User(username=username, role=parsed_role, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        logger.info("User %s created from CLI (role=%s)", username, parsed_role.value)
        click.echo(f"User '{username}' created ({parsed_role.value}).")

    return app
