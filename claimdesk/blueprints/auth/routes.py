"""
Authentication Routes

Provides:
- /auth/csrf          CSRF token for the front end (sent back as X-CSRFToken)
- /auth/login         session login (JSON body: username, password)
- /auth/logout
- /auth/me            current account
- /auth/seed-manager  first system bootstrap

Rules:
- Only active users may log in.
- Credentials validated via password hash.
- seed-manager is refused as soon as any user exists.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...enums import Role
from ...errors import PermissionDenied, ValidationError
from ...extensions import db
from ...models import User
from ...utils import PayloadReader

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _credentials():
    reader = PayloadReader(request.get_json(silent=True))
    username = reader.text("username", required=True, max_length=80)
    password = reader.text("password", required=True)
    reader.raise_if_errors()
    return username, password


# ============================================================
# CSRF
# ============================================================

@auth_bp.route("/csrf", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})


# ============================================================
# LOGIN / LOGOUT
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and open a session."""
    username, password = _credentials()

    user = User.query.filter_by(username=username).first()

    if not user or not user.check_password(password):
        logger.warning("Failed login for username=%s", username)
        raise ValidationError(
            "Identifiants invalides",
            fields={"username": "Nom d'utilisateur ou mot de passe incorrect"},
        )

    if not user.is_active:
        raise PermissionDenied("Ce compte est desactive.")

    login_user(user)
    logger.info("User %s logged in", user.username)
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logger.info("User %s logged out", current_user.username)
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": current_user.to_dict()})


# ============================================================
# SEED FIRST MANAGER (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-manager", methods=["POST"])
def seed_manager():
    """
    Bootstrap the FIRST manager of the system.

    If ANY user already exists the request is refused.
    """
    if User.query.count() > 0:
        raise PermissionDenied("Un utilisateur existe deja dans le systeme.")

    username, password = _credentials()

    user = User(username=username, role=Role.MANAGER, is_active=True)
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    logger.info("First manager %s created", username)
    return jsonify({"user": user.to_dict()}), 201
