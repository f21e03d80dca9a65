from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from storefront.blueprints.access import current_user, require_login, serialize_user
from storefront.config import Config
from storefront.database import get_db
from storefront.models import User
from storefront.observability import increment_counter

auth_bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


@auth_bp.route("/register", methods=["POST"])
def register():
    data = _payload()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    requested_role = data.get("role", "customer")

    if not email or "@" not in email:
        return jsonify({"error": "A valid email address is required."}), 400
    if len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters."}), 400

    db = get_db()
    if db.query(User).filter_by(email=email).first():
        return jsonify({"error": "Email already registered."}), 409

    role = "customer"
    if requested_role == "admin":
        if data.get("super_admin_token") != Config.SUPER_ADMIN_TOKEN:
            increment_counter("admin_registration_rejected_total")
            return jsonify({"error": "Invalid super admin token."}), 403
        role = "admin"

    user = User(email=email, passwordHash=generate_password_hash(password), role=role)
    db.add(user)
    db.commit()
    logger.info("User registered with role %s", role)
    return jsonify({"success": True, "user": serialize_user(user)}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _payload()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    user = get_db().query(User).filter_by(email=email).first()
    if user is None or not user.passwordHash or not check_password_hash(user.passwordHash, password):
        increment_counter("login_failures_total")
        return jsonify({"error": "Invalid email or password."}), 401

    session["user_id"] = user.userID
    g.current_user = user
    return jsonify({"success": True, "user": serialize_user(user)})


@auth_bp.route("/logout", methods=["POST"])
def logout():
    session.clear()
    g.current_user = None
    return jsonify({"success": True})


@auth_bp.route("/api/me", methods=["GET"])
def me():
    denied = require_login()
    if denied:
        return denied
    return jsonify({"user": serialize_user(current_user())})
