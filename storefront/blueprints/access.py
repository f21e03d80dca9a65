"""Session checks shared by the JSON blueprints."""
from __future__ import annotations

from typing import Any, Dict, Optional

from flask import g, jsonify, session

from storefront.database import get_db
from storefront.models import User


def current_user() -> Optional[User]:
    user = getattr(g, "current_user", None)
    if user is None and "user_id" in session:
        user = get_db().query(User).filter_by(userID=session["user_id"]).first()
        g.current_user = user
    return user


def require_login():
    """``None`` when a user is signed in, otherwise a 401 response."""
    if current_user() is None:
        return jsonify({"error": "Not authenticated"}), 401
    return None


def require_admin():
    denied = require_login()
    if denied:
        return denied
    if not current_user().is_admin:
        return jsonify({"error": "Forbidden"}), 403
    return None


def serialize_user(user: User) -> Dict[str, Any]:
    return {
        "id": user.userID,
        "email": user.email,
        "role": user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }
