"""
Authentication routes and utilities

The service has no user accounts. flask-login's request loader turns a bearer
token into an ApiUser; swap the loader to plug in another capability check.
"""
import hmac
from typing import Optional

from flask import Blueprint, current_app, jsonify
from flask_login import LoginManager, UserMixin, current_user, login_required

auth_bp = Blueprint('auth', __name__)
login_manager = LoginManager()


class ApiUser(UserMixin):
    def __init__(self, user_id: str):
        self.id = user_id


def init_auth(app):
    """Initialize authentication"""
    login_manager.init_app(app)


def bearer_token(req) -> str:
    header = req.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


@login_manager.request_loader
def load_user_from_request(req) -> Optional[ApiUser]:
    """Accept the configured API token; no token configured means nobody gets in."""
    expected = (current_app.config.get("API_AUTH_TOKEN") or "").strip()
    token = bearer_token(req)
    if not expected or not token:
        return None
    if hmac.compare_digest(token.encode(), expected.encode()):
        return ApiUser("api")
    return None


@login_manager.user_loader
def load_user(user_id):
    """Sessions are not used; every request authenticates with its token"""
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"success": False, "error": "Unauthorized"}), 401


@auth_bp.route("/protected", methods=["GET"])
@login_required
def protected():
    return jsonify({"success": True, "user": current_user.get_id()}), 200
