# Overview: Flask API routes for login/logout; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import AuthenticationError
from ..services import auth_service, session_service
from ..decorators import require_auth, bearer_token
from ..time_utils import to_utc_z
from .responses import invalid_body, json_object

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """Exchange username/password for a bearer token."""
    data = json_object()
    if data is None:
        return invalid_body()

    try:
        user = auth_service.authenticate(data.get("username"), data.get("password"))
        session, token = session_service.create_session(
            user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except AuthenticationError as e:
        current_app.logger.warning("Login failed for %r", data.get("username"))
        return jsonify({"success": False, "error": str(e), "error_type": e.error_type}), 401

    return jsonify({
        "success": True,
        "data": {
            "token": token,
            "expires_at": to_utc_z(session.expires_at),
            "user": user.to_dict(),
        },
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(bearer_token())
    return jsonify({"success": True, "data": None}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    return jsonify({"success": True, "data": g.current_user.to_dict()}), 200
