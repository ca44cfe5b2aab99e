# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/kirana/routes/auth.py
"""
Authentication API routes

- Self sign-up creates an identity without a role; an admin assigns one
- Login returns a bearer token (see services/session_service.py)
- Logout revokes the presented token
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..services import auth_service
from ..services import session_service
from ..services.auth_service import PasswordValidationError, IdentityError
from ..decorators import require_auth, bearer_token


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/signup")
def signup_route():
    """
    Register a new identity.

    Body: {email, password, full_name}
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        full_name = data.get("full_name") or data.get("fullName")

        if not all([email, password, full_name]):
            return jsonify({"error": "Please fill in all fields"}), 400

        user = auth_service.sign_up(email=email, password=password, full_name=full_name)

        return jsonify({
            "user": user.to_dict(),
            "message": "Account created successfully"
        }), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except IdentityError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to sign up user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """
    Revoke session token (logout).

    Expects Authorization header: Bearer <token>
    """
    try:
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with roles and working store."""
    caller = g.caller
    return jsonify({
        "user": g.current_user.to_dict(),
        "roles": sorted(caller.roles),
        "store_id": caller.store_id,
    }), 200
