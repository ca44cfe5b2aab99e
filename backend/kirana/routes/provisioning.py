# Overview: Flask API route for admin-only store owner provisioning.

# backend/kirana/routes/provisioning.py
"""
POST /create-store-owner

Body: {storeName, ownerName, ownerEmail, ownerPassword, phone?, address?, gstNumber?}

Responses:
- 200 {success: true, owner_id}
- 400 {error}  missing fields, or a step failed (already compensated)
- 401 {error}  missing or invalid bearer token
- 403 {error}  caller is not an admin
- 405 {error}  any method other than POST / OPTIONS
- 500 {error}  role check failed, or unexpected error

Every response carries permissive CORS headers so browser clients on
other origins can call it directly.
"""
from flask import Blueprint, request, jsonify, current_app

from ..decorators import bearer_token
from ..services import session_service, provisioning_service
from ..services.permission_service import PermissionDeniedError
from ..services.provisioning_service import ProvisioningError, RoleCheckError
from ..validation import ValidationError

provisioning_bp = Blueprint("provisioning", __name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def _reply(body: dict | None, status: int):
    response = jsonify(body) if body is not None else current_app.response_class(status=status)
    response.status_code = status
    response.headers.update(CORS_HEADERS)
    return response


@provisioning_bp.route(
    "/create-store-owner",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    provide_automatic_options=False,
)
def create_store_owner_route():
    if request.method == "OPTIONS":
        return _reply(None, 200)

    if request.method != "POST":
        return _reply({"error": "Method not allowed"}, 405)

    try:
        token = bearer_token()
        context = session_service.validate_session(token) if token else None
        if not context:
            current_app.logger.warning("Provisioning auth error: missing or invalid token")
            return _reply({"error": "Unauthorized"}, 401)

        payload = request.get_json(silent=True)
        result = provisioning_service.provision_store_owner(context.caller.user_id, payload)

        return _reply({"success": True, "owner_id": result["owner_id"]}, 200)

    except RoleCheckError as e:
        return _reply({"error": str(e)}, 500)
    except PermissionDeniedError:
        return _reply({"error": "Forbidden"}, 403)
    except ValidationError as e:
        return _reply({"error": str(e)}, 400)
    except ProvisioningError as e:
        return _reply({"error": str(e)}, 400)
    except Exception as e:
        current_app.logger.exception("Unexpected provisioning error")
        return _reply({"error": str(e) or "Unexpected error"}, 500)
