# Overview: Request decorators for API routes.

import hmac
from functools import wraps
from flask import request, jsonify, current_app

from .errors import ConfigurationError, UnauthorizedError, error_response


ADMIN_SECRET_HEADER = "X-Admin-Secret"


def extract_admin_credential() -> str | None:
    """
    Credential from, in order: JSON body "credential", query string
    "credential", X-Admin-Secret header.
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and payload.get("credential") is not None:
        return str(payload["credential"])
    if request.args.get("credential") is not None:
        return request.args["credential"]
    return request.headers.get(ADMIN_SECRET_HEADER)


def check_admin_credential(credential: str | None) -> None:
    """
    Compare a credential with ADMIN_SECRET in constant time.

    Raises ConfigurationError when no secret is configured (fail closed) and
    UnauthorizedError on a missing or wrong credential.
    """
    secret = current_app.config.get("ADMIN_SECRET")
    if not secret:
        raise ConfigurationError("Admin secret is not configured")
    if not credential or not hmac.compare_digest(credential.encode(), secret.encode()):
        raise UnauthorizedError("Not authorized")


def require_admin_secret(f):
    """
    Require the shared admin secret.

    Returns 500 if the server has no ADMIN_SECRET, 401 if the caller's
    credential is missing or wrong.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            check_admin_credential(extract_admin_credential())
        except ConfigurationError as e:
            current_app.logger.error("ADMIN_SECRET is not configured; refusing %s", request.path)
            return error_response(e)
        except UnauthorizedError as e:
            current_app.logger.warning(
                "Rejected admin credential for %s %s from %s",
                request.method, request.path, request.remote_addr,
            )
            return error_response(e)

        return f(*args, **kwargs)

    return decorated_function


def require_bearer_token(f):
    """Extract 'Authorization: Bearer <token>' into kwargs['bearer_token']."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "UNAUTHORIZED"}), 401

        kwargs["bearer_token"] = auth_header.split(" ", 1)[1].strip()
        return f(*args, **kwargs)

    return decorated_function
