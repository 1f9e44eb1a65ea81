# Overview: Request and capability decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .permissions import Caller, Role, has_capability

CALLER_ID_HEADER = "X-Caller-Id"
CALLER_ROLE_HEADER = "X-Caller-Role"


def _is_authenticated() -> bool:
    return isinstance(getattr(g, "caller", None), Caller)


def require_caller(f):
    """
    Establish the caller from trusted gateway headers.

    Authentication happens upstream; the gateway forwards the authenticated
    party as X-Caller-Id / X-Caller-Role. Sets g.caller.

    Returns 401 if either header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_id = request.headers.get(CALLER_ID_HEADER, "")
        raw_role = request.headers.get(CALLER_ROLE_HEADER, "")

        if not raw_id.isdigit() or not raw_role:
            return jsonify({"error": "authentication_required", "message": "Caller headers required"}), 401

        try:
            role = Role(raw_role.strip().lower())
        except ValueError:
            return jsonify({"error": "authentication_required", "message": f"Unknown role '{raw_role}'"}), 401

        g.caller = Caller(id=int(raw_id), role=role)
        return f(*args, **kwargs)

    return decorated_function


def require_capability(capability: str):
    """
    Reject early when the caller's role lacks a capability.

    Services check again; this only avoids parsing bodies for callers that
    can never succeed.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_caller was called first
            if not _is_authenticated():
                return jsonify({"error": "authentication_required", "message": "Caller required"}), 401

            if not has_capability(g.caller.role, capability):
                return jsonify({
                    "error": "authorization_error",
                    "message": f"Role '{g.caller.role.value}' lacks {capability}",
                    "details": {"required_capability": capability},
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
