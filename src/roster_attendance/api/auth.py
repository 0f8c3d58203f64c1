from __future__ import annotations

from functools import wraps

from flask import g, jsonify, request


def bearer_required(view):
    """Require ``Authorization: Bearer <token>``; the token is exposed as ``g.access_token``."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        header = request.headers.get("Authorization", "")
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return jsonify({"success": False, "message": "Missing bearer token"}), 401
        g.access_token = token.strip()
        return view(*args, **kwargs)

    return wrapper
