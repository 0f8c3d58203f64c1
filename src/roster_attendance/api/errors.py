from __future__ import annotations

from flask import jsonify

from ..core.exceptions import (
    CommitInProgressError,
    DomainError,
    NoPendingSelectionError,
    NotEditableError,
    TransportError,
    UnknownRegistrationError,
)

_STATUS_BY_ERROR = (
    (UnknownRegistrationError, 404),
    (CommitInProgressError, 409),
    (NoPendingSelectionError, 409),
    (NotEditableError, 409),
    (TransportError, 502),
)


def error_response(error: DomainError):
    """JSON envelope for a domain error; plain validation failures map to 400."""
    code = next((c for cls, c in _STATUS_BY_ERROR if isinstance(error, cls)), 400)
    return jsonify({"success": False, "message": str(error)}), code
