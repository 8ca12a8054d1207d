"""Error taxonomy shared by services and routes.

Services raise these; the app-level handler in `backend.app` turns them into
`{"success": false, "error": ...}` JSON with the matching status code.
"""

from __future__ import annotations


class MedDigestError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, status_code: int | None = None, **extra):
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra


class ValidationError(MedDigestError):
    status_code = 400
    default_message = "Invalid request"


class DuplicateError(MedDigestError):
    status_code = 400
    default_message = "Already exists"


class AuthError(MedDigestError):
    status_code = 401
    default_message = "Unauthorized"


class AccessDeniedError(MedDigestError):
    """Raised for tier-gated content; `extra` carries the preview payload."""

    status_code = 403
    default_message = "Pro subscription required"


class NotFoundError(MedDigestError):
    status_code = 404
    default_message = "Not found"


class UpstreamError(MedDigestError):
    """A third-party service (mail, LLM) failed or is not configured."""

    status_code = 500
    default_message = "Upstream service error"
