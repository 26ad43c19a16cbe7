"""Typed rejections produced by the defense pipeline.

Clients only ever see ``public_message``; ``detail`` (which counter tripped,
which signature matched) goes to the security log.
"""

from src.security import events


class DefenseError(Exception):
    """Base class for every pipeline rejection."""

    status_code: int = 400
    public_message: str = "Request rejected."
    event_type: str = events.VALIDATION_ERROR
    severity: str = "low"

    def __init__(
        self,
        detail: str,
        *,
        public_message: str | None = None,
        severity: str | None = None,
        log: bool = True,
        retry_after: int | None = None,
    ):
        super().__init__(detail)
        self.detail = detail
        if public_message is not None:
            self.public_message = public_message
        if severity is not None:
            self.severity = severity
        self.log = log
        self.retry_after = retry_after

    @property
    def headers(self) -> dict[str, str] | None:
        if self.retry_after is None:
            return None
        return {"Retry-After": str(self.retry_after)}


class RateLimitExceeded(DefenseError):
    """Soft: the client may retry after the window resets."""

    status_code = 429
    public_message = "Too many requests. Please try again later."
    event_type = events.RATE_LIMIT
    severity = "medium"


class DuplicateContent(DefenseError):
    """Soft: the client should vary its input or slow down."""

    status_code = 429
    public_message = "Please wait before sending the same message again."
    event_type = events.SUSPICIOUS_INPUT
    severity = "medium"


class BlockedIP(DefenseError):
    """Hard: the address stays blocked until its reputation record expires."""

    status_code = 403
    public_message = "Access denied"
    event_type = events.BLOCKED_REQUEST
    severity = "high"


class SuspiciousPattern(DefenseError):
    """Hard: the content matched a known attack signature."""

    status_code = 400
    public_message = (
        "Your message contains content that cannot be processed. "
        "Please rephrase your question."
    )
    event_type = events.SUSPICIOUS_INPUT
    severity = "high"


class ValidationError(DefenseError):
    """Malformed input the client can fix."""

    status_code = 400
    public_message = "Invalid input"
    event_type = events.VALIDATION_ERROR
    severity = "low"
