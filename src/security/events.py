"""Security events and the sink that records them.

Every rejection or escalation produces one immutable ``SecurityEvent``. The
sink writes it to the ``src.security.events`` logger (JSON lines on disk when
configured) and keeps a short in-memory ring of recent events.
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

RATE_LIMIT = "rate_limit"
SUSPICIOUS_INPUT = "suspicious_input"
BLOCKED_REQUEST = "blocked_request"
VALIDATION_ERROR = "validation_error"

EVENT_TYPES = frozenset({RATE_LIMIT, SUSPICIOUS_INPUT, BLOCKED_REQUEST, VALIDATION_ERROR})
SEVERITIES = frozenset({"low", "medium", "high"})

# Events of these types count against the client's reputation
ESCALATING_TYPES = frozenset({SUSPICIOUS_INPUT, BLOCKED_REQUEST})

SNIPPET_LENGTH = 100


def snippet(text: str, limit: int = SNIPPET_LENGTH) -> str:
    """Shorten user text for logging so full payloads are never replayed from logs."""
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@dataclass(frozen=True)
class SecurityEvent:
    """One rejection or escalation."""

    type: str
    ip: str
    message: str
    severity: str
    user_agent: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if self.type not in EVENT_TYPES:
            raise ValueError(f"Unknown security event type: {self.type}")
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity: {self.severity}")

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "ip": self.ip,
            "user_agent": self.user_agent,
            "message": self.message,
            "severity": self.severity,
            "timestamp": self.timestamp.isoformat(),
        }


class SecurityEventSink:
    """Write-only destination for security events."""

    def __init__(self, history: int = 500, log: logging.Logger | None = None):
        self._log = log or logger
        self._recent: deque[SecurityEvent] = deque(maxlen=history)
        self._lock = threading.Lock()

    def emit(self, event: SecurityEvent) -> None:
        with self._lock:
            self._recent.append(event)
        self._log.warning(
            "Security event: %s (%s) from %s: %s",
            event.type, event.severity, event.ip, event.message,
            extra={"security_event": event.to_dict()},
        )

    def recent(self, event_type: str | None = None) -> list[SecurityEvent]:
        """Snapshot of recently emitted events, oldest first."""
        with self._lock:
            events = list(self._recent)
        if event_type is not None:
            events = [e for e in events if e.type == event_type]
        return events


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with the security event fields inlined."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": "resume-chat-security",
            "msg": record.getMessage(),
        }
        event = getattr(record, "security_event", None)
        if event is not None:
            payload.update(event)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_security_log(log_dir: Path) -> Path:
    """Attach a JSON-lines file handler for security events. Idempotent."""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "security-combined.log"

    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file.absolute():
            return log_file

    handler = logging.FileHandler(str(log_file), encoding="utf-8")
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return log_file
