"""Security module — request-defense pipeline in front of the RAG engine."""

from src.security.defense import Defense, build_defense
from src.security.errors import (
    BlockedIP,
    DefenseError,
    DuplicateContent,
    RateLimitExceeded,
    SuspiciousPattern,
    ValidationError,
)
from src.security.events import SecurityEvent, SecurityEventSink
from src.security.pipeline import DefensePipeline, RequestContext

__all__ = [
    "BlockedIP",
    "Defense",
    "DefenseError",
    "DefensePipeline",
    "DuplicateContent",
    "RateLimitExceeded",
    "RequestContext",
    "SecurityEvent",
    "SecurityEventSink",
    "SuspiciousPattern",
    "ValidationError",
    "build_defense",
]
