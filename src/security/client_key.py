"""Client identity used to partition all stateful defense counters.

Keying on the address alone over-penalizes shared networks, so a prefix of
the User-Agent is appended to tell clients behind one NAT apart.
"""

from fastapi import Request

UNKNOWN = "unknown"
USER_AGENT_PREFIX = 50


def derive_client_key(ip: str | None, user_agent: str | None) -> str:
    """Build ``"<ip>:<first 50 chars of UA>"``. Never fails."""
    address = ip or UNKNOWN
    agent = (user_agent or UNKNOWN)[:USER_AGENT_PREFIX]
    return f"{address}:{agent}"


def client_ip(request: Request, trust_forwarded_for: bool = False) -> str:
    """Extract client IP, optionally respecting X-Forwarded-For behind a proxy."""
    if trust_forwarded_for:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return request.client.host if request.client else UNKNOWN
