"""Central configuration for the résumé chat API."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Project root is the repository directory
PROJECT_ROOT = Path(__file__).parent.parent

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "https://localhost:3000",
    "https://localhost:3001",
]


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _allowed_origins() -> list[str]:
    raw = os.getenv("ALLOWED_ORIGINS", "")
    if raw.strip():
        return [o.strip() for o in raw.split(",") if o.strip()]
    frontend = os.getenv("FRONTEND_URL", "http://localhost:3000").strip()
    return list(dict.fromkeys([frontend, *_DEV_ORIGINS]))


@dataclass
class SecurityConfig:
    """Knobs for the request-defense pipeline."""

    # Input
    max_message_length: int = field(default_factory=lambda: _env_int("MAX_MESSAGE_LENGTH", 1000))

    # Rate limiting; enforced ceiling is limit * multiplier
    max_requests_per_minute: int = field(
        default_factory=lambda: _env_int("MAX_REQUESTS_PER_MINUTE", 50)
    )
    max_requests_per_hour: int = field(
        default_factory=lambda: _env_int("MAX_REQUESTS_PER_HOUR", 500)
    )
    rate_limit_multiplier: int = field(
        default_factory=lambda: _env_int("RATE_LIMIT_MULTIPLIER", 3)
    )
    rate_limit_log_suppress_seconds: int = 300
    rate_limit_marker_retention_seconds: int = 3600

    # Progressive slow-down (chat window)
    slow_down_threshold: int = field(default_factory=lambda: _env_int("SLOW_DOWN_THRESHOLD", 20))
    slow_down_delay_ms: int = field(default_factory=lambda: _env_int("SLOW_DOWN_DELAY_MS", 200))
    slow_down_max_delay_ms: int = field(
        default_factory=lambda: _env_int("SLOW_DOWN_MAX_DELAY_MS", 2000)
    )

    # Feature switches
    enable_ip_blocking: bool = field(default_factory=lambda: _env_bool("ENABLE_IP_BLOCKING", True))
    enable_suspicious_pattern_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_SUSPICIOUS_PATTERN_DETECTION", True)
    )
    escalate_on_upstream_quota: bool = field(
        default_factory=lambda: _env_bool("ESCALATE_ON_UPSTREAM_QUOTA", True)
    )
    trust_forwarded_for: bool = field(
        default_factory=lambda: _env_bool("TRUST_FORWARDED_FOR", False)
    )

    # Reputation
    block_threshold: int = field(default_factory=lambda: _env_int("BLOCK_THRESHOLD", 10))
    reputation_idle_seconds: int = 24 * 60 * 60

    # Content fingerprinting
    fingerprint_prefix_length: int = 100
    dedup_short_window_seconds: int = 60
    dedup_short_threshold: int = 2
    dedup_long_window_seconds: int = 600
    dedup_long_threshold: int = 5
    message_frequency_limit: int = 15
    message_frequency_window_seconds: int = 300

    # Housekeeping
    janitor_interval_seconds: int = field(
        default_factory=lambda: _env_int("JANITOR_INTERVAL_SECONDS", 3600)
    )
    store_shards: int = 64
    security_log_dir: Path | None = field(
        default_factory=lambda: Path(os.environ["SECURITY_LOG_DIR"])
        if os.getenv("SECURITY_LOG_DIR")
        else None
    )


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    # LLM
    groq_api_key: str = field(default_factory=lambda: os.getenv("GROQ_API_KEY", ""))
    ollama_host: str = field(
        default_factory=lambda: os.getenv("OLLAMA_HOST", "http://localhost:11434")
    )
    llm_backend: str = field(
        default_factory=lambda: os.getenv("LLM_BACKEND", "ollama")
    )
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", ""))

    # Embeddings
    embedding_model: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "BAAI/bge-base-en-v1.5")
    )

    # Persona
    owner_name: str = field(default_factory=lambda: os.getenv("OWNER_NAME", "the candidate"))
    contact_email: str = field(default_factory=lambda: os.getenv("CONTACT_EMAIL", ""))
    contact_linkedin: str = field(default_factory=lambda: os.getenv("CONTACT_LINKEDIN", ""))

    # HTTP
    allowed_origins: list[str] = field(default_factory=_allowed_origins)

    # Storage paths
    chroma_db_path: Path = field(default=None)

    # Data
    data_dir: Path = field(default=None)

    security: SecurityConfig = field(default_factory=SecurityConfig)

    def __post_init__(self):
        if self.data_dir is None:
            self.data_dir = PROJECT_ROOT / "data"
        if self.chroma_db_path is None:
            self.chroma_db_path = Path(
                os.getenv("CHROMA_DB_PATH", str(self.data_dir / "chroma_db"))
            )

    def ensure_dirs(self):
        """Create data directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.chroma_db_path.mkdir(parents=True, exist_ok=True)
        if self.security.security_log_dir is not None:
            self.security.security_log_dir.mkdir(parents=True, exist_ok=True)


def get_config() -> Config:
    """Get a Config instance. Call this instead of constructing directly."""
    config = Config()
    config.ensure_dirs()
    return config
