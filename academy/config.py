"""
Runtime configuration for the Academy API.
Built once at startup from the environment and handed to every service.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional


DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


def _flag(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class Settings:
    """Validated configuration - fails fast on missing vars"""
    jwt_secret: str
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "academy_db"
    environment: str = "development"
    token_ttl_days: int = 30

    # CORS
    allow_all_origins: bool = False
    frontend_urls: List[str] = field(default_factory=list)

    # Auth policy
    allow_privileged_signup: bool = False
    trust_token_role: bool = False

    # Rate limits: (max requests, window seconds)
    rate_limit_enabled: bool = True
    login_limit: tuple = (5, 15 * 60)
    api_limit: tuple = (100, 15 * 60)
    ai_limit: tuple = (10, 60)

    # AI providers
    cerebras_api_key: Optional[str] = None
    cerebras_model: str = "llama3.1-8b"
    claude_enabled: bool = False
    claude_api_key: Optional[str] = None
    claude_api_url: str = "https://api.anthropic.com/v1/complete"
    claude_timeout: float = 20.0

    # Mail
    sendgrid_api_key: Optional[str] = None
    mail_from: str = "no-reply@academy.local"

    # Image storage
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Mock gateway delays (seconds)
    mock_upi_delay: float = 0.6
    mock_payment_delay: float = 0.8

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def cors_origins(self) -> List[str]:
        if self.allow_all_origins:
            return ["*"]
        origins = list(self.frontend_urls)
        for origin in DEV_ORIGINS:
            if origin not in origins:
                origins.append(origin)
        return origins

    @staticmethod
    def _require_env(key: str) -> str:
        """Get required environment variable or crash"""
        value = os.getenv(key)
        if not value:
            raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        frontend_urls = _split(os.getenv("FRONTEND_URL")) + _split(os.getenv("FRONTEND_URLS"))

        return cls(
            jwt_secret=cls._require_env("JWT_SECRET"),
            mongo_url=os.getenv("MONGO_URL", "mongodb://localhost:27017"),
            db_name=os.getenv("DB_NAME", "academy_db"),
            environment=os.getenv("ENVIRONMENT", "development"),
            token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", "30")),
            allow_all_origins=_flag("ALLOW_ALL_ORIGINS"),
            frontend_urls=frontend_urls,
            allow_privileged_signup=_flag("ALLOW_PRIVILEGED_SIGNUP"),
            trust_token_role=_flag("TRUST_TOKEN_ROLE"),
            rate_limit_enabled=_flag("RATE_LIMIT_ENABLED", True),
            login_limit=(int(os.getenv("LOGIN_RATE_LIMIT", "5")), 15 * 60),
            api_limit=(int(os.getenv("API_RATE_LIMIT", "100")), 15 * 60),
            ai_limit=(int(os.getenv("AI_RATE_LIMIT", "10")), 60),
            cerebras_api_key=os.getenv("CEREBRAS_API_KEY"),
            cerebras_model=os.getenv("CEREBRAS_MODEL", "llama3.1-8b"),
            claude_enabled=_flag("CLAUDE_HAIKU_ENABLED"),
            claude_api_key=os.getenv("CLAUDE_API_KEY"),
            claude_api_url=os.getenv("CLAUDE_API_URL", "https://api.anthropic.com/v1/complete"),
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
            mail_from=os.getenv("MAIL_FROM", "no-reply@academy.local"),
            cloudinary_cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
            cloudinary_api_key=os.getenv("CLOUDINARY_API_KEY"),
            cloudinary_api_secret=os.getenv("CLOUDINARY_API_SECRET"),
            mock_upi_delay=float(os.getenv("MOCK_UPI_DELAY", "0.6")),
            mock_payment_delay=float(os.getenv("MOCK_PAYMENT_DELAY", "0.8")),
        )
