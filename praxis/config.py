from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Database Configuration
    database_url: str = "sqlite:///./praxis.db"

    # Application Configuration
    secret_key: str = "your_secret_key_here"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 12

    # Default admin account created on first start
    default_admin_email: str = "admin@praxis.legal"
    default_admin_password: str = "admin12345"

    # Claude API Configuration
    anthropic_api_key: str = "your_claude_api_key_here"
    claude_model: str = "claude-3-5-sonnet-latest"
    max_tokens: int = 4000
    temperature: float = 0.7
    ai_request_timeout_seconds: float = 60.0

    # dLocal Go Configuration
    dlocal_api_key: Optional[str] = None
    dlocal_secret_key: Optional[str] = None
    dlocal_base_url: str = "https://api.dlocalgo.com"
    dlocal_timeout_seconds: float = 30.0

    # Public URLs used in payment callbacks
    app_base_url: str = "http://localhost:5173"
    notification_url: str = "http://localhost:8000/api/v1/subscriptions/webhook"

    # Document requests
    default_sla_hours: int = 4
    sla_at_risk_hours: int = 2
    default_document_price: int = 50000

    # Editor and wizard timing
    autosave_delay_seconds: float = 3.0
    autocomplete_delay_seconds: float = 1.5
    autocomplete_min_length: int = 50
    autocomplete_context_chars: int = 500
    copilot_session_idle_seconds: float = 2 * 60 * 60
    copilot_max_sessions: int = 500

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = True

# Global settings instance
settings = Settings()
