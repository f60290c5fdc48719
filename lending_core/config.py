"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./lending_core.db"

    # External Services
    loan_api_base: str = "http://localhost:8000"

    # Service
    service_name: str = "lending-core"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 10.0
    remote_max_retries: int = 3
    remote_backoff_base: float = 0.5  # Exponential backoff base in seconds

    # Wizard
    autosave_debounce_seconds: float = 1.0
    server_side_terms: bool = False  # Ask the loan API for terms instead of calculating locally

    # Early payoff
    early_payoff_staleness_seconds: int = 300
    early_payoff_rebate_fraction: float = 1.0  # Share of unearned interest credited back on payoff


settings = Settings()
