"""Service settings."""

from typing import List, Optional, Tuple

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    service_name: str = "society-gate"
    debug: bool = False

    # postgres://... (asyncpg) in production, sqlite+aiosqlite:///... for local runs
    database_url: str = "sqlite+aiosqlite:///./society_gate.db"
    database_ssl: bool = False  # Supabase/managed Postgres require "ssl=require"
    create_tables: bool = True

    allowed_origins: List[str] = [
        *[f"http://localhost:{port}" for port in range(3000, 3007)],
        *[f"http://127.0.0.1:{port}" for port in range(3000, 3007)],
    ]

    # Credential generation
    delivery_code_prefix: str = "DLV"
    delivery_code_length: int = 6
    visitor_qr_prefix: str = "VIS"

    # Emergency alerts: minimum length of "action taken" when resolving
    action_taken_min_length: int = 5

    # Optional webhook notified after every successful transition
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 3.0

    # Local development server (society-gate-dev)
    dev_host: str = "0.0.0.0"
    dev_port: Optional[int] = None  # fixed port; otherwise the first free one in the range
    dev_port_range: Tuple[int, int] = (8000, 8006)
    dev_reload: bool = True

    default_page_size: int = 100
    max_page_size: int = 500

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
