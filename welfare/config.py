
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    database_url: str = "sqlite:///./welfare.db"
    auto_create_schema: bool = True

    log_level: str = "INFO"
    log_file: Optional[str] = None  # errors only, rotated

    # YAML file with workflow definitions; built-ins are used when unset
    workflows_file: Optional[str] = None

    # bearer tokens look like "<prefix><firebase_uid>"
    auth_token_prefix: str = "mock-"

    email_transport: str = "console"  # console | smtp | memory
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    email_from_name: str = "Armed Forces Welfare Management System"
    frontend_url: str = "http://localhost:5173"

    seed_admin_email: str = "admin@armedforces.gov.in"
    seed_admin_uid: str = "test-admin-001"


settings = Settings()  # reads from env
