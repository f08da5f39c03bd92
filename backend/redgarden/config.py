import logging
import os
import socket
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

DEFAULT_RENDER_COMMAND = (
    "docker run --rm --name {name} -v {workdir}:/workdir -w /workdir blang/latex:ctanfull "
    "pdflatex -interaction=nonstopmode -halt-on-error {filename}"
)
DEFAULT_RENDER_CLEANUP_COMMAND = "docker rm -f {name}"


def _default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class Settings(BaseSettings):
    app_name: str = "Red Garden Back Office"
    environment: str = "dev"
    log_level: str = "INFO"

    # Datastore (required by both workers)
    database_url: str | None = None

    # Hosted storage (Supabase project)
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    invoice_bucket: str = "invoices"

    # Web Push
    vapid_public_key: str | None = None
    vapid_private_key: str | None = None
    vapid_subject: str | None = None

    # Email (SendGrid)
    sendgrid_api_key: str | None = None
    admin_email: str | None = None

    # SMS (Twilio)
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_from: str | None = None
    admin_phone: str | None = None

    # Telegram
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None

    # GitHub workflow used to run the notification worker remotely
    github_token: str | None = None
    github_repo_owner: str | None = None
    github_repo_name: str | None = None
    github_workflow_file: str = "process-notifications.yml"
    github_ref: str = "production"

    # Worker behaviour
    notification_batch_size: int = 50
    notification_max_attempts: int | None = None
    invoice_batch_size: int = 10
    invoice_max_attempts: int | None = None
    invoice_loop_interval: float = 15.0
    worker_claim_rows: bool = True
    claim_timeout_seconds: int = 600
    worker_id: str = _default_worker_id()
    http_timeout_seconds: float = 10.0

    # Invoice rendering
    invoice_template_path: Path = TEMPLATES_DIR / "invoice.tex"
    invoice_render_command: str = DEFAULT_RENDER_COMMAND
    invoice_render_cleanup_command: str | None = DEFAULT_RENDER_CLEANUP_COMMAND
    invoice_render_timeout: float = 120.0
    invoice_notes_fallback: bool = True
    invoice_company_name: str = "The Red Garden"
    invoice_location: str = "Patna, Bihar"
    invoice_logo_path: str = "public/logo.png"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def require(self, *names: str) -> None:
        """Raise ConfigurationError naming every unset setting in ``names``."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required configuration: {env_names}")

    @property
    def push_configured(self) -> bool:
        return bool(self.vapid_public_key and self.vapid_private_key)

    @property
    def push_subject(self) -> str:
        if self.vapid_subject:
            return self.vapid_subject
        return f"mailto:{self.admin_email or 'no-reply@example.com'}"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
