"""Configuration helpers for Asesor."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_DATA_ROOT = Path.home() / "asesor-data"
DEFAULT_LANGFLOW_URL = "https://api.langflow.datastax.com/lf/asesor/api/v1"
AGENT_ROLES = ("structure", "writing", "citations", "chat")


class Settings(BaseModel):
    """Runtime configuration loaded from env vars with sensible defaults."""

    data_dir: Path = Field(default_factory=lambda: DEFAULT_DATA_ROOT)
    db_filename: str = "asesor.sqlite3"
    log_level: str = "INFO"
    owner_id: str = "local"
    langflow_url: str = DEFAULT_LANGFLOW_URL
    langflow_token: str | None = None
    agent_flows: dict[str, str] = Field(default_factory=dict)
    chunk_size: int = 4000
    autosave_delay: float = 3.0
    autosave_interval: float = 30.0

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    def agent_id(self, role: str) -> str | None:
        """Flow identifier configured for an agent role, if any."""
        return self.agent_flows.get(role)

    def ensure_directories(self) -> None:
        """Create data directories if they are missing."""
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Settings":
        load_dotenv()
        data_dir = Path(os.environ.get("ASESOR_DATA_DIR", DEFAULT_DATA_ROOT))
        flows = {
            role: os.environ[f"ASESOR_AGENT_{role.upper()}"]
            for role in AGENT_ROLES
            if os.environ.get(f"ASESOR_AGENT_{role.upper()}")
        }
        return cls(
            data_dir=data_dir,
            db_filename=os.environ.get("ASESOR_DB_FILENAME", "asesor.sqlite3"),
            log_level=os.environ.get("ASESOR_LOG_LEVEL", "INFO"),
            owner_id=os.environ.get("ASESOR_OWNER_ID", "local"),
            langflow_url=os.environ.get("ASESOR_LANGFLOW_URL", DEFAULT_LANGFLOW_URL),
            langflow_token=os.environ.get("ASESOR_LANGFLOW_TOKEN"),
            agent_flows=flows,
            chunk_size=int(os.environ.get("ASESOR_CHUNK_SIZE", "4000")),
            autosave_delay=float(os.environ.get("ASESOR_AUTOSAVE_DELAY", "3.0")),
            autosave_interval=float(os.environ.get("ASESOR_AUTOSAVE_INTERVAL", "30.0")),
        )


def get_settings() -> Settings:
    """Convenience accessor for lazy modules."""
    settings = Settings.load()
    settings.ensure_directories()
    return settings
