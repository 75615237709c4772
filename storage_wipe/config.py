"""Runtime settings loaded from the environment."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


DEFAULT_LOG_FILE = "/tmp/storage-wipe.log"
DEFAULT_SECURITY_PASSWORD = "storagewipe"


class Settings(BaseModel):
    """Process-wide settings for the wipe tool."""
    log_file: str = DEFAULT_LOG_FILE
    lsblk_json: Optional[str] = None  # replaces `lsblk -d` output for the device catalog
    topology_json: Optional[str] = None  # replaces the lsblk tree output
    security_password: str = DEFAULT_SECURITY_PASSWORD
    command_timeout: Optional[int] = Field(default=None, gt=0)


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value


def load_settings() -> Settings:
    """Load settings from environment variables (and a .env file if present)."""
    load_dotenv()

    timeout = _optional("STORAGE_WIPE_COMMAND_TIMEOUT")

    return Settings(
        log_file=os.getenv("STORAGE_WIPE_LOG_FILE", DEFAULT_LOG_FILE),
        lsblk_json=_optional("STORAGE_WIPE_LSBLK_JSON"),
        topology_json=_optional("STORAGE_WIPE_TOPOLOGY_JSON"),
        security_password=os.getenv("STORAGE_WIPE_SECURITY_PASSWORD", DEFAULT_SECURITY_PASSWORD),
        command_timeout=int(timeout) if timeout is not None else None,
    )
