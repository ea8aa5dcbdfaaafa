from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

CLIENT_VERSION = "2.0.0"


class ClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_url: str = Field(default="https://openlibrary.org")
    product: str = Field(default="openlibrary-python")
    version: str = Field(default=CLIENT_VERSION)
    timeout_seconds: float = Field(default=10.0, gt=0)

    @property
    def user_agent(self) -> str:
        return f"{self.product}/{self.version}"


def _config_path() -> Path:
    return Path(__file__).resolve().parents[2] / "config" / "openlibrary.yml"


def _env_path() -> Path:
    return Path(__file__).resolve().parents[2] / ".env"


def _load_yaml_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        return raw
    return {}


def get_client_config(path: Path | None = None) -> ClientConfig:
    load_dotenv(_env_path(), override=False)

    values = _load_yaml_config(path or _config_path())

    env_base_url = os.getenv("OPENLIBRARY_BASE_URL")
    env_timeout_seconds = os.getenv("OPENLIBRARY_TIMEOUT_SECONDS")
    env_product = os.getenv("OPENLIBRARY_USER_AGENT_PRODUCT")

    if env_base_url is not None:
        values["base_url"] = env_base_url
    if env_timeout_seconds is not None:
        values["timeout_seconds"] = float(env_timeout_seconds)
    if env_product is not None:
        values["product"] = env_product

    return ClientConfig(**values)
