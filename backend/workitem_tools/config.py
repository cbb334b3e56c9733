from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="GITLAB_", env_file=".env", env_file_encoding="utf-8", extra="ignore")

    base_url: str = "https://gitlab.com"
    token: Optional[str] = None
    graphql_path: str = "/api/graphql"
    request_timeout: float = 20
    # Sent with every GraphQL request; env value is a JSON object
    extra_headers: Dict[str, str] = {}

    default_page_size: int = 20
    max_page_size: int = 100
    introspect_on_startup: bool = False

    log_level: str = "INFO"
    allowed_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("base_url must be http or https")
        if not parsed.netloc:
            raise ValueError("base_url is missing host")
        return v.rstrip("/")

    @field_validator("extra_headers", mode="before")
    @classmethod
    def coerce_extra_headers(cls, v: Any) -> Dict[str, str]:
        if v is None or v == "":
            return {}
        if isinstance(v, str):
            v = json.loads(v)
        if not isinstance(v, dict):
            raise ValueError("extra_headers must be a JSON object")
        return {str(k): str(value) for k, value in v.items()}

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @property
    def graphql_endpoint(self) -> str:
        return f"{self.base_url}/{self.graphql_path.lstrip('/')}"

    def auth_headers(self) -> Dict[str, str]:
        headers = dict(self.extra_headers)
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers


settings = Settings()
