from __future__ import annotations

import soupsieve
from pydantic import BaseModel, Field, field_validator

DEFAULT_LIMIT = 5
DEFAULT_USER_AGENT = "scriptrank/0.1 (+https://github.com/scriptrank/scriptrank)"


class AppSettings(BaseModel):
    search_url_template: str = "https://www.google.com/search?q={query}"
    result_link_selector: str = Field(default=".r a", min_length=1)
    script_selector: str = Field(default="script", min_length=1)
    max_workers: int = Field(default=8, ge=1, le=64)
    timeout_seconds: float = Field(default=10.0, gt=0, le=180)
    max_body_bytes: int = Field(default=5_000_000, ge=1024)
    max_candidates: int | None = Field(default=None, ge=1)
    user_agent: str = DEFAULT_USER_AGENT
    default_limit: int = Field(default=DEFAULT_LIMIT, ge=1)
    host: str = "127.0.0.1"
    port: int = 8000

    @field_validator("search_url_template")
    @classmethod
    def validate_search_url_template(cls, value: str) -> str:
        value = value.strip()
        if "{query}" not in value:
            raise ValueError("search_url_template must contain a {query} placeholder")
        if not value.startswith(("http://", "https://")):
            raise ValueError("search_url_template must start with http:// or https://")
        return value

    @field_validator("result_link_selector", "script_selector")
    @classmethod
    def validate_selector(cls, value: str) -> str:
        try:
            soupsieve.compile(value)
        except soupsieve.SelectorSyntaxError as exc:
            raise ValueError(f"invalid CSS selector {value!r}: {exc}") from None
        return value
