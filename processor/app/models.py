from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ValidationError

StemKind = Literal["vocals", "instrumental"]


class IntakeRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    mode: str | None = None
    url: str | None = None
    title: str | None = None
    channel: str | None = None
    thread_ts: str | None = None

    @field_validator("mode", "url", "title", "channel", "thread_ts", mode="before")
    @classmethod
    def scalar_to_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return None

    @classmethod
    def from_raw_body(cls, raw_body: bytes) -> IntakeRequest:
        """Lenient parse: undecodable or non-object bodies become an empty request."""
        try:
            payload = json.loads(raw_body or b"{}")
        except (UnicodeDecodeError, json.JSONDecodeError, RecursionError):
            return cls()
        if not isinstance(payload, dict):
            return cls()
        return cls.model_validate(payload)

    @property
    def has_url(self) -> bool:
        return bool(self.url and self.url.strip())

    def require_url(self) -> str:
        if not self.has_url:
            raise ValidationError("url is required")
        return self.url.strip()

    @property
    def notify_target(self) -> tuple[str, str] | None:
        if self.channel and self.thread_ts:
            return self.channel, self.thread_ts
        return None


class IntakeAck(BaseModel):
    ok: bool = True
    intake: bool = True
    mode: str | None = None
    url: str | None = None
    title: str | None = None


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str


class HealthResponse(BaseModel):
    ok: bool = True


@dataclass
class StemArtifact:
    kind: StemKind
    local_path: Path
    remote_name: str | None = None
    direct_link: str | None = None


class DryRunReport(BaseModel):
    url: str
    source: str
    stems: dict[str, str] = Field(default_factory=dict)
