from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UpstreamCall(BaseModel):
    """Diagnostic record of a single request to an upstream provider."""

    provider: str
    endpoint: str
    status_code: Optional[int] = Field(default=None, serialization_alias="status")
    ok: bool = False
    # Parsed JSON when the upstream returned JSON, otherwise raw text or the
    # stringified transport error.
    body: Any = None


class ProviderReply(BaseModel):
    """Successful provider response. ``text`` is None when no reply field was found."""

    text: Optional[str] = None
    call: UpstreamCall


class ChatRequest(BaseModel):
    """Body of ``POST /chat``. ``message`` is validated by the orchestrator."""

    model_config = ConfigDict(populate_by_name=True)

    message: Any = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")

    @field_validator("session_id", mode="before")
    @classmethod
    def _coerce_session_id(cls, value: Any) -> Optional[str]:
        # Any truthy id is accepted and stringified; falsy ids mean the default session.
        if not value:
            return None
        return str(value)


class NormalizedReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: Optional[str] = None
    provider_used: str = Field(serialization_alias="providerUsed")
    used_fallback: Optional[bool] = Field(default=None, serialization_alias="usedFallback")
    diagnostics: Optional[List[UpstreamCall]] = None

    def to_body(self) -> dict:
        body = self.model_dump(by_alias=True, exclude_none=True)
        # A null reply is a valid answer and stays in the body.
        body.setdefault("reply", None)
        return body
