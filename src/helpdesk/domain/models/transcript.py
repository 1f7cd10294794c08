from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class TranscriptEntry(BaseModel):
    """One conversation turn. Entries are never edited once created."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str

    def as_message(self) -> dict:
        return {"role": self.role.value, "content": self.content}


class Session(BaseModel):
    """A named transcript. The first entry is always the system prompt."""

    id: str
    created_at: datetime
    transcript: List[TranscriptEntry] = Field(default_factory=list)

    def messages(self) -> List[dict]:
        return [entry.as_message() for entry in self.transcript]
