from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderName(str, Enum):
    OPENAI = "openai"
    CHATBASE = "chatbase"


# Environment variables each provider needs before it may be called.
REQUIRED_CREDENTIALS = {
    ProviderName.OPENAI: ("api_key", "OPENAI_API_KEY"),
    ProviderName.CHATBASE: ("api_key", "CHATBASE_API_KEY"),
}

# Additional settings a provider needs only when it is the primary.
REQUIRED_WHEN_PRIMARY = {
    ProviderName.OPENAI: (),
    ProviderName.CHATBASE: (("chatbot_id", "CHATBASE_CHATBOT_ID"),),
}


class ProviderConfig(BaseModel):
    """Read-only connection settings for one upstream chat provider."""

    model_config = ConfigDict(frozen=True)

    provider_name: ProviderName
    api_key: Optional[str] = Field(default=None, repr=False)
    model_name: str
    temperature: float
    base_url: str
    chatbot_id: Optional[str] = None  # Chatbase only
    max_tokens: Optional[int] = None  # OpenAI only

    @property
    def has_credentials(self) -> bool:
        attr, _ = REQUIRED_CREDENTIALS[self.provider_name]
        return bool(getattr(self, attr))

    def missing_settings(self, *, as_primary: bool = True) -> List[str]:
        """Return the environment variable names that are required but unset."""

        required = [REQUIRED_CREDENTIALS[self.provider_name]]
        if as_primary:
            required.extend(REQUIRED_WHEN_PRIMARY[self.provider_name])
        return [env_name for attr, env_name in required if not getattr(self, attr)]
