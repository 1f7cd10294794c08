from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from src.helpdesk.domain.models.provider import ProviderConfig, ProviderName


load_dotenv()


DEFAULT_SYSTEM_PROMPT = (
    "You are an AI Help Desk assistant. Your goal is to help users with their "
    "technical issues. Be concise, helpful, and polite. Provide clear, "
    "step-by-step instructions and include links to resources when appropriate."
)


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


def mask_secret(value: Optional[str]) -> str:
    """Return a loggable form of a credential, e.g. ``sk-a...wxyz``."""

    if not value:
        return "(missing)"
    if len(value) <= 8:
        return "(set)"
    return f"{value[:4]}...{value[-4:]}"


@dataclass
class Settings:
    """Centralized application settings.

    Environment variables are read once at import time (after loading an
    optional ``.env`` file) so the rest of the code depends on typed
    attributes instead of calling os.getenv directly.
    """

    # "server" keeps sessions in memory for the life of the process;
    # "serverless" rebuilds the transcript from the single incoming message.
    deployment_mode: str = os.getenv("DEPLOYMENT_MODE", "server")

    # Primary provider: "openai" or "chatbase". When unset the default
    # depends on the deployment mode (see ``primary_provider_name``).
    ai_provider: Optional[str] = os.getenv("AI_PROVIDER")

    openai_api_key: Optional[str] = os.getenv("OPENAI_API_KEY")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    openai_temperature: float = float(os.getenv("OPENAI_TEMPERATURE", "0.2"))
    openai_max_tokens: int = int(os.getenv("OPENAI_MAX_TOKENS", "512"))
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com")

    chatbase_api_key: Optional[str] = os.getenv("CHATBASE_API_KEY")
    chatbase_chatbot_id: Optional[str] = os.getenv("CHATBASE_CHATBOT_ID")
    chatbase_model: str = os.getenv("CHATBASE_MODEL", "gpt-4o")
    chatbase_temperature: float = float(os.getenv("CHATBASE_TEMPERATURE", "0.7"))
    chatbase_base_url: str = os.getenv("CHATBASE_BASE_URL", "https://www.chatbase.co")

    system_prompt: str = os.getenv("SYSTEM_PROMPT", DEFAULT_SYSTEM_PROMPT)

    # Per-request upstream timeout in seconds. Unset keeps httpx's default.
    upstream_timeout_seconds: Optional[float] = _optional_float("UPSTREAM_TIMEOUT_SECONDS")

    # Maximum transcript length per session (system entry included). Unset
    # means transcripts grow for the life of the process.
    session_max_entries: Optional[int] = _optional_int("SESSION_MAX_ENTRIES")

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))

    # CORS configuration: comma-separated origins. Default "*" allows all.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")

    def __post_init__(self) -> None:
        self.openai_base_url = self.openai_base_url.rstrip("/")
        self.chatbase_base_url = self.chatbase_base_url.rstrip("/")

    @property
    def is_serverless(self) -> bool:
        return self.deployment_mode.lower() == "serverless"

    @property
    def primary_provider_name(self) -> str:
        """Configured primary provider, lower-cased and not yet validated."""

        if self.ai_provider:
            return self.ai_provider.strip().lower()
        return ProviderName.CHATBASE.value if self.is_serverless else ProviderName.OPENAI.value

    def provider_config(self, name: ProviderName) -> ProviderConfig:
        if name is ProviderName.OPENAI:
            return ProviderConfig(
                provider_name=name,
                api_key=self.openai_api_key,
                model_name=self.openai_model,
                temperature=self.openai_temperature,
                base_url=self.openai_base_url,
                max_tokens=self.openai_max_tokens,
            )
        return ProviderConfig(
            provider_name=name,
            api_key=self.chatbase_api_key,
            model_name=self.chatbase_model,
            temperature=self.chatbase_temperature,
            base_url=self.chatbase_base_url,
            chatbot_id=self.chatbase_chatbot_id,
        )


settings = Settings()
