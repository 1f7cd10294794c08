from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Type

import httpx

from src.helpdesk.domain.errors import UpstreamStatusError, UpstreamTransportError
from src.helpdesk.domain.models.chat import ProviderReply, UpstreamCall
from src.helpdesk.domain.models.provider import ProviderConfig, ProviderName
from src.helpdesk.domain.models.transcript import TranscriptEntry


logger = logging.getLogger("providers")

# Number of response characters written to the log on failures.
_LOG_SNIPPET_CHARS = 2000


class ProviderAdapter(Protocol):
    """Protocol for upstream chat providers.

    Implementations translate a transcript into the provider's wire format,
    issue exactly one request and either return the reply or raise an
    :class:`~src.helpdesk.domain.errors.UpstreamError` subclass.
    """

    name: ProviderName
    label: str

    async def send_conversation(
        self,
        transcript: Sequence[TranscriptEntry],
        config: ProviderConfig,
        *,
        session_id: str,
    ) -> ProviderReply:  # pragma: no cover - interface
        raise NotImplementedError


def _parse_body(response: httpx.Response) -> Any:
    """Return the decoded JSON body, or the raw text when it is not JSON."""

    try:
        return response.json()
    except ValueError:
        return response.text


class HTTPProviderAdapter(ABC):
    """Shared request/classification logic for JSON-over-HTTPS chat APIs.

    A client can be injected (tests pass one built on ``httpx.MockTransport``);
    otherwise a short-lived ``httpx.AsyncClient`` is opened per call. A configured
    timeout applies to every request on either client; when none is configured
    the client's own timeout applies.
    """

    name: ProviderName
    label: str

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    @abstractmethod
    def endpoint(self, config: ProviderConfig) -> str:
        raise NotImplementedError

    @abstractmethod
    def build_payload(
        self,
        messages: List[Dict[str, str]],
        config: ProviderConfig,
        session_id: str,
    ) -> Dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def extract_reply(self, data: Any) -> Optional[str]:
        raise NotImplementedError

    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            if self._timeout_seconds is None:
                return await self._client.post(url, headers=headers, json=payload)
            return await self._client.post(url, headers=headers, json=payload, timeout=self._timeout_seconds)

        client_kwargs: Dict[str, Any] = {}
        if self._timeout_seconds is not None:
            client_kwargs["timeout"] = self._timeout_seconds
        async with httpx.AsyncClient(**client_kwargs) as client:
            return await client.post(url, headers=headers, json=payload)

    async def send_conversation(
        self,
        transcript: Sequence[TranscriptEntry],
        config: ProviderConfig,
        *,
        session_id: str,
    ) -> ProviderReply:
        url = self.endpoint(config)
        messages = [entry.as_message() for entry in transcript]
        payload = self.build_payload(messages, config, session_id)

        try:
            response = await self._post(url, self._headers(config), payload)
        except httpx.HTTPError as exc:
            logger.error("%s request to %s failed: %r", self.label, url, exc)
            call = UpstreamCall(provider=self.name.value, endpoint=url, ok=False, body=str(exc) or repr(exc))
            raise UpstreamTransportError(f"{self.label} request error", call=call) from exc

        body = _parse_body(response)
        call = UpstreamCall(
            provider=self.name.value,
            endpoint=url,
            status_code=response.status_code,
            ok=response.is_success,
            body=body,
        )
        logger.info("%s attempt to %s: status=%s", self.label, url, response.status_code)

        if not response.is_success:
            logger.error(
                "%s returned status %s: %s",
                self.label,
                response.status_code,
                response.text[:_LOG_SNIPPET_CHARS],
            )
            raise UpstreamStatusError(f"{self.label} failed", call=call)

        text = self.extract_reply(body)
        if text is None:
            logger.warning("%s response carried no reply text", self.label)
        return ProviderReply(text=text, call=call)


class OpenAIProviderAdapter(HTTPProviderAdapter):
    """OpenAI Chat Completions API.

    Reply text is read from ``choices[0].message.content``.
    """

    name = ProviderName.OPENAI
    label = "openai"

    def endpoint(self, config: ProviderConfig) -> str:
        return f"{config.base_url}/v1/chat/completions"

    def build_payload(
        self,
        messages: List[Dict[str, str]],
        config: ProviderConfig,
        session_id: str,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": config.model_name,
            "messages": messages,
            "temperature": config.temperature,
        }
        if config.max_tokens is not None:
            payload["max_tokens"] = config.max_tokens
        return payload

    def extract_reply(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return None
        message = choices[0].get("message")
        if not isinstance(message, dict):
            return None
        content = message.get("content")
        return content if isinstance(content, str) else None


class ChatbaseProviderAdapter(HTTPProviderAdapter):
    """Documented Chatbase chat API (``/api/v1/chat``).

    The session id doubles as Chatbase's ``conversationId`` and ``contactId``
    so the upstream can correlate turns. Reply text is the top-level ``text``.
    """

    name = ProviderName.CHATBASE
    label = "documented chatbase"

    def endpoint(self, config: ProviderConfig) -> str:
        return f"{config.base_url}/api/v1/chat"

    def build_payload(
        self,
        messages: List[Dict[str, str]],
        config: ProviderConfig,
        session_id: str,
    ) -> Dict[str, Any]:
        return {
            "chatbotId": config.chatbot_id,
            "messages": messages,
            "conversationId": session_id,
            "contactId": session_id,
            "model": config.model_name,
            "temperature": config.temperature,
            "stream": False,
        }

    def extract_reply(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict):
            return None
        text = data.get("text")
        return text if isinstance(text, str) else None


_ADAPTER_CLASSES: Mapping[ProviderName, Type[HTTPProviderAdapter]] = {
    ProviderName.OPENAI: OpenAIProviderAdapter,
    ProviderName.CHATBASE: ChatbaseProviderAdapter,
}

# Providers tried, in order, after the primary fails. A candidate is only
# used when its own credential is configured.
FALLBACK_CHAINS: Mapping[ProviderName, Tuple[ProviderName, ...]] = {
    ProviderName.CHATBASE: (ProviderName.OPENAI,),
    ProviderName.OPENAI: (),
}


def build_provider_registry(
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_seconds: Optional[float] = None,
) -> Dict[ProviderName, ProviderAdapter]:
    """Return one adapter instance per supported provider."""

    return {
        name: adapter_cls(client=client, timeout_seconds=timeout_seconds)
        for name, adapter_cls in _ADAPTER_CLASSES.items()
    }
