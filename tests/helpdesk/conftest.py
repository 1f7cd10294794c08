from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from src.helpdesk.config import Settings
from src.helpdesk.domain.models.chat import ProviderReply, UpstreamCall
from src.helpdesk.domain.models.provider import ProviderName


class FakeUpstream:
    """Routes requests by host to canned responses and records every call."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._responders: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def reply(self, host: str, status_code: int = 200, *, json: Any = None, text: Optional[str] = None) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            if text is not None:
                return httpx.Response(status_code, text=text)
            return httpx.Response(status_code, json=json)

        self._responders[host] = responder

    def unreachable(self, host: str) -> None:
        def responder(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        self._responders[host] = responder

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responders[request.url.host](request)

    def calls_to(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeAdapter:
    """In-process provider adapter with a call-count spy."""

    def __init__(
        self,
        name: ProviderName,
        *,
        reply: Optional[str] = "ok",
        error: Optional[Exception] = None,
        before_reply: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.name = name
        self.label = "documented chatbase" if name is ProviderName.CHATBASE else "openai"
        self.reply = reply
        self.error = error
        self.before_reply = before_reply
        self.calls: List[Dict[str, Any]] = []

    async def send_conversation(self, transcript, config, *, session_id):
        self.calls.append({"transcript": list(transcript), "config": config, "session_id": session_id})
        if self.before_reply is not None:
            await self.before_reply()
        if self.error is not None:
            raise self.error
        return ProviderReply(
            text=self.reply,
            call=UpstreamCall(provider=self.name.value, endpoint="fake://", status_code=200, ok=True),
        )


def _settings(**overrides: Any) -> Settings:
    values: Dict[str, Any] = dict(
        deployment_mode="server",
        ai_provider="chatbase",
        openai_api_key=None,
        openai_model="gpt-3.5-turbo",
        openai_temperature=0.2,
        openai_max_tokens=512,
        openai_base_url="https://api.openai.com",
        chatbase_api_key=None,
        chatbase_chatbot_id=None,
        chatbase_model="gpt-4o",
        chatbase_temperature=0.7,
        chatbase_base_url="https://www.chatbase.co",
        system_prompt="You are a test help desk.",
        upstream_timeout_seconds=None,
        session_max_entries=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    return _settings


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
async def upstream_client(upstream: FakeUpstream):
    client = upstream.client()
    yield client
    await client.aclose()


@pytest.fixture
def fake_adapter() -> Callable[..., FakeAdapter]:
    return FakeAdapter
