"""Chat turn orchestration.

:class:`ChatOrchestrator` owns one conversational turn: validate the inbound
message, record it in the session transcript, walk the provider chain (the
configured primary followed by any credentialed fallbacks) until one answers,
and record the answer. Every path ends in a :class:`ChatOutcome` carrying an
HTTP status and a JSON-ready body; no exception escapes :meth:`handle`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from src.helpdesk.config import Settings
from src.helpdesk.domain.errors import (
    ConfigurationError,
    InternalError,
    ProviderChainExhausted,
    UpstreamError,
    ValidationError,
)
from src.helpdesk.domain.models.chat import NormalizedReply, ProviderReply
from src.helpdesk.domain.models.provider import ProviderConfig, ProviderName
from src.helpdesk.domain.models.transcript import Role, TranscriptEntry
from src.helpdesk.services.audit.service import AuditService, audit_service
from src.helpdesk.services.providers.backends import (
    FALLBACK_CHAINS,
    ProviderAdapter,
    build_provider_registry,
)
from src.helpdesk.services.sessions.store import SessionStore, build_session_store


logger = logging.getLogger("chat")

DEFAULT_SESSION_ID = "default"


class TurnState(str, Enum):
    START = "START"
    VALIDATED = "VALIDATED"
    SESSION_READY = "SESSION_READY"
    PRIMARY_CALLED = "PRIMARY_CALLED"
    PRIMARY_FAILED = "PRIMARY_FAILED"
    FALLBACK_CALLED = "FALLBACK_CALLED"
    SUCCESS = "SUCCESS"
    TERMINAL_FAILURE = "TERMINAL_FAILURE"
    VALIDATION_FAILURE = "VALIDATION_FAILURE"
    CONFIGURATION_FAILURE = "CONFIGURATION_FAILURE"
    INTERNAL_FAILURE = "INTERNAL_FAILURE"


@dataclass
class ChatOutcome:
    status_code: int
    body: Dict[str, Any]
    state: TurnState
    provider_used: Optional[str] = None


@dataclass(frozen=True)
class ChainLink:
    name: ProviderName
    adapter: ProviderAdapter
    config: ProviderConfig


class ChatOrchestrator:
    """Run chat turns against an ordered chain of provider adapters."""

    def __init__(
        self,
        *,
        config: Settings,
        session_store: SessionStore,
        adapters: Mapping[ProviderName, ProviderAdapter],
        audit: AuditService = audit_service,
    ) -> None:
        self._config = config
        self._sessions = session_store
        self._adapters = dict(adapters)
        self._audit = audit

    @property
    def session_store(self) -> SessionStore:
        return self._sessions

    async def handle(self, session_id: Optional[str], message: Any) -> ChatOutcome:
        sid = session_id or DEFAULT_SESSION_ID
        try:
            outcome = await self._run_turn(sid, message)
        except Exception as exc:
            logger.exception("Chat processing failed for session %s", sid)
            outcome = ChatOutcome(
                status_code=500,
                body={"error": "server error", "details": str(exc)},
                state=TurnState.INTERNAL_FAILURE,
            )

        self._audit.log_event(
            action="chat_turn",
            resource_type="chat_session",
            resource_id=sid,
            extra={
                "status_code": outcome.status_code,
                "state": outcome.state.value,
                "provider_used": outcome.provider_used,
                "used_fallback": bool(outcome.body.get("usedFallback")),
            },
        )
        return outcome

    async def _run_turn(self, sid: str, message: Any) -> ChatOutcome:
        self._trace(sid, TurnState.START)
        try:
            text = self._validate(message)
        except ValidationError as exc:
            return ChatOutcome(400, {"error": str(exc)}, TurnState.VALIDATION_FAILURE)
        self._trace(sid, TurnState.VALIDATED)

        # The lock spans the whole turn so user/assistant pairs of one session
        # never interleave.
        async with self._sessions.lock_for(sid):
            session = self._sessions.get_or_create(sid)
            self._sessions.append(session, TranscriptEntry(role=Role.USER, content=text))
            self._trace(sid, TurnState.SESSION_READY)

            # The user entry stays recorded even when the turn cannot proceed.
            try:
                chain = self.resolve_chain()
            except ConfigurationError as exc:
                logger.error("Configuration error: %s", exc)
                body: Dict[str, Any] = {"error": str(exc)}
                if exc.details is not None:
                    body["details"] = exc.details
                return ChatOutcome(500, body, TurnState.CONFIGURATION_FAILURE)

            try:
                link, reply, failures = await self._first_success(sid, chain, list(session.transcript))
            except ProviderChainExhausted as exc:
                self._trace(sid, TurnState.TERMINAL_FAILURE)
                return ChatOutcome(502, self._failure_body(chain, exc.failures), TurnState.TERMINAL_FAILURE)

            self._sessions.append(session, TranscriptEntry(role=Role.ASSISTANT, content=reply.text or ""))

        self._trace(sid, TurnState.SUCCESS)
        normalized = NormalizedReply(
            reply=reply.text,
            provider_used=link.name.value,
            used_fallback=True if failures else None,
            diagnostics=[*(failure.call for failure in failures), reply.call],
        )
        return ChatOutcome(200, normalized.to_body(), TurnState.SUCCESS, provider_used=link.name.value)

    @staticmethod
    def _validate(message: Any) -> str:
        if not isinstance(message, str) or not message:
            raise ValidationError("message required")
        return message

    def resolve_chain(self) -> List[ChainLink]:
        """Return the primary provider followed by its usable fallbacks.

        Raises :class:`ConfigurationError` when the primary is unknown or is
        missing a required setting; fallbacks without credentials are skipped.
        """

        requested = self._config.primary_provider_name
        try:
            primary = ProviderName(requested)
        except ValueError:
            raise ConfigurationError("unsupported AI_PROVIDER", details=requested) from None

        primary_config = self._config.provider_config(primary)
        missing = primary_config.missing_settings(as_primary=True)
        if missing:
            raise ConfigurationError(f"server missing {', '.join(missing)}")

        chain = [ChainLink(primary, self._adapter(primary), primary_config)]
        for candidate in FALLBACK_CHAINS.get(primary, ()):
            candidate_config = self._config.provider_config(candidate)
            if candidate_config.has_credentials:
                chain.append(ChainLink(candidate, self._adapter(candidate), candidate_config))
        return chain

    def _adapter(self, name: ProviderName) -> ProviderAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            raise InternalError(f"no adapter registered for provider {name.value!r}")
        return adapter

    async def _first_success(
        self,
        sid: str,
        chain: Sequence[ChainLink],
        transcript: List[TranscriptEntry],
    ) -> Tuple[ChainLink, ProviderReply, List[UpstreamError]]:
        """Try each link in order and return the first reply.

        Failures of earlier links are returned alongside the reply; if every
        link fails :class:`ProviderChainExhausted` carries them all.
        """

        failures: List[UpstreamError] = []
        for index, link in enumerate(chain):
            self._trace(sid, TurnState.PRIMARY_CALLED if index == 0 else TurnState.FALLBACK_CALLED)
            try:
                reply = await link.adapter.send_conversation(transcript, link.config, session_id=sid)
            except UpstreamError as exc:
                failures.append(exc)
                if index == 0:
                    self._trace(sid, TurnState.PRIMARY_FAILED)
                if index + 1 < len(chain):
                    logger.warning(
                        "%s failed for session %s (%s); falling back to %s",
                        link.adapter.label,
                        sid,
                        exc.kind,
                        chain[index + 1].adapter.label,
                    )
                continue
            return link, reply, failures
        raise ProviderChainExhausted(failures)

    @staticmethod
    def _failure_body(chain: Sequence[ChainLink], failures: Sequence[UpstreamError]) -> Dict[str, Any]:
        primary_failure = failures[0]
        if len(failures) == 1:
            return {"error": str(primary_failure), "details": primary_failure.detail}

        labels = [f"{link.adapter.label} fallback failed" for link in chain[1 : len(failures)]]
        body: Dict[str, Any] = {
            "error": "; ".join([str(primary_failure), *labels]),
            "details": primary_failure.detail,
        }
        for link, failure in zip(chain[1:], failures[1:]):
            body[link.name.value] = failure.detail
        body["diagnostics"] = [failure.call.model_dump(by_alias=True) for failure in failures]
        return body

    @staticmethod
    def _trace(sid: str, state: TurnState) -> None:
        logger.debug("session=%s state=%s", sid, state.value)


def build_orchestrator(
    config: Settings,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> ChatOrchestrator:
    """Wire an orchestrator for the configured deployment mode."""

    return ChatOrchestrator(
        config=config,
        session_store=build_session_store(config),
        adapters=build_provider_registry(client=client, timeout_seconds=config.upstream_timeout_seconds),
    )
