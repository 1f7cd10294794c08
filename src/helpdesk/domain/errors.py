from __future__ import annotations

from typing import Any, List, Optional

from src.helpdesk.domain.models.chat import UpstreamCall


class HelpDeskError(Exception):
    """Base class for errors raised by the chat core."""


class ValidationError(HelpDeskError):
    """The inbound request is unusable; no upstream call is made."""


class SessionBusyError(HelpDeskError):
    """A session cannot be removed while one of its turns is in flight."""


class ConfigurationError(HelpDeskError):
    """A required setting is absent or invalid; no upstream call is made."""

    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.details = details


class UpstreamError(HelpDeskError):
    """A provider call failed. Triggers the next provider in the chain."""

    kind = "upstream"

    def __init__(self, message: str, *, call: UpstreamCall) -> None:
        super().__init__(message)
        self.call = call

    @property
    def provider(self) -> str:
        return self.call.provider

    @property
    def detail(self) -> Any:
        return self.call.body


class UpstreamTransportError(UpstreamError):
    """The provider could not be reached (DNS, connect, timeout, ...)."""

    kind = "transport"


class UpstreamStatusError(UpstreamError):
    """The provider answered with a non-success status code."""

    kind = "upstream_status"

    @property
    def status_code(self) -> Optional[int]:
        return self.call.status_code


class ProviderChainExhausted(HelpDeskError):
    """Every provider in the chain failed. Failures are kept in call order."""

    def __init__(self, failures: List[UpstreamError]) -> None:
        super().__init__("; ".join(str(f) for f in failures))
        self.failures = failures


class InternalError(HelpDeskError):
    """Anything unanticipated, converted to a 500 at the orchestrator boundary."""
