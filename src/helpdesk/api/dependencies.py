from __future__ import annotations

from threading import Lock
from typing import Optional

from src.helpdesk.config import settings
from src.helpdesk.services.chat.orchestrator import ChatOrchestrator, build_orchestrator


_orchestrator_lock: Lock = Lock()
_orchestrator_instance: Optional[ChatOrchestrator] = None


def get_chat_orchestrator() -> ChatOrchestrator:
    """Return the process-wide orchestrator, building it on first use.

    Tests replace this dependency through ``app.dependency_overrides`` to
    inject fake providers and an isolated session store.
    """

    global _orchestrator_instance
    if _orchestrator_instance is not None:
        return _orchestrator_instance

    with _orchestrator_lock:
        if _orchestrator_instance is None:
            _orchestrator_instance = build_orchestrator(settings)

    return _orchestrator_instance
