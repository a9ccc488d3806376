# src/taskbook/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .coordinator import ProjectTaskCoordinator
from .ports import Notifier, ProjectRepo, SecretStore, SuggestionClient

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """
    Everything one session needs, built once by the composition root and
    passed explicitly (no module-level singletons).
    """

    settings: Any
    store: ProjectRepo
    suggestions: SuggestionClient
    notifier: Notifier
    credentials: SecretStore
    coordinator: ProjectTaskCoordinator

    def save_api_key(self, secret: str) -> None:
        """Persist the provider key and activate the suggestion provider."""
        self.credentials.save(secret)
        self.suggestions.configure(secret.strip())

    def clear_api_key(self) -> None:
        self.credentials.clear()
        self.suggestions.clear()

    async def aclose(self) -> None:
        """Wait for pending notifications, then release HTTP clients."""
        await self.coordinator.drain()
        for resource in (self.store, self.notifier):
            close = getattr(resource, "aclose", None)
            if close is None:
                continue
            try:
                await close()
            except Exception:
                logger.debug("aclose failed for %s", type(resource).__name__, exc_info=True)
        logger.info("Session closed.")
