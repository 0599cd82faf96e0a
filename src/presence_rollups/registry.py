"""Hub registry: one rollup engine per hub.

A host watching several hubs keeps a separate notification log for
each of them. The registry creates engines on first use and tears them
down (dropping held departures) when a hub goes away.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from presence_rollups.config import RollupOptions
from presence_rollups.models import Handlers
from presence_rollups.rollups import PresenceRollups

logger = logging.getLogger("presence_rollups.registry")

HandlersFactory = Callable[[str], Handlers]
"""(hub_id) → handlers for that hub's engine"""

RemoveCallback = Callable[[str], None]
"""(hub_id) → None"""


class RollupRegistry:
    """Registry of per-hub rollup engines.

    Example::

        registry = RollupRegistry(
            handlers_factory=subscriber.handlers_for,
            on_remove=subscriber.release,
        )
        registry.get_or_create("hub-1").arrive("c1", "Alice", now_ms)
        registry.remove("hub-1")

    Args:
        options: Timing options shared by every engine.
        handlers_factory: Called with a hub id to build that engine's handlers.
            If None, engines are created without handlers.
        on_remove: Called with a hub id after its engine is removed, to tear
            down whatever ``handlers_factory`` set up for it.
    """

    def __init__(
        self,
        *,
        options: RollupOptions | None = None,
        handlers_factory: HandlersFactory | None = None,
        on_remove: RemoveCallback | None = None,
    ) -> None:
        self._options = options or RollupOptions()
        self._handlers_factory = handlers_factory
        self._on_remove = on_remove
        self._engines: dict[str, PresenceRollups] = {}

    def get_or_create(self, hub_id: str) -> PresenceRollups:
        """Return the engine for a hub, creating it if needed."""
        engine = self._engines.get(hub_id)
        if engine is None:
            handlers = self._handlers_factory(hub_id) if self._handlers_factory else None
            engine = PresenceRollups(handlers, options=self._options, hub_id=hub_id)
            self._engines[hub_id] = engine
            logger.info("Rollups created for hub %s", hub_id)
        return engine

    def get(self, hub_id: str) -> PresenceRollups | None:
        """Get a hub's engine, or None."""
        return self._engines.get(hub_id)

    def has(self, hub_id: str) -> bool:
        return hub_id in self._engines

    def list(self) -> list[str]:
        """List hub ids with an engine."""
        return list(self._engines.keys())

    def remove(self, hub_id: str) -> None:
        """Forget a hub, dropping its held departures."""
        engine = self._engines.pop(hub_id, None)
        if engine is None:
            return
        engine.cancel_all()
        if self._on_remove:
            try:
                self._on_remove(hub_id)
            except Exception:
                logger.exception("Remove callback failed for hub %s", hub_id)
        logger.info("Rollups removed for hub %s", hub_id)

    def close_all(self) -> None:
        """Remove every hub."""
        for hub_id in list(self._engines):
            self.remove(hub_id)
