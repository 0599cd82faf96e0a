"""Presence rollup engine.

Tracks the series of arrivals and departures in a hub and rolls it up
into a short stream of notifications. Each new arrival or departure
either produces a new notification or amends the most recent one.

Departures are held for a patience window before they are announced,
so a participant who drops and quickly rejoins produces no
notification at all.

Participants are matched across a leave/rejoin by display name, not
by id: there is no stable identity that survives a reconnect. This is
why pending departures are keyed on name and why each name can have
several holds outstanding at once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable
from typing import Any

from presence_rollups.config import RollupOptions
from presence_rollups.models import (
    EventType,
    Handlers,
    Identity,
    Notification,
    NotificationKind,
)

logger = logging.getLogger("presence_rollups.engine")


class RollupInvariantError(RuntimeError):
    """Raised when the engine's internal bookkeeping is inconsistent.

    This points at a scheduling bug in the host integration (e.g. a
    finalize running for a hold that was never registered), not at a
    normal runtime condition.
    """


class PresenceRollups:
    """Rolls presence events for a single hub into notifications.

    Fires two kinds of events through ``handlers``:

    - ``on_new``: a new notification should be posted announcing the
      arrival or departure of some set of users.
    - ``on_update``: the previous notification should be amended, and
      whichever users it announced replaced with its current users.

    ``arrive`` and ``depart`` must be called from inside a running event
    loop, one at a time.

    Args:
        handlers: Callbacks for ``new`` / ``update`` events.
        options: Timing options. Defaults are used when omitted.
        hub_id: Label used in log messages.
        **overrides: Individual ``RollupOptions`` fields, applied on top
            of ``options``.
    """

    def __init__(
        self,
        handlers: Handlers | None = None,
        *,
        options: RollupOptions | None = None,
        hub_id: str = "",
        **overrides: Any,
    ) -> None:
        base = options.model_dump() if options is not None else {}
        self._options = RollupOptions.from_mapping({**base, **overrides})
        self._handlers = handlers or Handlers()
        self._hub_id = hub_id

        # Every notification ever produced, first to last.
        self._entries: list[Notification] = []
        # Departures waiting to see whether the participant rejoins: name → [hold]
        self._pending: dict[str, list[asyncio.Task]] = {}

    @property
    def options(self) -> RollupOptions:
        return self._options

    @property
    def entries(self) -> tuple[Notification, ...]:
        """All notifications produced so far, oldest first."""
        return tuple(self._entries)

    def latest(self) -> Notification | None:
        """Return the most recent notification, or None if there is none."""
        return self._entries[-1] if self._entries else None

    def pending_departures(self, name: str | None = None) -> int:
        """Count departures still inside their patience window."""
        if name is not None:
            return len(self._pending.get(name, ()))
        return sum(len(holds) for holds in self._pending.values())

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def arrive(self, id: Hashable, name: str, timestamp: float) -> None:
        """Record that ``name`` joined the hub at ``timestamp`` (ms)."""
        hold = self._pop_hold(name)
        if hold is not None:
            # leave/rejoin is not worth reporting
            hold.cancel()
            logger.debug(
                "Rejoin suppressed (hub=%s, name=%s, id=%s)", self._hub_id, name, id
            )
            return

        self._record(
            "arrive",
            Identity(id=id, name=name),
            timestamp,
            self._options.arrive_rollup_leeway_ms,
        )

    def depart(self, id: Hashable, name: str, timestamp: float) -> None:
        """Record that ``name`` left the hub at ``timestamp`` (ms).

        The departure is only announced once the rejoin patience window
        passes without a matching arrival.
        """
        hold = asyncio.create_task(self._finalize_after_delay(id, name, timestamp))
        self._pending.setdefault(name, []).append(hold)
        logger.debug(
            "Departure held (hub=%s, name=%s, id=%s, pending=%d)",
            self._hub_id,
            name,
            id,
            len(self._pending[name]),
        )

    # ------------------------------------------------------------------
    # Cleanup
    # ------------------------------------------------------------------

    def cancel_all(self) -> None:
        """Drop every held departure without announcing it."""
        for holds in self._pending.values():
            for hold in holds:
                hold.cancel()
        count = self.pending_departures()
        self._pending.clear()
        if count:
            logger.debug("Cancelled %d held departures (hub=%s)", count, self._hub_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _pop_hold(self, name: str) -> asyncio.Task | None:
        """Take the most recently scheduled hold for ``name``, if any."""
        holds = self._pending.get(name)
        if not holds:
            return None
        hold = holds.pop()
        if not holds:
            del self._pending[name]
        return hold

    async def _finalize_after_delay(self, id: Hashable, name: str, timestamp: float) -> None:
        """Wait out the patience window, then announce the departure."""
        try:
            await asyncio.sleep(self._options.depart_rejoin_patience_s)
        except asyncio.CancelledError:
            return
        hold = asyncio.current_task()
        self._finalize_departure(
            hold, id, name, timestamp + self._options.depart_rejoin_patience_ms
        )

    def _finalize_departure(
        self, hold: asyncio.Task | None, id: Hashable, name: str, timestamp: float
    ) -> None:
        holds = self._pending.get(name)
        if not holds or hold not in holds:
            raise RollupInvariantError(
                f"No pending departure registered for {name!r} (hub={self._hub_id!r})"
            )
        # an expiring hold removes its own token, not the newest one for the
        # name; arrivals are the only LIFO consumers
        holds.remove(hold)
        if not holds:
            del self._pending[name]

        self._record(
            "depart",
            Identity(id=id, name=name),
            timestamp,
            self._options.depart_rollup_leeway_ms,
        )

    def _record(
        self,
        kind: NotificationKind,
        user: Identity,
        timestamp: float,
        leeway_ms: float,
    ) -> None:
        """Roll ``user`` into the latest notification, or start a new one."""
        prev = self.latest()
        if prev is not None and prev.kind == kind:
            elapsed = timestamp - prev.timestamp
            if elapsed <= leeway_ms:
                prev.users.append(user)
                prev.timestamp = timestamp
                logger.debug(
                    "Rolled %s into notification #%d (hub=%s, users=%d)",
                    user.name,
                    prev.index,
                    self._hub_id,
                    len(prev.users),
                )
                self._emit("update", prev)
                return

        curr = Notification(
            index=len(self._entries), kind=kind, users=[user], timestamp=timestamp
        )
        self._entries.append(curr)
        logger.debug(
            "New %s notification #%d (hub=%s, name=%s)",
            kind,
            curr.index,
            self._hub_id,
            user.name,
        )
        self._emit("new", curr)

    def _emit(self, event: EventType, notification: Notification) -> None:
        handler = self._handlers.on_new if event == "new" else self._handlers.on_update
        if handler is None:
            return
        try:
            handler(notification)
        except Exception:
            logger.exception(
                "Notification handler failed (hub=%s, event=%s, index=%d)",
                self._hub_id,
                event,
                notification.index,
            )
