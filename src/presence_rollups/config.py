"""Rollup timing options."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

_DEFAULT_ARRIVE_LEEWAY_MS = 60 * 1000
_DEFAULT_DEPART_LEEWAY_MS = 60 * 1000
_DEFAULT_REJOIN_PATIENCE_MS = 15 * 1000


class RollupOptions(BaseModel):
    """Durations controlling how presence events are rolled up.

    All values are in milliseconds, matching the timestamps passed to the
    engine. Instances are immutable; build a new one to change timing.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    arrive_rollup_leeway_ms: float = Field(
        default=_DEFAULT_ARRIVE_LEEWAY_MS,
        ge=0,
        description="Max gap between arrivals rolled into one notification.",
    )
    depart_rollup_leeway_ms: float = Field(
        default=_DEFAULT_DEPART_LEEWAY_MS,
        ge=0,
        description="Max gap between departures rolled into one notification.",
    )
    depart_rejoin_patience_ms: float = Field(
        default=_DEFAULT_REJOIN_PATIENCE_MS,
        ge=0,
        description="How long to wait for a rejoin before announcing a departure.",
    )

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> RollupOptions:
        """Build options from a partial mapping, defaulting missing keys."""
        return cls.model_validate(dict(mapping or {}))

    @property
    def depart_rejoin_patience_s(self) -> float:
        return self.depart_rejoin_patience_ms / 1000
