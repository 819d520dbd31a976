"""Typed views of transaction events.

Raw node events are ``{"type": ..., "data": {...}}`` maps. They are parsed
once here into ``SwapEvent`` or ``OtherEvent`` so business logic never
handles untyped payloads.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

logger = logging.getLogger(__name__)

SWAP_EVENT_MARKER = "::liquidity_pool::SwapEvent<"


@dataclass(frozen=True)
class SwapEvent:
    """Pool swap event. Exactly one of x_out / y_out is nonzero."""

    type: str
    x_in: int
    x_out: int
    y_in: int
    y_out: int

    @property
    def output(self) -> int:
        """Output amount for whichever side was bought."""
        return self.x_out if self.x_out else self.y_out

    def involves(self, coin_a: str, coin_b: str) -> bool:
        """Whether both coins appear in the pool's type parameters."""
        return coin_a in self.type and coin_b in self.type


@dataclass(frozen=True)
class OtherEvent:
    """Any event the core does not interpret."""

    type: str
    data: dict = field(default_factory=dict)


ChainEvent = Union[SwapEvent, OtherEvent]


def _as_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_event(raw: dict) -> ChainEvent:
    """Parse one raw event."""
    event_type = raw.get("type", "")
    data = raw.get("data") or {}

    if SWAP_EVENT_MARKER in event_type:
        amounts = [_as_int(data.get(k)) for k in ("x_in", "x_out", "y_in", "y_out")]
        if all(a is not None for a in amounts):
            x_in, x_out, y_in, y_out = amounts
            return SwapEvent(type=event_type, x_in=x_in, x_out=x_out, y_in=y_in, y_out=y_out)
        logger.warning(f"Malformed swap event payload: {data}")

    return OtherEvent(type=event_type, data=data)


def parse_events(raw_events: Optional[Iterable[dict]]) -> tuple[ChainEvent, ...]:
    """Parse a transaction's event list."""
    return tuple(parse_event(e) for e in raw_events or ())
