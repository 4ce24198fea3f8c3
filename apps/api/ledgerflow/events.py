from __future__ import annotations

from typing import Any

from ledgerflow.context import get_log_context
from ledgerflow.core.events import event_bus

published_events: list[dict[str, Any]] = []


def publish(envelope: dict[str, Any]) -> None:
    """Stamp a voucher or ledger event with its scope and fan it out."""
    for key, value in get_log_context().items():
        if envelope.get(key) is None and value is not None:
            envelope[key] = value

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)


def events_of_type(event_type: str) -> list[dict[str, Any]]:
    return [item for item in published_events if item.get("event_type") == event_type]
