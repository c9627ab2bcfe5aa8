from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

import structlog

__all__ = ['Event', 'EventBus', 'LEDGER_CHANGED', 'MARKET_UPDATED', 'log_event_handler']

log = structlog.get_logger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], object]


class EventBus:
    """Synchronous publish/subscribe; handlers run in subscription order."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[object]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        for handler in list(self._subscribers[name]):
            results.append(handler(event, payload))
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


LEDGER_CHANGED = "LEDGER_CHANGED"
MARKET_UPDATED = "MARKET_UPDATED"


def log_event_handler(event: Event, payload: dict) -> dict:
    log.debug(event.name.lower(), **payload)
    return {"logged": event.name}
