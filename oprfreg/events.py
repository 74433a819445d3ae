"""
Notification events.

Every successful state transition emits one or more events.  Off-chain
peers follow the event stream, in order, to learn when to compute and
submit their next contribution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from .curve import Scalar

logger = logging.getLogger("oprfreg.events")


class Event:
    """Marker base class for registry events."""


@dataclass(frozen=True)
class SecretGenRound1(Event):
    key_id: int
    threshold: int


@dataclass(frozen=True)
class SecretGenRound2(Event):
    key_id: int
    epoch: int


@dataclass(frozen=True)
class SecretGenRound3(Event):
    key_id: int


@dataclass(frozen=True)
class SecretGenFinalize(Event):
    key_id: int
    epoch: int


@dataclass(frozen=True)
class ReshareRound1(Event):
    key_id: int
    threshold: int
    epoch: int


@dataclass(frozen=True)
class ReshareRound3(Event):
    key_id: int
    lagrange: Tuple[Scalar, ...]
    epoch: int


@dataclass(frozen=True)
class KeyGenAbort(Event):
    key_id: int


@dataclass(frozen=True)
class KeyDeletion(Event):
    key_id: int


@dataclass(frozen=True)
class NotEnoughProducers(Event):
    key_id: int


@dataclass(frozen=True)
class KeyGenAdminRegistered(Event):
    admin: str


@dataclass(frozen=True)
class KeyGenAdminRevoked(Event):
    admin: str


@dataclass(frozen=True)
class PeersRegistered(Event):
    addresses: Tuple[str, ...]


@dataclass(frozen=True)
class LoggedEvent:
    seq: int
    event: Event


Listener = Callable[[LoggedEvent], None]


@dataclass
class EventLog:
    """Ordered, sequence-numbered event history with fan-out."""

    entries: List[LoggedEvent] = field(default_factory=list)
    _listeners: List[Listener] = field(default_factory=list, repr=False)

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def publish(self, events: List[Event]) -> None:
        for ev in events:
            entry = LoggedEvent(seq=len(self.entries), event=ev)
            self.entries.append(entry)
            logger.info(f"event #{entry.seq}: {ev}")
            for listener in self._listeners:
                try:
                    listener(entry)
                except Exception:
                    # the transition is already committed
                    logger.exception(f"listener {listener!r} failed on event #{entry.seq}")

    def events(self) -> List[Event]:
        return [e.event for e in self.entries]

    def of_type(self, kind: type) -> List[Event]:
        return [e.event for e in self.entries if isinstance(e.event, kind)]

    def __len__(self) -> int:
        return len(self.entries)
