"""
Event Log Module

Immutable ledger events and the append-only, hash-chained log that records
them. The log is the only history the ledger keeps: per-user views are
derived by filtering it, never stored separately.
"""

import hashlib
import json
import logging
import math
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Iterator, List, Optional


class EventType(Enum):
    """Kinds of ledger events"""
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    ACCOUNT_REAPED = "account_reaped"
    TRANSFER = "transfer"
    INTEREST = "interest"
    TAX = "tax"
    INTEREST_RATE_CHANGED = "interest_rate_changed"
    TAX_RATE_CHANGED = "tax_rate_changed"


# Rate changes are ledger-wide and never show up in a customer's history
ACCOUNT_EVENT_TYPES = frozenset({
    EventType.DEPOSIT,
    EventType.WITHDRAWAL,
    EventType.ACCOUNT_REAPED,
    EventType.TRANSFER,
    EventType.INTEREST,
    EventType.TAX,
})


def format_amount(value: float) -> str:
    """Render a float without a trailing '.0' for whole numbers"""
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class Event(ABC):
    """
    Base ledger event

    `id` is always the acting user: the account owner for balance events,
    the sender for transfers and the manager/auditor for rate changes.
    """
    id: int

    event_type: ClassVar[EventType]

    def involves(self, user_id: int) -> bool:
        """Check if this event belongs to the given user's history"""
        if self.event_type not in ACCOUNT_EVENT_TYPES:
            return False
        return self.id == user_id

    @abstractmethod
    def describe(self) -> str:
        """Human-readable line for reports and history views"""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        result = {'event_type': self.event_type.value}
        result.update(asdict(self))
        return result

    def __str__(self) -> str:
        return self.describe()


@dataclass(frozen=True)
class Deposit(Event):
    amount: float
    event_type: ClassVar[EventType] = EventType.DEPOSIT

    def describe(self) -> str:
        return f"User ID: {self.id}, Deposit - Amount: {format_amount(self.amount)}"


@dataclass(frozen=True)
class Withdrawal(Event):
    amount: float
    event_type: ClassVar[EventType] = EventType.WITHDRAWAL

    def describe(self) -> str:
        return f"User ID: {self.id}, Withdrawal - Amount: -{format_amount(self.amount)}"


@dataclass(frozen=True)
class AccountReaped(Event):
    """Account removed for dropping below the existential deposit"""
    dust: float
    event_type: ClassVar[EventType] = EventType.ACCOUNT_REAPED

    def describe(self) -> str:
        return f"User ID: {self.id}, Account Reaped - Dust: {format_amount(self.dust)}"


@dataclass(frozen=True)
class Transfer(Event):
    to_id: int
    amount: float
    event_type: ClassVar[EventType] = EventType.TRANSFER

    def involves(self, user_id: int) -> bool:
        return self.id == user_id or self.to_id == user_id

    def describe(self) -> str:
        return (f"Transfer - Amount: {format_amount(self.amount)}, "
                f"From ID: {self.id}, To ID: {self.to_id}")


@dataclass(frozen=True)
class Interest(Event):
    interest: float
    event_type: ClassVar[EventType] = EventType.INTEREST

    def describe(self) -> str:
        return f"User ID: {self.id}, Interest - Amount: {format_amount(self.interest)}"


@dataclass(frozen=True)
class Tax(Event):
    tax: float
    event_type: ClassVar[EventType] = EventType.TAX

    def describe(self) -> str:
        return f"User ID: {self.id}, Tax - Amount: -{format_amount(self.tax)}"


@dataclass(frozen=True)
class InterestRateChanged(Event):
    interest_rate: float
    event_type: ClassVar[EventType] = EventType.INTEREST_RATE_CHANGED

    def describe(self) -> str:
        return f"User ID: {self.id}, Interest Rate - Set: {format_amount(self.interest_rate)}"


@dataclass(frozen=True)
class TaxRateChanged(Event):
    tax_rate: float
    event_type: ClassVar[EventType] = EventType.TAX_RATE_CHANGED

    def describe(self) -> str:
        return f"User ID: {self.id}, Tax Rate - Set: {format_amount(self.tax_rate)}"


EVENT_CLASSES: Dict[EventType, type] = {
    cls.event_type: cls
    for cls in (Deposit, Withdrawal, AccountReaped, Transfer, Interest, Tax,
                InterestRateChanged, TaxRateChanged)
}


def event_from_dict(data: Dict[str, Any]) -> Event:
    """Create an event from its serialized dictionary"""
    fields = dict(data)
    event_type = EventType(fields.pop('event_type'))
    return EVENT_CLASSES[event_type](**fields)


def calculate_event_hash(previous_hash: str, event: Event) -> str:
    """
    SHA-256 over the previous hash and the event's canonical JSON

    Chaining each event to its predecessor makes any in-place edit or
    removal detectable by verify_integrity().
    """
    json_data = json.dumps(event.to_dict(), sort_keys=True, separators=(',', ':'))
    return hashlib.sha256((previous_hash + json_data).encode('utf-8')).hexdigest()


class EventLog:
    """
    Append-only, hash-chained event log

    Events are never edited or removed. `append` notifies subscribers at
    once; `record` defers that to a later `publish` so a multi-step change
    is only seen once it is complete. A failing subscriber is logged and
    never affects the log.
    """

    def __init__(self):
        self._events: List[Event] = []
        self._hashes: List[str] = []
        self._handlers: List[Callable[[Event], None]] = []
        self._lock = threading.RLock()
        self.logger = logging.getLogger("bank_ledger.events")

    def append(self, event: Event) -> Event:
        """
        Append an event and notify subscribers right away

        Args:
            event: Event to record

        Returns:
            The recorded event
        """
        self.record(event)
        self.publish([event])
        return event

    def record(self, event: Event) -> Event:
        """
        Append an event to the end of the log without notifying subscribers

        Callers that apply several changes in one operation record each
        event as it happens and publish them together once state is final.
        """
        with self._lock:
            previous_hash = self._hashes[-1] if self._hashes else ""
            self._events.append(event)
            self._hashes.append(calculate_event_hash(previous_hash, event))
            position = len(self._events)

        self.logger.debug(f"Recorded {event.event_type.value} event #{position}")
        return event

    def publish(self, events: List[Event]) -> None:
        """Deliver already recorded events to every subscriber, in order"""
        with self._lock:
            handlers = list(self._handlers)

        for event in events:
            for handler in handlers:
                try:
                    handler(event)
                except Exception as e:
                    # Log but don't break the main operation
                    self.logger.error(
                        f"Error in event handler {getattr(handler, '__name__', repr(handler))} "
                        f"for {event.event_type.value}: {e}"
                    )

    # Subscription

    def subscribe(self, handler: Callable[[Event], None]) -> None:
        """Call `handler(event)` after every append"""
        with self._lock:
            self._handlers.append(handler)

    def unsubscribe(self, handler: Callable[[Event], None]) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                self.logger.warning(
                    f"Handler {getattr(handler, '__name__', repr(handler))} was not subscribed"
                )

    # Queries

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self.events())

    def __getitem__(self, index):
        return self._events[index]

    def events(self) -> List[Event]:
        """Snapshot of the whole log in insertion order"""
        with self._lock:
            return list(self._events)

    def for_user(self, user_id: int) -> List[Event]:
        """All events in a user's history, in log order"""
        return [e for e in self.events() if e.involves(user_id)]

    def latest_hash(self) -> Optional[str]:
        with self._lock:
            return self._hashes[-1] if self._hashes else None

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Recompute the hash chain and compare it with the recorded hashes

        Returns:
            Dictionary with 'valid', 'total_events' and 'chain_breaks'
        """
        with self._lock:
            events = list(self._events)
            hashes = list(self._hashes)

        result = {
            'valid': True,
            'total_events': len(events),
            'chain_breaks': [],
        }

        previous_hash = ""
        for position, (event, recorded) in enumerate(zip(events, hashes)):
            expected = calculate_event_hash(previous_hash, event)
            if expected != recorded:
                result['valid'] = False
                result['chain_breaks'].append({
                    'position': position,
                    'event_type': event.event_type.value,
                    'expected_hash': expected,
                    'actual_hash': recorded,
                })
            previous_hash = recorded

        if len(events) != len(hashes):
            result['valid'] = False

        return result
