"""Pending-request table keyed by correlation id."""

from __future__ import annotations

import itertools
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterator, List, Optional, Set, Tuple

from promptgate.interaction.resolution import ResolutionSlot
from promptgate.interaction.types import (
    InteractionRequest,
    InteractionResponse,
    InteractionType,
)
from promptgate.kernel.types import short_token


class PendingState(str, Enum):
    AWAITING_PRIMARY_INPUT = "awaiting_primary_input"
    AWAITING_CUSTOM_TEXT = "awaiting_custom_text"


@dataclass
class PendingRequest:
    """In-flight request state. Only mutated while holding the table lock."""

    correlation_id: str
    request: InteractionRequest
    sequence: int
    slot: ResolutionSlot[InteractionResponse] = field(default_factory=ResolutionSlot)
    accumulator: Tuple[str, ...] = ()
    state: PendingState = PendingState.AWAITING_PRIMARY_INPUT

    @property
    def accepts_free_text(self) -> bool:
        return self.state == PendingState.AWAITING_CUSTOM_TEXT or self.request.accepts_free_text


class PendingTable:
    """Registration-ordered table; every resolution goes through `resolve()`."""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None) -> None:
        self.lock = threading.RLock()
        self._entries: "OrderedDict[str, PendingRequest]" = OrderedDict()
        self._issued: Set[str] = set()
        self._sequence = itertools.count(1)
        self._id_factory = id_factory or short_token

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __contains__(self, correlation_id: object) -> bool:
        with self.lock:
            return correlation_id in self._entries

    def register(self, request: InteractionRequest) -> PendingRequest:
        with self.lock:
            correlation_id = self._mint_id_locked()
            accumulator: Tuple[str, ...] = ()
            if request.type == InteractionType.MULTI_CHOICE:
                accumulator = request.default_values()[: max(0, request.max_selections)]
            entry = PendingRequest(
                correlation_id=correlation_id,
                request=request,
                sequence=next(self._sequence),
                accumulator=accumulator,
            )
            self._entries[correlation_id] = entry
            return entry

    def get(self, correlation_id: str) -> Optional[PendingRequest]:
        with self.lock:
            return self._entries.get(correlation_id)

    def resolve(self, correlation_id: str, response: InteractionResponse) -> Optional[PendingRequest]:
        """Remove the entry and complete it; returns None if someone else got there first."""

        with self.lock:
            entry = self._entries.pop(correlation_id, None)
        if entry is None:
            return None
        if not entry.slot.try_resolve(response):
            return None
        return entry

    def free_text_candidate(self) -> Optional[PendingRequest]:
        """Pick the one entry a bare text message belongs to.

        Entries explicitly waiting for custom text win over entries that merely
        accept it; within each group the oldest registration wins.
        """

        with self.lock:
            eligible = [entry for entry in self._entries.values() if entry.accepts_free_text]
        if not eligible:
            return None
        eligible.sort(
            key=lambda entry: (
                0 if entry.state == PendingState.AWAITING_CUSTOM_TEXT else 1,
                entry.sequence,
            )
        )
        return eligible[0]

    def correlation_ids(self) -> List[str]:
        with self.lock:
            return list(self._entries.keys())

    def __iter__(self) -> Iterator[PendingRequest]:
        with self.lock:
            return iter(list(self._entries.values()))

    def _mint_id_locked(self) -> str:
        while True:
            candidate = str(self._id_factory())
            if candidate and ":" not in candidate and candidate not in self._issued:
                self._issued.add(candidate)
                return candidate
