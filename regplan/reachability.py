"""Shared registration state and the reachability-triggered handler."""

from __future__ import annotations

import threading
from typing import Any, Iterator, List, Set

from .logging import get_logger
from .models import RegistrationDecision, TypeDescriptor
from .registry import RegistrationSink

logger = get_logger("reachability")


class SeenTypes:
    """Type names already handled during one compilation run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: Set[str] = set()

    def add(self, name: str) -> bool:
        """Insert ``name``; return True only for the caller that inserted it first."""
        with self._lock:
            if name in self._names:
                return False
            self._names.add(name)
            return True

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._names

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)


class ProcessedDecisions:
    """Set of registration decisions recorded across both phases."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._decisions: Set[RegistrationDecision] = set()

    def add(self, decision: RegistrationDecision) -> bool:
        with self._lock:
            if decision in self._decisions:
                return False
            self._decisions.add(decision)
            return True

    def sorted(self) -> List[RegistrationDecision]:
        with self._lock:
            return sorted(self._decisions, key=lambda item: (item.type, item.reason))

    def __contains__(self, decision: object) -> bool:
        with self._lock:
            return decision in self._decisions

    def __iter__(self) -> Iterator[RegistrationDecision]:
        return iter(self.sorted())

    def __len__(self) -> int:
        with self._lock:
            return len(self._decisions)


class SerializableReachableTypeHandler:
    """Registers each newly reachable subtype for serialization exactly once.

    The host may call the handler from several analysis threads and for the
    same type many times while it iterates to a fixed point; every call after
    the first for a given type is a no-op.
    """

    def __init__(self, seen: SeenTypes, sink: RegistrationSink) -> None:
        self.seen = seen
        self._sink = sink

    def __call__(self, access: Any, descriptor: TypeDescriptor) -> bool:
        return self.on_reachable(descriptor)

    def on_reachable(self, descriptor: TypeDescriptor) -> bool:
        if not self.seen.add(descriptor.name):
            return False
        logger.debug("Type %s became reachable; registering for serialization", descriptor.name)
        self._sink.register_serialization(descriptor)
        return True


__all__ = ["ProcessedDecisions", "SeenTypes", "SerializableReachableTypeHandler"]
