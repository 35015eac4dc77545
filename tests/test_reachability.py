"""Tests for the reachability handler and shared registration state."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

from regplan.models import RegistrationDecision, TypeDescriptor
from regplan.reachability import ProcessedDecisions, SeenTypes, SerializableReachableTypeHandler
from regplan.registry import RecordingSink


class CountingSink(RecordingSink):
    def __init__(self) -> None:
        super().__init__()
        self.calls = 0
        self._count_lock = threading.Lock()

    def register_serialization(self, descriptor: TypeDescriptor) -> None:
        with self._count_lock:
            self.calls += 1
        super().register_serialization(descriptor)


def test_handler_registers_on_first_invocation_only() -> None:
    sink = CountingSink()
    handler = SerializableReachableTypeHandler(SeenTypes(), sink)
    dog = TypeDescriptor(name="zoo.Dog", module="zoo")

    assert handler(None, dog) is True
    assert handler(None, dog) is False
    assert handler.on_reachable(dog) is False

    assert sink.calls == 1
    assert sink.serialization == {"zoo.Dog"}


def test_handler_is_safe_under_concurrent_invocation() -> None:
    sink = CountingSink()
    handler = SerializableReachableTypeHandler(SeenTypes(), sink)
    types = [TypeDescriptor(name=f"zoo.T{index % 10}", module="zoo") for index in range(500)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(handler.on_reachable, types))

    assert results.count(True) == 10
    assert sink.calls == 10


def test_handlers_with_separate_seen_sets_are_isolated() -> None:
    first_sink = CountingSink()
    second_sink = CountingSink()
    cat = TypeDescriptor(name="zoo.Cat", module="zoo")

    SerializableReachableTypeHandler(SeenTypes(), first_sink).on_reachable(cat)
    SerializableReachableTypeHandler(SeenTypes(), second_sink).on_reachable(cat)

    assert first_sink.calls == 1
    assert second_sink.calls == 1


def test_processed_decisions_reject_duplicate_pairs() -> None:
    decisions = ProcessedDecisions()

    assert decisions.add(RegistrationDecision("zoo.Animal", "zoo.Dog"))
    assert not decisions.add(RegistrationDecision("zoo.Animal", "zoo.Dog"))
    assert decisions.add(RegistrationDecision("zoo.portable", "zoo.Dog"))

    assert len(decisions) == 2
    assert [decision.reason for decision in decisions] == ["zoo.Animal", "zoo.portable"]


def test_processed_decisions_concurrent_insert() -> None:
    decisions = ProcessedDecisions()
    pairs = [RegistrationDecision("r", f"t{index % 25}") for index in range(1000)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        inserted = list(pool.map(decisions.add, pairs))

    assert inserted.count(True) == 25
    assert len(decisions) == 25
