"""Registration sinks and the bulk registration primitive."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Dict, Iterator, List, Protocol, Set, Tuple

from .loader import LoaderContext, iter_supertypes
from .logging import get_logger
from .models import MemberDescriptor, MemberKind, TypeDescriptor

logger = get_logger("registry")

DEFAULT_INJECTABLE_ATTRIBUTE = "regplan.markers.injectable"

SERIALIZATION_HOOKS = frozenset(
    {
        "__reduce__",
        "__reduce_ex__",
        "__getstate__",
        "__setstate__",
        "__getnewargs__",
        "__getnewargs_ex__",
    }
)

# Member categories registered in bulk for every matched type.
BULK_CATEGORIES: Tuple[str, ...] = (
    "declared_constructors",
    "constructors",
    "declared_methods",
    "methods",
    "declared_fields",
    "fields",
    "declared_classes",
    "classes",
    "nest_members",
    "permitted_subclasses",
    "components",
)


class MemberResolutionError(LookupError):
    """Raised by a sink when an individual member cannot be registered."""


class RegistrationSink(Protocol):
    """Host-side registry that preserves metadata in the built artifact."""

    def register_type(self, descriptor: TypeDescriptor) -> None:
        ...

    def register_category(self, descriptor: TypeDescriptor, category: str) -> None:
        ...

    def register_member(self, member: MemberDescriptor, *, invocable: bool = False) -> None:
        ...

    def register_serialization(self, descriptor: TypeDescriptor) -> None:
        ...


class RecordingSink:
    """Thread-safe in-memory sink; every registration is stored as a set entry."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.types: Set[str] = set()
        self.categories: Set[Tuple[str, str]] = set()
        self.members: Set[str] = set()
        self.invocable: Set[str] = set()
        self.serialization: Set[str] = set()

    def register_type(self, descriptor: TypeDescriptor) -> None:
        with self._lock:
            self.types.add(descriptor.name)

    def register_category(self, descriptor: TypeDescriptor, category: str) -> None:
        with self._lock:
            self.categories.add((descriptor.name, category))

    def register_member(self, member: MemberDescriptor, *, invocable: bool = False) -> None:
        with self._lock:
            self.members.add(member.qualified_name)
            if invocable:
                self.invocable.add(member.qualified_name)

    def register_serialization(self, descriptor: TypeDescriptor) -> None:
        with self._lock:
            self.serialization.add(descriptor.name)

    def snapshot(self) -> Dict[str, List[str]]:
        with self._lock:
            return {
                "types": sorted(self.types),
                "categories": sorted(f"{name}:{category}" for name, category in self.categories),
                "members": sorted(self.members),
                "invocable": sorted(self.invocable),
                "serialization": sorted(self.serialization),
            }

    def dump(self, path: Path) -> None:
        """Write the sorted registrations to ``path`` as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.snapshot(), indent=2) + "\n", encoding="utf-8")


def _reachable_members(loader: LoaderContext, descriptor: TypeDescriptor) -> Iterator[MemberDescriptor]:
    yield from descriptor.members
    overridden = {(member.kind, member.name) for member in descriptor.members}
    for ancestor in iter_supertypes(loader, descriptor):
        for member in ancestor.members:
            key = (member.kind, member.name)
            if key in overridden or not member.is_public:
                continue
            overridden.add(key)
            yield member


def _needs_invocation(member: MemberDescriptor, injectable_attribute: str) -> bool:
    if member.kind is MemberKind.CONSTRUCTOR:
        return member.is_no_arg_constructor
    if member.kind is MemberKind.METHOD:
        return injectable_attribute in member.attributes or member.name in SERIALIZATION_HOOKS
    return False


def register_all_elements(
    sink: RegistrationSink,
    loader: LoaderContext,
    descriptor: TypeDescriptor,
    *,
    injectable_attribute: str = DEFAULT_INJECTABLE_ATTRIBUTE,
) -> int:
    """Register ``descriptor`` with every structurally reachable member.

    Declared members and public inherited members are registered one by one;
    no-argument constructors plus injectable and serialization-hook methods
    are registered again as invocable. A member the sink rejects is skipped
    without aborting the rest. Returns the number of members registered.
    """
    sink.register_type(descriptor)
    for category in BULK_CATEGORIES:
        sink.register_category(descriptor, category)

    registered = 0
    for member in _reachable_members(loader, descriptor):
        try:
            sink.register_member(member)
        except MemberResolutionError as exc:
            logger.debug("Skipping member %s: %s", member.qualified_name, exc)
            continue
        registered += 1

    for member in descriptor.constructors() + descriptor.members_of(MemberKind.METHOD):
        if not _needs_invocation(member, injectable_attribute):
            continue
        try:
            sink.register_member(member, invocable=True)
        except MemberResolutionError as exc:
            logger.debug("Skipping invocable member %s: %s", member.qualified_name, exc)
    return registered


__all__ = [
    "BULK_CATEGORIES",
    "DEFAULT_INJECTABLE_ATTRIBUTE",
    "MemberResolutionError",
    "RecordingSink",
    "RegistrationSink",
    "SERIALIZATION_HOOKS",
    "register_all_elements",
]
