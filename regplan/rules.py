"""Registration rules and ordered rule sets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence, Tuple, Union

from .loader import LoaderContext, is_assignable
from .models import TypeDescriptor


@dataclass(frozen=True)
class ExplicitRoot:
    """Registers the named type for serialization along with every subtype."""

    type: str

    @property
    def reason(self) -> str:
        return self.type

    def matches(self, descriptor: TypeDescriptor, loader: LoaderContext) -> bool:
        return is_assignable(loader, descriptor, self.type)


@dataclass(frozen=True)
class SupertypeRoot:
    """Registers every type assignable to the named supertype as accessible."""

    type: str

    @property
    def reason(self) -> str:
        return self.type

    def matches(self, descriptor: TypeDescriptor, loader: LoaderContext) -> bool:
        return is_assignable(loader, descriptor, self.type)


@dataclass(frozen=True)
class AttributeMarker:
    """Registers every type that carries the named marker attribute."""

    attribute: str

    @property
    def reason(self) -> str:
        return self.attribute

    def matches(self, descriptor: TypeDescriptor, loader: LoaderContext) -> bool:
        return descriptor.has_attribute(self.attribute)


RegistrationRule = Union[ExplicitRoot, SupertypeRoot, AttributeMarker]


@dataclass(frozen=True)
class RuleSet:
    """Ordered rules for both planner phases.

    Within each tuple the first matching rule wins, so declaration order is
    the tie-break.
    """

    explicit_roots: Tuple[ExplicitRoot, ...] = ()
    supertypes: Tuple[SupertypeRoot, ...] = ()
    attributes: Tuple[AttributeMarker, ...] = ()
    source: str = field(default="inline", compare=False)

    @classmethod
    def from_names(
        cls,
        *,
        explicit_roots: Iterable[str] = (),
        supertypes: Iterable[str] = (),
        attributes: Iterable[str] = (),
        source: str = "inline",
    ) -> "RuleSet":
        return cls(
            explicit_roots=_unique(ExplicitRoot(name) for name in explicit_roots),
            supertypes=_unique(SupertypeRoot(name) for name in supertypes),
            attributes=_unique(AttributeMarker(name) for name in attributes),
            source=source,
        )

    def merge(self, *others: "RuleSet") -> "RuleSet":
        """Concatenate rule sets in order, keeping the first copy of each rule."""
        sets = (self, *others)
        return RuleSet(
            explicit_roots=_unique(rule for rules in sets for rule in rules.explicit_roots),
            supertypes=_unique(rule for rules in sets for rule in rules.supertypes),
            attributes=_unique(rule for rules in sets for rule in rules.attributes),
            source="+".join(rules.source for rules in sets),
        )

    def is_empty(self) -> bool:
        return not (self.explicit_roots or self.supertypes or self.attributes)

    def match_explicit_root(
        self, descriptor: TypeDescriptor, loader: LoaderContext
    ) -> Optional[ExplicitRoot]:
        return _first_match(self.explicit_roots, descriptor, loader)

    def match_post_registration(
        self, descriptor: TypeDescriptor, loader: LoaderContext
    ) -> Optional[Union[AttributeMarker, SupertypeRoot]]:
        """Return the winning rule for the post-registration scan.

        Attribute markers always take priority over supertype roots.
        """
        attribute = _first_match(self.attributes, descriptor, loader)
        if attribute is not None:
            return attribute
        return _first_match(self.supertypes, descriptor, loader)


def _first_match(rules: Sequence[RegistrationRule], descriptor: TypeDescriptor, loader: LoaderContext):
    for rule in rules:
        if rule.matches(descriptor, loader):
            return rule
    return None


def _unique(rules: Iterable[RegistrationRule]) -> tuple:
    seen = []
    for rule in rules:
        if rule not in seen:
            seen.append(rule)
    return tuple(seen)


__all__ = [
    "AttributeMarker",
    "ExplicitRoot",
    "RegistrationRule",
    "RuleSet",
    "SupertypeRoot",
]
