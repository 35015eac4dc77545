"""Core data models shared across regplan components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class MemberKind(str, Enum):
    """Structural member categories tracked on a type descriptor."""

    CONSTRUCTOR = "constructor"
    METHOD = "method"
    FIELD = "field"
    NESTED_TYPE = "nested_type"
    PERMITTED_SUBTYPE = "permitted_subtype"
    COMPONENT = "component"


class PlannerPhase(str, Enum):
    """Lifecycle phases driven by the host toolchain."""

    PRE_ANALYSIS = "pre_analysis"
    POST_REGISTRATION = "post_registration"


@dataclass(frozen=True)
class MemberDescriptor:
    """A single structural member declared on a type."""

    name: str
    kind: MemberKind
    declaring_type: str
    attributes: Tuple[str, ...] = ()
    arity: Optional[int] = None

    @property
    def qualified_name(self) -> str:
        return f"{self.declaring_type}.{self.name}"

    @property
    def is_no_arg_constructor(self) -> bool:
        return self.kind is MemberKind.CONSTRUCTOR and self.arity == 0

    @property
    def is_public(self) -> bool:
        return not self.name.startswith("_") or (
            self.name.startswith("__") and self.name.endswith("__")
        )


@dataclass(frozen=True)
class TypeDescriptor:
    """Resolved, immutable view of a class found on the classpath.

    Descriptors are built from source without importing the defining module,
    so ``supertypes`` and ``attributes`` hold qualified names rather than
    live objects.
    """

    name: str
    module: str
    origin: Optional[str] = None
    abstract: bool = False
    supertypes: Tuple[str, ...] = ()
    attributes: Tuple[str, ...] = ()
    members: Tuple[MemberDescriptor, ...] = field(default=(), compare=False)

    @property
    def concrete(self) -> bool:
        return not self.abstract

    def has_attribute(self, attribute: str) -> bool:
        return attribute in self.attributes

    def members_of(self, kind: MemberKind) -> Tuple[MemberDescriptor, ...]:
        return tuple(member for member in self.members if member.kind is kind)

    def constructors(self) -> Tuple[MemberDescriptor, ...]:
        declared = self.members_of(MemberKind.CONSTRUCTOR)
        if declared:
            return declared
        # No __init__/__new__ means the inherited object() constructor applies.
        return (
            MemberDescriptor(
                name="__init__",
                kind=MemberKind.CONSTRUCTOR,
                declaring_type=self.name,
                arity=0,
            ),
        )


@dataclass(frozen=True)
class RegistrationDecision:
    """Records which rule caused a type to be registered."""

    reason: str
    type: str

    def as_manifest_entry(self) -> dict:
        return {"reason": self.reason, "type": self.type}
