"""Ahead-of-time registration planning for reflective and serialization metadata."""

from .host import AfterRegistrationAccess, BeforeAnalysisAccess, DuringAnalysisAccess, StandaloneHost
from .loader import SourceLoader, TypeGraph, TypeResolutionError
from .manifest import ManifestWriteError, ManifestWriter
from .models import MemberDescriptor, MemberKind, PlannerPhase, RegistrationDecision, TypeDescriptor
from .planner import PhaseError, RegistrationPlanner
from .registry import MemberResolutionError, RecordingSink, register_all_elements
from .rules import AttributeMarker, ExplicitRoot, RuleSet, SupertypeRoot
from .scanner import TypeUniverseScanner

__all__ = [
    "AfterRegistrationAccess",
    "AttributeMarker",
    "BeforeAnalysisAccess",
    "DuringAnalysisAccess",
    "ExplicitRoot",
    "ManifestWriteError",
    "ManifestWriter",
    "MemberDescriptor",
    "MemberKind",
    "MemberResolutionError",
    "PhaseError",
    "PlannerPhase",
    "RecordingSink",
    "RegistrationDecision",
    "RegistrationPlanner",
    "RuleSet",
    "SourceLoader",
    "StandaloneHost",
    "SupertypeRoot",
    "TypeDescriptor",
    "TypeGraph",
    "TypeResolutionError",
    "TypeUniverseScanner",
    "register_all_elements",
]
