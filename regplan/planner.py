"""Two-phase registration planner driven by the host toolchain."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .config import PlannerConfig
from .host import AfterRegistrationAccess, BeforeAnalysisAccess
from .loader import LoaderContext, TypeResolutionError
from .logging import phase_logger
from .manifest import ManifestWriter
from .models import PlannerPhase, RegistrationDecision, TypeDescriptor
from .providers import discover_rule_sets
from .reachability import ProcessedDecisions, SeenTypes, SerializableReachableTypeHandler
from .registry import DEFAULT_INJECTABLE_ATTRIBUTE, RegistrationSink, register_all_elements
from .rules import RuleSet
from .scanner import TypeUniverseScanner


class PhaseError(RuntimeError):
    """Raised when the host invokes lifecycle callbacks out of order."""


class RegistrationPlanner:
    """Decides which types keep reflective and serialization metadata.

    The host calls :meth:`before_analysis` once, runs its own reachability
    analysis (delivering events to the installed handler), then calls
    :meth:`after_registration` once. Subclasses may override the
    ``process_type_*`` hooks for per-type custom handling.
    """

    def __init__(
        self,
        rules: RuleSet,
        sink: RegistrationSink,
        *,
        scanner: TypeUniverseScanner | None = None,
        manifest_path: Path | str | None = None,
        injectable_attribute: str = DEFAULT_INJECTABLE_ATTRIBUTE,
    ) -> None:
        self.rules = rules
        self.sink = sink
        self.scanner = scanner or TypeUniverseScanner()
        self.manifest_path = Path(manifest_path) if manifest_path is not None else None
        self.injectable_attribute = injectable_attribute
        self.decisions = ProcessedDecisions()
        self.seen = SeenTypes()
        self.handler = SerializableReachableTypeHandler(self.seen, sink)
        self.phase: Optional[PlannerPhase] = None

    @classmethod
    def from_config(cls, config: PlannerConfig, sink: RegistrationSink) -> "RegistrationPlanner":
        """Build a planner from loaded settings plus any entry-point rule providers."""
        rules = config.rules.merge(*discover_rule_sets(config.providers.enabled))
        return cls(
            rules,
            sink,
            scanner=TypeUniverseScanner(workers=config.workers, exclude_paths=config.exclude_paths),
            manifest_path=config.manifest_path,
            injectable_attribute=config.injectable_attribute,
        )

    # ------------------------------------------------------------------
    # Host callbacks

    def before_analysis(self, access: BeforeAnalysisAccess) -> None:
        self._enter(PlannerPhase.PRE_ANALYSIS, expected=None)
        log = phase_logger("planner", PlannerPhase.PRE_ANALYSIS.value)
        loader = access.loader

        for rule in self.rules.explicit_roots:
            try:
                root = loader.resolve(rule.type)
            except TypeResolutionError:
                log.warning("Explicit root %s is not on the classpath; skipping", rule.type)
                continue
            if root.concrete:
                self.sink.register_serialization(root)
            access.register_subtype_reachability_handler(self.handler, root)

        matched = 0
        scanned = 0
        for descriptor in self.scanner.scan(loader, access.classpath):
            scanned += 1
            rule = self.rules.match_explicit_root(descriptor, loader)
            if rule is not None:
                self._record(rule.reason, descriptor)
                self.sink.register_serialization(descriptor)
                self._register(loader, descriptor)
                matched += 1
            self.process_type_before_analysis(access, descriptor)

        log.info("Scanned %d types; registered %d explicit-root matches", scanned, matched)

    def after_registration(self, access: AfterRegistrationAccess) -> None:
        self._enter(PlannerPhase.POST_REGISTRATION, expected=PlannerPhase.PRE_ANALYSIS)
        log = phase_logger("planner", PlannerPhase.POST_REGISTRATION.value)
        loader = access.loader

        matched = 0
        scanned = 0
        for descriptor in self.scanner.scan(loader, access.classpath):
            scanned += 1
            rule = self.rules.match_post_registration(descriptor, loader)
            if rule is not None:
                self._record(rule.reason, descriptor)
                self._register(loader, descriptor)
                matched += 1
            self.process_type_after_registration(access, descriptor)

        log.info(
            "Scanned %d types; registered %d attribute/supertype matches; %d decisions in total",
            scanned,
            matched,
            len(self.decisions),
        )

        if self.manifest_path is not None:
            ManifestWriter(self.manifest_path).write(self.decisions.sorted())

    # ------------------------------------------------------------------
    # Extension hooks

    def process_type_before_analysis(self, access: BeforeAnalysisAccess, descriptor: TypeDescriptor) -> None:
        """Perform custom handling of a scanned type before analysis."""

    def process_type_after_registration(
        self, access: AfterRegistrationAccess, descriptor: TypeDescriptor
    ) -> None:
        """Perform custom handling of a scanned type after registration."""

    # ------------------------------------------------------------------
    # Internal helpers

    def _enter(self, phase: PlannerPhase, *, expected: Optional[PlannerPhase]) -> None:
        if self.phase is not expected:
            current = self.phase.value if self.phase else "not started"
            raise PhaseError(f"Cannot enter {phase.value} while planner is {current}")
        self.phase = phase

    def _record(self, reason: str, descriptor: TypeDescriptor) -> None:
        if self.decisions.add(RegistrationDecision(reason=reason, type=descriptor.name)):
            phase = self.phase.value if self.phase else "-"
            phase_logger("planner", phase).debug("Registering %s (reason: %s)", descriptor.name, reason)

    def _register(self, loader: LoaderContext, descriptor: TypeDescriptor) -> None:
        register_all_elements(
            self.sink,
            loader,
            descriptor,
            injectable_attribute=self.injectable_attribute,
        )


__all__ = ["PhaseError", "RegistrationPlanner"]
