"""Host toolchain access objects and a standalone reference host."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Sequence, Tuple

from .loader import LoaderContext, SourceLoader, TypeResolutionError, is_assignable
from .logging import get_logger
from .models import TypeDescriptor

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .planner import RegistrationPlanner

logger = get_logger("host")

ReachabilityHandler = Callable[["DuringAnalysisAccess", TypeDescriptor], object]


@dataclass
class AfterRegistrationAccess:
    """What the host exposes once its initial root set has stabilised."""

    loader: LoaderContext
    classpath: Tuple[Path, ...]


@dataclass
class DuringAnalysisAccess:
    """Passed to reachability handlers while the host analysis runs."""

    loader: LoaderContext
    classpath: Tuple[Path, ...]


@dataclass
class BeforeAnalysisAccess:
    """What the host exposes before it starts its reachability analysis."""

    loader: LoaderContext
    classpath: Tuple[Path, ...]
    handlers: List[Tuple[ReachabilityHandler, str]] = field(default_factory=list)

    def register_subtype_reachability_handler(
        self, handler: ReachabilityHandler, root: TypeDescriptor | str
    ) -> None:
        name = root if isinstance(root, str) else root.name
        self.handlers.append((handler, name))


class StandaloneHost:
    """Drives a planner through its lifecycle without a real compiler.

    ``reachable`` stands in for the host analysis: each name is reported to
    every installed handler whose root the type is assignable to, in order
    and including repeats, the way a fixed-point analysis re-reports types.
    """

    def __init__(self, classpath: Sequence[Path | str], loader: Optional[LoaderContext] = None) -> None:
        self.classpath: Tuple[Path, ...] = tuple(Path(entry).expanduser().resolve() for entry in classpath)
        self.loader: LoaderContext = loader or SourceLoader(self.classpath)

    def run(self, planner: "RegistrationPlanner", reachable: Iterable[str] = ()) -> int:
        """Run both phases and return the number of reachability events delivered."""
        before = BeforeAnalysisAccess(loader=self.loader, classpath=self.classpath)
        planner.before_analysis(before)
        delivered = self.analyze(before.handlers, reachable)
        planner.after_registration(
            AfterRegistrationAccess(loader=self.loader, classpath=self.classpath)
        )
        return delivered

    def analyze(
        self, handlers: Sequence[Tuple[ReachabilityHandler, str]], reachable: Iterable[str]
    ) -> int:
        during = DuringAnalysisAccess(loader=self.loader, classpath=self.classpath)
        delivered = 0
        for name in reachable:
            try:
                descriptor = self.loader.resolve(name)
            except TypeResolutionError:
                logger.warning("Reachable type %s is not on the classpath", name)
                continue
            for handler, root in handlers:
                if descriptor.name != root and is_assignable(self.loader, descriptor, root):
                    handler(during, descriptor)
                    delivered += 1
        return delivered


__all__ = [
    "AfterRegistrationAccess",
    "BeforeAnalysisAccess",
    "DuringAnalysisAccess",
    "StandaloneHost",
]
