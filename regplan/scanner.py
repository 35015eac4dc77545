"""Type universe scanning over classpath roots."""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set, Tuple

from .loader import LoaderContext, TypeResolutionError
from .logging import get_logger
from .models import TypeDescriptor

logger = get_logger("scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
    ".eggs",
    "build",
    "dist",
}

_MODULE_SUFFIXES = (".py",)


@dataclass
class ExcludeRule:
    """A glob exclusion parsed from the ``exclude_paths`` configuration."""

    pattern: str
    directory_only: bool
    anchored: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def build_exclude_rule(pattern: str) -> ExcludeRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return ExcludeRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        has_slash="/" in pattern,
    )


def _is_excluded(rel_path: str, is_dir: bool, rules: Sequence[ExcludeRule]) -> bool:
    return any(rule.matches(rel_path, is_dir) for rule in rules)


def _iter_modules(root: Path, rules: Sequence[ExcludeRule]) -> Iterator[Path]:
    if root.is_file():
        if root.suffix in _MODULE_SUFFIXES:
            yield root
        return

    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS or name.endswith(".egg-info"):
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _is_excluded(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if not filename.endswith(_MODULE_SUFFIXES):
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _is_excluded(rel_path, False, rules):
                continue
            yield current_dir / filename


class TypeUniverseScanner:
    """Enumerates the types declared under a set of classpath roots.

    Module files are described on a thread pool. Anything that cannot be
    parsed or resolved is skipped: the classpath is a superset of what the
    runtime will load, so broken or partial entries are expected.
    """

    def __init__(
        self,
        *,
        workers: Optional[int] = None,
        exclude_paths: Sequence[str] = (),
    ) -> None:
        self.workers = workers or os.cpu_count() or 1
        self._rules = [rule for rule in map(build_exclude_rule, exclude_paths) if rule is not None]

    def scan(self, loader: LoaderContext, classpath: Sequence[Path | str]) -> Iterator[TypeDescriptor]:
        """Return a lazy, single-use iterator of resolvable type descriptors."""
        roots = [Path(entry).expanduser().resolve() for entry in classpath]
        return self._scan(loader, roots)

    def modules(self, classpath: Sequence[Path | str]) -> List[Tuple[Path, Path]]:
        """Return ``(root, module_path)`` pairs for every module on the classpath."""
        pairs: List[Tuple[Path, Path]] = []
        for entry in classpath:
            root = Path(entry).expanduser().resolve()
            if not root.exists():
                logger.debug("Classpath root %s does not exist; skipping", root)
                continue
            base = root.parent if root.is_file() else root
            pairs.extend((base, path) for path in _iter_modules(root, self._rules))
        return pairs

    def _scan(self, loader: LoaderContext, roots: Sequence[Path]) -> Iterator[TypeDescriptor]:
        modules = self.modules(roots)
        logger.debug("Scanning %d modules with %d workers", len(modules), self.workers)
        seen: Set[str] = set()
        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="regplan-scan") as pool:
            results = pool.map(lambda pair: _describe_module(loader, *pair), modules)
            for descriptors in results:
                for descriptor in descriptors:
                    if descriptor.name in seen:
                        continue
                    seen.add(descriptor.name)
                    yield descriptor


def _describe_module(loader: LoaderContext, root: Path, path: Path) -> List[TypeDescriptor]:
    try:
        names = loader.declared_types(path, root)
    except TypeResolutionError as exc:
        logger.debug("Skipping module %s: %s", path, exc)
        return []

    descriptors: List[TypeDescriptor] = []
    for name in names:
        try:
            descriptors.append(loader.resolve(name))
        except TypeResolutionError as exc:
            logger.debug("Skipping type %s: %s", name, exc)
    return descriptors


__all__ = ["ExcludeRule", "TypeUniverseScanner", "build_exclude_rule"]
