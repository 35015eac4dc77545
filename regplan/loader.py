"""Loader contexts that resolve qualified type names into descriptors.

The source loader reads Python modules from the classpath roots with
:mod:`ast` and never imports them, so class bodies, decorators and module
level code are not executed and missing third-party packages cannot break
resolution.
"""

from __future__ import annotations

import ast
import builtins
import threading
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Set, Tuple

from .logging import get_logger
from .models import MemberDescriptor, MemberKind, TypeDescriptor

logger = get_logger("loader")

_ABSTRACT_BASES = {
    "abc.ABC",
    "typing.Protocol",
    "typing_extensions.Protocol",
}
_ABSTRACT_METACLASSES = {"abc.ABCMeta"}
_ABSTRACT_DECORATORS = {
    "abc.abstractmethod",
    "abc.abstractproperty",
    "abc.abstractclassmethod",
    "abc.abstractstaticmethod",
}
_STATIC_DECORATORS = {"builtins.staticmethod"}
_CONSTRUCTOR_NAMES = {"__init__", "__new__"}
_PERMITTED_ATTRIBUTE = "__permitted_subclasses__"
_BUILTIN_NAMES = frozenset(dir(builtins))


class TypeResolutionError(LookupError):
    """Raised when a type name cannot be resolved to a descriptor."""


class LoaderContext(Protocol):
    """Contract for objects that turn qualified names into descriptors."""

    def resolve(self, name: str) -> TypeDescriptor:
        """Return the descriptor for ``name`` or raise :class:`TypeResolutionError`."""

    def declared_types(self, path: Path, root: Path) -> List[str]:
        """Return the qualified names of the types declared by ``path``."""


def module_name_for(path: Path, root: Path) -> str:
    """Return the dotted module name of ``path`` relative to classpath ``root``."""
    relative = path.relative_to(root).with_suffix("")
    parts = list(relative.parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    if not parts:
        raise TypeResolutionError(f"{path} is a top-level package initialiser without a name")
    return ".".join(parts)


def is_assignable(loader: LoaderContext, descriptor: TypeDescriptor, target: str) -> bool:
    """Return True when ``descriptor`` is ``target`` or (transitively) inherits from it.

    Supertypes that cannot be resolved end the walk along that branch, but
    their names still take part in the comparison.
    """
    if descriptor.name == target:
        return True
    seen: Set[str] = {descriptor.name}
    pending: List[str] = list(descriptor.supertypes)
    while pending:
        name = pending.pop()
        if name == target:
            return True
        if name in seen:
            continue
        seen.add(name)
        try:
            parent = loader.resolve(name)
        except TypeResolutionError:
            continue
        # Re-exported names resolve to the defining module.
        if parent.name == target:
            return True
        seen.add(parent.name)
        pending.extend(parent.supertypes)
    return False


def iter_supertypes(loader: LoaderContext, descriptor: TypeDescriptor) -> Iterator[TypeDescriptor]:
    """Yield every resolvable ancestor of ``descriptor`` in breadth-first order."""
    seen: Set[str] = {descriptor.name}
    queue: List[str] = list(descriptor.supertypes)
    while queue:
        name = queue.pop(0)
        if name in seen:
            continue
        seen.add(name)
        try:
            parent = loader.resolve(name)
        except TypeResolutionError:
            continue
        if parent.name != name:
            if parent.name in seen:
                continue
            seen.add(parent.name)
        yield parent
        queue.extend(parent.supertypes)


class TypeGraph:
    """In-memory loader over a fixed set of descriptors."""

    def __init__(self, descriptors: Iterable[TypeDescriptor] = ()) -> None:
        self._types: Dict[str, TypeDescriptor] = {}
        for descriptor in descriptors:
            self.add(descriptor)

    def add(self, descriptor: TypeDescriptor) -> None:
        self._types[descriptor.name] = descriptor

    def resolve(self, name: str) -> TypeDescriptor:
        try:
            return self._types[name]
        except KeyError:
            raise TypeResolutionError(f"Unknown type: {name}") from None

    def declared_types(self, path: Path, root: Path) -> List[str]:
        origin = str(path)
        return [name for name, descriptor in self._types.items() if descriptor.origin == origin]

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)


class _ParsedModule:
    """Parsed module source plus the import table used for name resolution."""

    def __init__(self, name: str, path: Path, tree: ast.Module, is_package: bool) -> None:
        self.name = name
        self.path = path
        self.tree = tree
        self.package = name if is_package else name.rpartition(".")[0]
        self.imports: Dict[str, str] = {}
        self.classes: Dict[str, ast.ClassDef] = {}
        self._index()

    def _index(self) -> None:
        for node in self.tree.body:
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.asname:
                        self.imports[alias.asname] = alias.name
                    else:
                        head = alias.name.split(".", 1)[0]
                        self.imports[head] = head
            elif isinstance(node, ast.ImportFrom):
                base = self._absolute_module(node.module, node.level)
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    target = f"{base}.{alias.name}" if base else alias.name
                    self.imports[alias.asname or alias.name] = target
            elif isinstance(node, ast.ClassDef):
                self._index_class(node, prefix="")

    def _index_class(self, node: ast.ClassDef, prefix: str) -> None:
        local = f"{prefix}{node.name}"
        self.classes[local] = node
        for child in node.body:
            if isinstance(child, ast.ClassDef):
                self._index_class(child, prefix=f"{local}.")

    def _absolute_module(self, module: Optional[str], level: int) -> str:
        if level == 0:
            return module or ""
        parts = self.package.split(".") if self.package else []
        if level > 1:
            parts = parts[: len(parts) - (level - 1)] if level - 1 <= len(parts) else []
        base = ".".join(parts)
        if module:
            return f"{base}.{module}" if base else module
        return base

    def qualify(self, expr: ast.expr) -> Optional[str]:
        """Return the qualified name an expression refers to, if it is a name."""
        if isinstance(expr, ast.Call):
            return self.qualify(expr.func)
        if isinstance(expr, ast.Subscript):
            return self.qualify(expr.value)
        if isinstance(expr, ast.Attribute):
            owner = self.qualify(expr.value)
            return f"{owner}.{expr.attr}" if owner else None
        if isinstance(expr, ast.Name):
            if expr.id in self.imports:
                return self.imports[expr.id]
            if expr.id in self.classes or any(
                isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Assign))
                and _defines(node, expr.id)
                for node in self.tree.body
            ):
                return f"{self.name}.{expr.id}"
            if expr.id in _BUILTIN_NAMES:
                return f"builtins.{expr.id}"
            return f"{self.name}.{expr.id}"
        if isinstance(expr, ast.Constant) and isinstance(expr.value, str):
            # Forward references such as ``__permitted_subclasses__ = ("Dog",)``.
            if "." in expr.value:
                return expr.value
            return self.qualify(ast.Name(id=expr.value))
        return None


def _defines(node: ast.stmt, name: str) -> bool:
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        return node.name == name
    if isinstance(node, ast.Assign):
        return any(isinstance(target, ast.Name) and target.id == name for target in node.targets)
    return False


def _required_arity(node: ast.FunctionDef | ast.AsyncFunctionDef, *, bound: bool) -> int:
    args = node.args
    positional = list(args.posonlyargs) + list(args.args)
    if bound and positional:
        positional = positional[1:]
    required = len(positional) - len(args.defaults)
    required = max(required, 0)
    required += sum(1 for default in args.kw_defaults if default is None)
    return required


class SourceLoader:
    """Resolves classes declared in Python sources under the classpath roots.

    Parsed modules are cached by path, size and modification time so that a
    second scan reuses the trees of unchanged files while still observing
    files added or edited between phases.
    """

    def __init__(self, classpath: Sequence[Path | str]) -> None:
        self.classpath: Tuple[Path, ...] = tuple(Path(entry).expanduser().resolve() for entry in classpath)
        self._cache: Dict[Path, Tuple[Tuple[int, int], _ParsedModule]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # LoaderContext

    def resolve(self, name: str) -> TypeDescriptor:
        return self._resolve(name, frozenset())

    def declared_types(self, path: Path, root: Path) -> List[str]:
        module = self._parse(path, root)
        return [f"{module.name}.{local}" for local in module.classes]

    # ------------------------------------------------------------------
    # Internal helpers

    def _resolve(self, name: str, visiting: frozenset) -> TypeDescriptor:
        if name in visiting:
            raise TypeResolutionError(f"Circular re-export while resolving {name}")
        parts = name.split(".")
        for split in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:split])
            local_name = ".".join(parts[split:])
            module = self._find_module(module_name)
            if module is None:
                continue
            node = module.classes.get(local_name)
            if node is not None:
                return self._describe(module, local_name, node)
            # A package that re-exports a class defined elsewhere.
            head, _, rest = local_name.partition(".")
            target = module.imports.get(head)
            if target is not None and target != name:
                return self._resolve(f"{target}.{rest}" if rest else target, visiting | {name})
        raise TypeResolutionError(f"Type not found on classpath: {name}")

    def _find_module(self, module_name: str) -> Optional[_ParsedModule]:
        relative = Path(*module_name.split("."))
        for root in self.classpath:
            if root.is_file():
                if root.suffix == ".py" and root.stem == module_name:
                    return self._parse_or_none(root, root.parent)
                continue
            for candidate in (root / relative.with_suffix(".py"), root / relative / "__init__.py"):
                if candidate.is_file():
                    return self._parse_or_none(candidate, root)
        return None

    def _parse_or_none(self, path: Path, root: Path) -> Optional[_ParsedModule]:
        try:
            return self._parse(path, root)
        except TypeResolutionError as exc:
            logger.debug("Skipping unloadable module %s: %s", path, exc)
            return None

    def _parse(self, path: Path, root: Path) -> _ParsedModule:
        try:
            stat_result = path.stat()
        except OSError as exc:
            raise TypeResolutionError(f"Cannot stat {path}: {exc}") from exc
        key = (stat_result.st_size, stat_result.st_mtime_ns)
        with self._lock:
            cached = self._cache.get(path)
        if cached is not None and cached[0] == key:
            return cached[1]

        name = module_name_for(path, root)
        try:
            source = path.read_text(encoding="utf-8")
            tree = ast.parse(source, filename=str(path))
        except (OSError, UnicodeDecodeError, SyntaxError, ValueError) as exc:
            raise TypeResolutionError(f"Cannot parse {path}: {exc}") from exc

        module = _ParsedModule(name, path, tree, is_package=path.name == "__init__.py")
        with self._lock:
            self._cache[path] = (key, module)
        return module

    def _describe(self, module: _ParsedModule, local_name: str, node: ast.ClassDef) -> TypeDescriptor:
        name = f"{module.name}.{local_name}"
        supertypes = tuple(
            qualified for qualified in (module.qualify(base) for base in node.bases) if qualified
        )
        attributes = tuple(
            qualified
            for qualified in (module.qualify(decorator) for decorator in node.decorator_list)
            if qualified
        )
        metaclass = next(
            (module.qualify(keyword.value) for keyword in node.keywords if keyword.arg == "metaclass"),
            None,
        )
        members = tuple(_MemberCollector(module, name).collect(node))
        abstract = (
            any(base in _ABSTRACT_BASES for base in supertypes)
            or metaclass in _ABSTRACT_METACLASSES
            or any(set(member.attributes) & _ABSTRACT_DECORATORS for member in members)
        )
        return TypeDescriptor(
            name=name,
            module=module.name,
            origin=str(module.path),
            abstract=abstract,
            supertypes=supertypes,
            attributes=attributes,
            members=members,
        )


class _MemberCollector:
    def __init__(self, module: _ParsedModule, declaring_type: str) -> None:
        self._module = module
        self._declaring_type = declaring_type
        self._seen: Set[Tuple[MemberKind, str]] = set()
        self._members: List[MemberDescriptor] = []

    def collect(self, node: ast.ClassDef) -> List[MemberDescriptor]:
        for child in node.body:
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self._add_function(child)
            elif isinstance(child, ast.ClassDef):
                self._add(child.name, MemberKind.NESTED_TYPE, self._decorators(child.decorator_list))
            elif isinstance(child, ast.AnnAssign) and isinstance(child.target, ast.Name):
                self._add(child.target.id, MemberKind.COMPONENT)
            elif isinstance(child, ast.Assign):
                self._add_assignment(child)
        return self._members

    def _add(
        self,
        name: str,
        kind: MemberKind,
        attributes: Tuple[str, ...] = (),
        arity: Optional[int] = None,
    ) -> None:
        key = (kind, name)
        if key in self._seen:
            return
        self._seen.add(key)
        self._members.append(
            MemberDescriptor(
                name=name,
                kind=kind,
                declaring_type=self._declaring_type,
                attributes=attributes,
                arity=arity,
            )
        )

    def _decorators(self, decorators: Iterable[ast.expr]) -> Tuple[str, ...]:
        return tuple(
            qualified for qualified in (self._module.qualify(item) for item in decorators) if qualified
        )

    def _add_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        attributes = self._decorators(node.decorator_list)
        bound = not (set(attributes) & _STATIC_DECORATORS)
        kind = MemberKind.CONSTRUCTOR if node.name in _CONSTRUCTOR_NAMES else MemberKind.METHOD
        self._add(node.name, kind, attributes, _required_arity(node, bound=bound))
        if node.name == "__init__":
            self._add_instance_fields(node)

    def _add_instance_fields(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        if not node.args.args:
            return
        receiver = node.args.args[0].arg
        for statement in ast.walk(node):
            targets: List[ast.expr] = []
            if isinstance(statement, ast.Assign):
                targets = list(statement.targets)
            elif isinstance(statement, (ast.AnnAssign, ast.AugAssign)):
                targets = [statement.target]
            for target in targets:
                if (
                    isinstance(target, ast.Attribute)
                    and isinstance(target.value, ast.Name)
                    and target.value.id == receiver
                ):
                    self._add(target.attr, MemberKind.FIELD)

    def _add_assignment(self, node: ast.Assign) -> None:
        for target in node.targets:
            if not isinstance(target, ast.Name):
                continue
            if target.id == _PERMITTED_ATTRIBUTE:
                for element in _elements(node.value):
                    qualified = self._module.qualify(element)
                    if qualified:
                        self._add(qualified, MemberKind.PERMITTED_SUBTYPE)
            elif target.id == "__slots__":
                for element in _elements(node.value):
                    if isinstance(element, ast.Constant) and isinstance(element.value, str):
                        self._add(element.value, MemberKind.FIELD)
            else:
                self._add(target.id, MemberKind.FIELD)


def _elements(value: ast.expr) -> List[ast.expr]:
    if isinstance(value, (ast.Tuple, ast.List, ast.Set)):
        return list(value.elts)
    return [value]


__all__ = [
    "LoaderContext",
    "SourceLoader",
    "TypeGraph",
    "TypeResolutionError",
    "is_assignable",
    "iter_supertypes",
    "module_name_for",
]
