"""Tests for regplan.loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from regplan.loader import (
    SourceLoader,
    TypeGraph,
    TypeResolutionError,
    is_assignable,
    iter_supertypes,
    module_name_for,
)
from regplan.models import MemberKind, TypeDescriptor
from tests._fixtures.classpath_builder import ClasspathBuilder


def test_module_name_for_packages_and_modules(tmp_path: Path) -> None:
    assert module_name_for(tmp_path / "pkg" / "mod.py", tmp_path) == "pkg.mod"
    assert module_name_for(tmp_path / "pkg" / "__init__.py", tmp_path) == "pkg"
    with pytest.raises(TypeResolutionError):
        module_name_for(tmp_path / "__init__.py", tmp_path)


def test_resolve_builds_descriptor_without_importing(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write(
        {
            "app/models.py": """
                import missing_dependency_that_would_fail_on_import
                from dataclasses import dataclass

                from regplan.markers import injectable, reflective

                raise RuntimeError("module level code must not run")


                @reflective
                @dataclass
                class Order:
                    __permitted_subclasses__ = ("RushOrder",)

                    id: int
                    status = "new"

                    def __init__(self, id, note=None):
                        self.id = id
                        self.total = 0

                    @injectable
                    def configure(self, settings):
                        pass

                    def __getstate__(self):
                        return {}

                    class Line:
                        pass


                class RushOrder(Order):
                    pass
            """,
        }
    )

    descriptor = classpath_builder.resolve("app.models.Order")

    assert descriptor.module == "app.models"
    assert descriptor.attributes == ("regplan.markers.reflective", "dataclasses.dataclass")
    assert descriptor.concrete

    kinds = {(member.kind, member.name) for member in descriptor.members}
    assert (MemberKind.COMPONENT, "id") in kinds
    assert (MemberKind.FIELD, "status") in kinds
    assert (MemberKind.FIELD, "total") in kinds
    assert (MemberKind.CONSTRUCTOR, "__init__") in kinds
    assert (MemberKind.METHOD, "configure") in kinds
    assert (MemberKind.METHOD, "__getstate__") in kinds
    assert (MemberKind.NESTED_TYPE, "Line") in kinds
    assert (MemberKind.PERMITTED_SUBTYPE, "app.models.RushOrder") in kinds

    constructor = descriptor.constructors()[0]
    assert constructor.arity == 1
    assert not constructor.is_no_arg_constructor

    configure = next(member for member in descriptor.members if member.name == "configure")
    assert configure.attributes == ("regplan.markers.injectable",)

    nested = classpath_builder.resolve("app.models.Order.Line")
    assert nested.name == "app.models.Order.Line"


def test_resolve_qualifies_imported_and_relative_bases(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write(
        {
            "shop/base.py": """
                class Entity:
                    pass
            """,
            "shop/items/widgets.py": """
                from .. import base
                from ..base import Entity as BaseEntity
                import shop.base as sb


                class Widget(BaseEntity):
                    pass


                class Gadget(base.Entity, sb.Entity):
                    pass


                class Failure(Exception):
                    pass
            """,
        }
    )
    loader = classpath_builder.loader()

    assert loader.resolve("shop.items.widgets.Widget").supertypes == ("shop.base.Entity",)
    assert loader.resolve("shop.items.widgets.Gadget").supertypes == (
        "shop.base.Entity",
        "shop.base.Entity",
    )
    assert loader.resolve("shop.items.widgets.Failure").supertypes == ("builtins.Exception",)


def test_resolve_follows_package_reexports(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write(
        {
            "pkg/__init__.py": "from pkg.base import Animal\nfrom .loop import Loop\n",
            "pkg/base.py": "class Animal:\n    pass\n",
            "pkg/loop.py": "from pkg import Loop\n",
            "pkg/dogs.py": """
                from pkg import Animal


                class Dog(Animal):
                    pass
            """,
        }
    )
    loader = classpath_builder.loader()

    dog = loader.resolve("pkg.dogs.Dog")

    assert dog.supertypes == ("pkg.Animal",)
    assert loader.resolve("pkg.Animal").name == "pkg.base.Animal"
    assert is_assignable(loader, dog, "pkg.base.Animal")
    assert [parent.name for parent in iter_supertypes(loader, dog)] == ["pkg.base.Animal"]
    with pytest.raises(TypeResolutionError):
        loader.resolve("pkg.Loop")


def test_abstract_detection(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write(
        {
            "kinds.py": """
                import abc
                from typing import Protocol


                class Shape(abc.ABC):
                    pass


                class Drawable(Protocol):
                    def draw(self) -> None: ...


                class Solid:
                    @abc.abstractmethod
                    def volume(self):
                        raise NotImplementedError


                class Meta(metaclass=abc.ABCMeta):
                    pass


                class Square(Shape):
                    pass
            """,
        }
    )
    loader = classpath_builder.loader()

    assert loader.resolve("kinds.Shape").abstract
    assert loader.resolve("kinds.Drawable").abstract
    assert loader.resolve("kinds.Solid").abstract
    assert loader.resolve("kinds.Meta").abstract
    assert loader.resolve("kinds.Square").concrete


def test_resolve_raises_for_unknown_and_broken_types(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write({"broken.py": "class Oops(:\n", "fine.py": "class Ok:\n    pass\n"})
    loader = classpath_builder.loader()

    with pytest.raises(TypeResolutionError):
        loader.resolve("broken.Oops")
    with pytest.raises(TypeResolutionError):
        loader.resolve("fine.Missing")
    assert loader.resolve("fine.Ok").name == "fine.Ok"


def test_loader_observes_edited_modules(classpath_builder: ClasspathBuilder) -> None:
    classpath_builder.write({"late.py": "class First:\n    pass\n"})
    loader = classpath_builder.loader()
    assert loader.declared_types(classpath_builder.root / "late.py", classpath_builder.root) == [
        "late.First"
    ]

    classpath_builder.write({"late.py": "class First:\n    pass\n\n\nclass Second(First):\n    pass\n"})

    assert loader.resolve("late.Second").supertypes == ("late.First",)


def test_assignability_walks_transitive_supertypes() -> None:
    graph = TypeGraph(
        [
            TypeDescriptor(name="m.Base", module="m"),
            TypeDescriptor(name="m.Middle", module="m", supertypes=("m.Base",)),
            TypeDescriptor(name="m.Leaf", module="m", supertypes=("m.Middle", "ext.Missing")),
            TypeDescriptor(name="m.Loop", module="m", supertypes=("m.Loop2",)),
            TypeDescriptor(name="m.Loop2", module="m", supertypes=("m.Loop",)),
        ]
    )
    leaf = graph.resolve("m.Leaf")

    assert is_assignable(graph, leaf, "m.Base")
    assert is_assignable(graph, leaf, "m.Leaf")
    assert is_assignable(graph, leaf, "ext.Missing")
    assert not is_assignable(graph, graph.resolve("m.Base"), "m.Leaf")
    assert not is_assignable(graph, graph.resolve("m.Loop"), "m.Base")
    assert [parent.name for parent in iter_supertypes(graph, leaf)] == ["m.Middle", "m.Base"]


def test_single_file_classpath_root(tmp_path: Path) -> None:
    module = tmp_path / "standalone.py"
    module.write_text("class Lone:\n    pass\n", encoding="utf-8")

    loader = SourceLoader([module])

    assert loader.resolve("standalone.Lone").origin == str(module.resolve())
