from __future__ import annotations

import logging
from pathlib import Path

import pytest

from regplan.registry import RecordingSink
from tests._fixtures.classpath_builder import ClasspathBuilder

ANIMALS = {
    "zoo/animals.py": """
        from abc import ABC


        class Animal(ABC):
            name: str


        class Dog(Animal):
            def __init__(self):
                self.name = "dog"

            def bark(self):
                return "woof"


        class Cat(Animal):
            def __reduce__(self):
                return (Cat, ())
    """,
    "zoo/geology.py": """
        class Rock:
            pass
    """,
}


@pytest.fixture
def classpath_builder(tmp_path: Path) -> ClasspathBuilder:
    """Provide a reusable classpath builder rooted at the pytest tmp_path."""
    return ClasspathBuilder(tmp_path)


@pytest.fixture
def zoo(classpath_builder: ClasspathBuilder) -> ClasspathBuilder:
    """Classpath holding the Animal/Dog/Cat/Rock scenario."""
    classpath_builder.write(ANIMALS)
    return classpath_builder


@pytest.fixture(autouse=True)
def _reset_regplan_logging():
    """Drop handlers bound to captured streams once a test finishes."""
    yield
    logger = logging.getLogger("regplan")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
