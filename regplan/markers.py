"""Marker decorators recognised by the scanner.

Both decorators are no-ops at runtime apart from tagging the object; the
planner discovers them statically from the decorator expression.
"""

from __future__ import annotations

from typing import Callable, TypeVar

T = TypeVar("T")

_MARKER_ATTRIBUTE = "__regplan_markers__"


def _tag(obj: T, marker: str) -> T:
    markers = tuple(getattr(obj, _MARKER_ATTRIBUTE, ()))
    if marker not in markers:
        setattr(obj, _MARKER_ATTRIBUTE, markers + (marker,))
    return obj


def reflective(cls: type) -> type:
    """Mark a class so that an ``AttributeMarker("regplan.markers.reflective")`` rule keeps it."""
    return _tag(cls, "regplan.markers.reflective")


def injectable(func: Callable) -> Callable:
    """Mark a method that must stay reflectively invocable."""
    return _tag(func, "regplan.markers.injectable")


def markers_of(obj: object) -> tuple:
    return tuple(getattr(obj, _MARKER_ATTRIBUTE, ()))


__all__ = ["injectable", "markers_of", "reflective"]
