"""Rule set discovery from installed distributions."""

from __future__ import annotations

from importlib import metadata
from typing import Iterable, List, Sequence, Set

from .logging import get_logger
from .rules import RuleSet

_ENTRY_POINT_GROUP = "regplan.rules"

logger = get_logger("providers")


def discover_rule_sets(enabled: Sequence[str] | None = None) -> List[RuleSet]:
    """Return rule sets contributed through entry points, honoring enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    rule_sets: List[RuleSet] = []
    seen: Set[str] = set()

    for entry in _iter_entry_points():
        key = entry.name.lower()
        if enabled_set is not None and key not in enabled_set:
            continue
        if key in seen:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # noqa: BLE001 - plugin import errors vary
            raise RuntimeError(f"Failed to load rule provider '{entry.name}': {exc}") from exc
        rule_set = _coerce_rule_set(entry.name, loaded)
        logger.debug(
            "Loaded rule provider %s (%d roots, %d supertypes, %d attributes)",
            entry.name,
            len(rule_set.explicit_roots),
            len(rule_set.supertypes),
            len(rule_set.attributes),
        )
        rule_sets.append(rule_set)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown rule providers requested: {missing}")

    return rule_sets


def _coerce_rule_set(name: str, obj: object) -> RuleSet:
    if isinstance(obj, RuleSet):
        return obj
    if callable(obj):
        instance = obj()
        if isinstance(instance, RuleSet):
            return instance
    raise TypeError(f"Rule provider '{name}' must be a RuleSet or a factory returning one")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = ["discover_rule_sets"]
