"""Audit manifest of registration decisions."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, List

from .logging import get_logger
from .models import RegistrationDecision

logger = get_logger("manifest")


class ManifestWriteError(RuntimeError):
    """Raised when the decision manifest cannot be written."""


def render_manifest(decisions: Iterable[RegistrationDecision]) -> str:
    """Return the decisions as a JSON array sorted by type name."""
    ordered = sorted(set(decisions), key=lambda item: (item.type, item.reason))
    entries: List[dict] = [decision.as_manifest_entry() for decision in ordered]
    return json.dumps(entries, indent=2, ensure_ascii=False) + "\n"


class ManifestWriter:
    """Writes the decision manifest to a configured path."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def write(self, decisions: Iterable[RegistrationDecision]) -> Path:
        content = render_manifest(decisions)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise ManifestWriteError(f"Failed to write manifest to {self.path}: {exc}") from exc
        logger.info("Wrote registration manifest to %s", self.path)
        return self.path


def load_manifest(path: Path | str) -> List[RegistrationDecision]:
    """Read a manifest previously produced by :class:`ManifestWriter`."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError("Registration manifest must be a JSON array")
    decisions: List[RegistrationDecision] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        reason = entry.get("reason")
        type_name = entry.get("type")
        if isinstance(reason, str) and isinstance(type_name, str):
            decisions.append(RegistrationDecision(reason=reason, type=type_name))
    return decisions


__all__ = ["ManifestWriteError", "ManifestWriter", "load_manifest", "render_manifest"]
