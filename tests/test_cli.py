"""CLI behaviour tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from regplan.cli import _build_parser, main
from regplan.config import MANIFEST_PATH_ENV
from tests._fixtures.classpath_builder import ClasspathBuilder


def _configure(project: Path, body: str) -> None:
    (project / ".regplan.yml").write_text(body, encoding="utf-8")


def test_cli_accepts_verbose_before_and_after_command() -> None:
    parser = _build_parser()
    assert parser.parse_args(["--verbose", "plan"]).verbose is True
    assert parser.parse_args(["plan", "--verbose"]).verbose is True


def test_cli_collects_repeated_reachable_flags() -> None:
    args = _build_parser().parse_args(["plan", "proj", "--reachable", "a.A", "--reachable", "b.B"])
    assert args.command == "plan"
    assert args.path == "proj"
    assert args.reachable == ["a.A", "b.B"]


def test_plan_writes_manifest_and_registrations(
    zoo: ClasspathBuilder, tmp_path: Path, capsys, monkeypatch
) -> None:
    monkeypatch.delenv(MANIFEST_PATH_ENV, raising=False)
    _configure(
        zoo.root,
        "rules:\n  explicit_roots: [zoo.animals.Animal]\nproviders: []\nworkers: 2\n",
    )
    manifest = tmp_path / "out" / "manifest.json"
    registrations = tmp_path / "out" / "registrations.json"

    main(
        [
            "plan",
            str(zoo.root),
            "--reachable",
            "zoo.animals.Dog",
            "--manifest",
            str(manifest),
            "--registrations",
            str(registrations),
        ]
    )

    output = capsys.readouterr().out
    assert "3 decisions" in output
    assert [entry["type"] for entry in json.loads(manifest.read_text(encoding="utf-8"))] == [
        "zoo.animals.Animal",
        "zoo.animals.Cat",
        "zoo.animals.Dog",
    ]
    assert "zoo.animals.Dog" in json.loads(registrations.read_text(encoding="utf-8"))["serialization"]


def test_plan_uses_manifest_path_from_environment(zoo: ClasspathBuilder, tmp_path: Path, monkeypatch) -> None:
    target = tmp_path / "env-manifest.json"
    monkeypatch.setenv(MANIFEST_PATH_ENV, str(target))
    _configure(zoo.root, "rules:\n  explicit_roots: [zoo.animals.Animal]\nproviders: []\n")

    main(["plan", str(zoo.root)])

    assert target.exists()


def test_scan_lists_types(zoo: ClasspathBuilder, capsys) -> None:
    _configure(zoo.root, "workers: 1\n")

    main(["scan", str(zoo.root)])

    lines = capsys.readouterr().out.splitlines()
    assert lines == zoo.scan_names()


def test_invalid_config_exits_with_error(tmp_path: Path, capsys) -> None:
    _configure(tmp_path, "- not a mapping\n")

    with pytest.raises(SystemExit) as excinfo:
        main(["scan", str(tmp_path)])

    assert excinfo.value.code == 1
    assert "Invalid configuration" in capsys.readouterr().err


def test_missing_project_exits_with_error(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["plan", str(tmp_path / "missing")])

    assert excinfo.value.code == 1
    assert "Project path not found" in capsys.readouterr().err


def test_cli_accepts_quiet_and_log_file_on_either_side(tmp_path: Path) -> None:
    parser = _build_parser()
    log_file = tmp_path / "regplan.log"

    before = parser.parse_args(["-q", "--log-file", str(log_file), "scan"])
    after = parser.parse_args(["scan", "--quiet", "--log-file", str(log_file)])

    assert before.quiet is after.quiet is True
    assert before.log_file == after.log_file == log_file
    assert parser.parse_args(["plan"]).log_file is None


def test_plan_log_file_captures_registration_decisions(
    zoo: ClasspathBuilder, tmp_path: Path, monkeypatch
) -> None:
    monkeypatch.delenv(MANIFEST_PATH_ENV, raising=False)
    _configure(zoo.root, "rules:\n  explicit_roots: [zoo.animals.Animal]\nproviders: []\n")
    log_file = tmp_path / "logs" / "plan.log"

    main(["plan", str(zoo.root), "--quiet", "--log-file", str(log_file)])

    logger = logging.getLogger("regplan")
    for handler in logger.handlers:
        handler.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "[pre_analysis] Registering zoo.animals.Dog (reason: zoo.animals.Animal)" in text
    assert logger.handlers[0].level == logging.WARNING
