from __future__ import annotations

import importlib
import runpy
import subprocess
import sys
from pathlib import Path

import pytest

import policydesk.__main__ as app_main
import policydesk.cli as cli
from policydesk import __version__
from policydesk.exceptions import (
    AuthenticationError,
    ConfigError,
    InvalidTransitionError,
    NotificationError,
    PermissionDeniedError,
    PersistenceError,
    PolicyDeskError,
    ValidationError,
)


def test_version_is_defined() -> None:
    assert __version__ == "0.1.0"


@pytest.mark.parametrize(
    "module_name",
    [
        "policydesk.config",
        "policydesk.client",
        "policydesk.service",
        "policydesk.splitter",
        "policydesk.tagger",
        "policydesk.lifecycle",
        "policydesk.metadata",
        "policydesk.importers",
        "policydesk.notifications",
        "policydesk.exporters.policies",
        "policydesk.formatters.text_formatter",
    ],
)
def test_modules_are_importable(module_name: str) -> None:
    assert importlib.import_module(module_name) is not None


@pytest.mark.parametrize("exc_type", [
    ConfigError, ValidationError, InvalidTransitionError, PersistenceError, NotificationError,
])
def test_errors_share_base(exc_type: type) -> None:
    assert issubclass(exc_type, PolicyDeskError)


def test_error_specializations() -> None:
    assert issubclass(PermissionDeniedError, InvalidTransitionError)
    assert issubclass(AuthenticationError, PersistenceError)


def test_main_calls_cli_main(monkeypatch: pytest.MonkeyPatch) -> None:
    called = {"value": False}

    def fake_cli_main() -> None:
        called["value"] = True

    monkeypatch.setattr(app_main, "cli_main", fake_cli_main)
    app_main.main()
    assert called["value"] is True


def test_main_exits_on_policydesk_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
) -> None:
    def raise_error() -> None:
        raise InvalidTransitionError("Cannot move policy from 'active' to 'review'.")

    monkeypatch.setattr(app_main, "cli_main", raise_error)

    with pytest.raises(SystemExit) as raised:
        app_main.main()

    captured = capsys.readouterr()
    assert raised.value.code == 1
    assert captured.err.strip() == "Error: Cannot move policy from 'active' to 'review'."


def test_main_exits_on_keyboard_interrupt(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
) -> None:
    def raise_keyboard_interrupt() -> None:
        raise KeyboardInterrupt

    monkeypatch.setattr(app_main, "cli_main", raise_keyboard_interrupt)

    with pytest.raises(SystemExit) as raised:
        app_main.main()

    captured = capsys.readouterr()
    assert raised.value.code == 130
    assert captured.out == "\n"


def test_python_m_entrypoint_executes_main(monkeypatch: pytest.MonkeyPatch) -> None:
    call_count = {"value": 0}

    def fake_cli_main() -> None:
        call_count["value"] += 1

    monkeypatch.setattr(cli, "main", fake_cli_main)
    runpy.run_path(str(Path(app_main.__file__).resolve()), run_name="__main__")
    assert call_count["value"] == 1


def test_python_m_policydesk_smoke() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    completed = subprocess.run(
        [sys.executable, "-m", "policydesk"],
        cwd=repo_root,
        capture_output=True,
        text=True,
        check=False,
    )
    assert completed.returncode == 0
    assert "usage:" in completed.stdout.lower()
