from __future__ import annotations

from typing import Any

import pytest

from app.infrastructure.exceptions import ConfigurationError
from scripts import run_server


@pytest.fixture
def uvicorn_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_run(target: str, **kwargs: Any) -> None:
        calls.append({"target": target, **kwargs})

    monkeypatch.setattr(run_server.uvicorn, "run", fake_run)
    return calls


def test_main_checks_catalogs_then_serves(
    monkeypatch: pytest.MonkeyPatch, uvicorn_calls: list[dict[str, Any]]
) -> None:
    checked: list[bool] = []
    monkeypatch.setattr(run_server, "check_catalogs", lambda: checked.append(True) or 30)

    run_server.main(["--port", "9000", "--no-reload"])

    assert checked == [True]
    assert uvicorn_calls == [
        {"target": "app.web.main:app", "host": "0.0.0.0", "port": 9000, "reload": False}
    ]


def test_skip_checks(monkeypatch: pytest.MonkeyPatch, uvicorn_calls: list[dict[str, Any]]) -> None:
    def fail() -> int:
        raise AssertionError("catalogs should not be checked")

    monkeypatch.setattr(run_server, "check_catalogs", fail)
    run_server.main(["--skip-checks"])
    assert uvicorn_calls[0]["reload"] is True


def test_catalog_error_exits(
    monkeypatch: pytest.MonkeyPatch,
    uvicorn_calls: list[dict[str, Any]],
    capsys: pytest.CaptureFixture[str],
) -> None:
    def broken() -> int:
        raise ConfigurationError("Catalog file not found: questions.json")

    monkeypatch.setattr(run_server, "check_catalogs", broken)
    with pytest.raises(SystemExit) as excinfo:
        run_server.main([])

    assert excinfo.value.code == 1
    assert "Catalog file not found" in capsys.readouterr().err
    assert uvicorn_calls == []


def test_check_catalogs_counts_bundled_questions(capsys: pytest.CaptureFixture[str]) -> None:
    count = run_server.check_catalogs()
    assert count > 27
    assert "Catalogs OK" in capsys.readouterr().out
