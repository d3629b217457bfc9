from __future__ import annotations

from pathlib import Path

import pytest

from webfront import __main__ as cli


def test_arguments_build_config(tmp_path: Path) -> None:
    args = cli.build_parser().parse_args(
        [
            "--frontend", ":9000",
            "--backend", "http://api.test",
            "--dir", str(tmp_path),
            "--layout", "layout.html",
            "--auth", "admin:pw@/admin",
            "--prod",
        ]
    )
    config = cli.config_from_args(args)

    assert config.frontend == "http://localhost:9000/"
    assert config.backend == "http://api.test/"
    assert config.directory == tmp_path
    assert config.layout_name == "layout"
    assert config.auth == ("admin:pw@/admin",)
    assert config.prod is True


def test_main_rejects_bad_json(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    served: list[object] = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda *args, **kwargs: served.append(args))

    assert cli.main(["--json", str(tmp_path / "missing.json")]) == 2
    assert served == []


def test_main_starts_uvicorn(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict] = []
    monkeypatch.setattr(cli.uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))

    assert cli.main(["--dir", str(tmp_path), "--frontend", ":8123"]) == 0
    assert calls == [{"host": "localhost", "port": 8123, "log_level": "info"}]
