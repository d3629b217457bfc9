from __future__ import annotations

import json
from pathlib import Path

import pytest

from webfront.server.config import DEFAULT_FRONTEND, AuthPattern, SiteConfig, normalize_address
from webfront.server.errors import ConfigError


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        (":8080", "http://localhost:8080/"),
        ("http://example.com/app", "http://example.com/app/"),
        ("http://example.com/", "http://example.com/"),
        ("example.com", DEFAULT_FRONTEND),
        ("", DEFAULT_FRONTEND),
    ],
)
def test_normalize_address(address: str, expected: str) -> None:
    assert normalize_address(address, DEFAULT_FRONTEND) == expected


def test_derived_values() -> None:
    config = SiteConfig(
        frontend="http://localhost:9000/app/",
        backend="http://api.test/v1",
        layout="/layouts/main.html",
    )
    assert config.path_prefix == "/app"
    assert config.port == 9000
    assert config.host == "localhost"
    assert config.backend == "http://api.test/v1/"
    assert config.layout_name == "layouts/main"
    assert (config.frontend_ext, config.backend_ext) == (".html", ".tmpl")


def test_defaults() -> None:
    config = SiteConfig()
    assert config.frontend == DEFAULT_FRONTEND
    assert config.backend == ""
    assert config.path_prefix == ""
    assert config.layout_name == ""
    assert config.directory == Path(".")
    assert config.config_json() is None


def test_auth_patterns() -> None:
    config = SiteConfig(auth=("admin:secret@/private", "viewer:pw"))
    assert config.auth_patterns == (
        AuthPattern("admin", "secret", "private"),
        AuthPattern("viewer", "pw", ""),
    )
    with pytest.raises(ConfigError):
        SiteConfig(auth=("nopassword",))


def test_invalid_timeout() -> None:
    with pytest.raises(ConfigError):
        SiteConfig(backend_timeout=0)


def _settings(tmp_path: Path, payload: dict) -> Path:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_config_json_is_memoised_in_production(tmp_path: Path) -> None:
    path = _settings(tmp_path, {"title": "one"})
    config = SiteConfig(json_files=(str(path),), prod=True)
    assert config.config_json() == {"settings": {"title": "one"}}

    _settings(tmp_path, {"title": "two"})
    assert config.config_json() == {"settings": {"title": "one"}}


def test_config_json_is_reloaded_in_development(tmp_path: Path) -> None:
    path = _settings(tmp_path, {"title": "one"})
    config = SiteConfig(json_files=(str(path),))
    assert config.config_json() == {"settings": {"title": "one"}}

    _settings(tmp_path, {"title": "two"})
    assert config.config_json() == {"settings": {"title": "two"}}


def test_config_json_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Unknown file"):
        SiteConfig(json_files=(str(tmp_path / "absent.json"),)).config_json()

    broken = tmp_path / "broken.json"
    broken.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError, match="Parse error"):
        SiteConfig(json_files=(str(broken),)).config_json()
