from __future__ import annotations

import threading
from pathlib import Path

import pytest

from webfront._templating import (
    TemplateCompileError,
    TemplateEngine,
    TemplateNotFound,
    TemplateRenderError,
    template_name,
)


def _write(root: Path, rel: str, text: str) -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _engine(root: Path, *, prod: bool = False, layout: str = "", **kwargs) -> TemplateEngine:
    return TemplateEngine(
        directory=root,
        extensions=(".html", ".tmpl"),
        prod=prod,
        layout=layout,
        **kwargs,
    )


@pytest.fixture
def site(tmp_path: Path) -> Path:
    _write(tmp_path, "page.html", "<p>{{ title }}</p>")
    _write(tmp_path, "layout.html", "<main>{{ yield() }}</main>")
    _write(tmp_path, "blog/post.html", "{{ prod }}|{{ config }}")
    _write(tmp_path, "widget.tmpl", "<h1>{{ name }}</h1>")
    _write(tmp_path, "notes.txt", "{% not a template")
    _write(tmp_path, "_hidden.html", "{% broken")
    return tmp_path


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("/about/index.html", "about/index"),
        ("widget.tmpl", "widget"),
        ("blog\\post.html", "blog/post"),
        ("page", "page"),
    ],
)
def test_template_name(path: str, expected: str) -> None:
    assert template_name(path) == expected


def test_compile_collects_frontend_and_backend_templates(site: Path) -> None:
    registry = _engine(site).compile()
    assert sorted(registry.templates) == ["blog/post", "layout", "page", "widget"]


def test_compile_error_names_the_file(site: Path) -> None:
    _write(site, "broken.html", "{% if %}")
    with pytest.raises(TemplateCompileError, match="broken"):
        _engine(site).compile()


def test_render_escapes_and_accepts_paths(site: Path) -> None:
    engine = _engine(site)
    assert engine.render("/page.html", {"title": "<b>Hi</b>"}) == b"<p>&lt;b&gt;Hi&lt;/b&gt;</p>"
    assert engine.render("page", {"title": "Hi"}) == b"<p>Hi</p>"


def test_environment_defaults_sit_under_caller_values(site: Path) -> None:
    engine = _engine(site, base_environment=lambda: {"prod": False, "config": "base"})
    assert engine.render("blog/post") == b"False|base"
    assert engine.render("blog/post", {"config": "mine"}) == b"False|mine"


def test_missing_template_and_render_failures(site: Path) -> None:
    _write(site, "calls.html", "{{ nope() }}")
    engine = _engine(site)
    with pytest.raises(TemplateNotFound):
        engine.render("absent")
    with pytest.raises(TemplateRenderError, match="calls"):
        engine.render("calls")


def test_development_render_rereads_disk(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    engine = _engine(site, prod=False)
    reads: list[int] = []
    original = engine._read_sources
    monkeypatch.setattr(engine, "_read_sources", lambda: reads.append(1) or original())

    assert engine.render("page", {"title": "one"}) == b"<p>one</p>"
    _write(site, "page.html", "<div>{{ title }}</div>")
    assert engine.render("page", {"title": "two"}) == b"<div>two</div>"
    assert len(reads) == 2


def test_production_render_compiles_once(site: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    engine = _engine(site, prod=True)
    reads: list[int] = []
    original = engine._read_sources
    monkeypatch.setattr(engine, "_read_sources", lambda: reads.append(1) or original())

    first = engine.render("page", {"title": "same"})
    (site / "page.html").unlink()
    second = engine.render("page", {"title": "same"})

    assert first == second == b"<p>same</p>"
    assert len(reads) == 1
    assert engine.snapshot() is engine.snapshot()


def test_register_functions_invalidates_production_snapshot(site: Path) -> None:
    engine = _engine(site, prod=True)
    before = engine.snapshot()
    _write(site, "shout.html", "{{ shout('hey') }}")
    engine.register_functions({"shout": lambda text: text.upper()})

    after = engine.snapshot()
    assert after is not before
    assert engine.render("shout") == b"HEY"


def test_layout_wraps_page_with_identical_yield_output(site: Path) -> None:
    plain = _engine(site).render("page", {"title": "Hi"})
    wrapped = _engine(site, layout="layout").render("page", {"title": "Hi"})

    assert plain == b"<p>Hi</p>"
    assert wrapped == b"<main>" + plain + b"</main>"


def test_layout_rendered_directly_yields_nothing(site: Path) -> None:
    engine = _engine(site, layout="layout")
    assert engine.render("layout") == b"<main></main>"


def test_layout_needs_an_existing_page(site: Path) -> None:
    with pytest.raises(TemplateNotFound):
        _engine(site, layout="layout").render("absent")


def test_failed_page_inside_layout_yields_empty(site: Path) -> None:
    _write(site, "calls.html", "{{ nope() }}")
    engine = _engine(site, layout="layout")
    assert engine.render("calls") == b"<main></main>"


def test_production_render_is_idempotent(site: Path) -> None:
    engine = _engine(site, prod=True, layout="layout")
    env = {"title": "repeat"}
    assert engine.render("page", env) == engine.render("page", env)


def test_includes_resolve_by_logical_name(site: Path) -> None:
    _write(site, "parts/nav.html", "<nav>{{ title }}</nav>")
    _write(site, "home.html", "{% include 'parts/nav' %}!")
    assert _engine(site).render("home", {"title": "x"}) == b"<nav>x</nav>!"


def test_helper_names_are_undefined_as_data(site: Path) -> None:
    _write(site, "names.html", "{{ title|default('home') }}|{{ when }}|{{ slug is defined }}")
    engine = _engine(site)

    assert engine.render("names") == b"home||False"
    assert engine.render("names", {"title": "Mine", "when": 3}) == b"Mine|3|False"


def test_inflight_render_keeps_its_snapshot(site: Path) -> None:
    entered = threading.Event()
    release = threading.Event()

    def pause() -> str:
        entered.set()
        release.wait(timeout=5)
        return ""

    _write(site, "part.html", "old")
    _write(site, "slow.html", "{{ pause() }}{% include 'part' %}")
    engine = _engine(site, functions={"pause": pause})
    results: list[bytes] = []
    worker = threading.Thread(target=lambda: results.append(engine.render("slow")))
    worker.start()
    assert entered.wait(timeout=5)

    _write(site, "part.html", "new")
    _write(site, "slow.html", "{% include 'part' %}")
    fresh = engine.compile()
    release.set()
    worker.join(timeout=5)

    assert results == [b"old"]
    assert fresh.render("slow", {}) == "new"


def test_stale_compile_does_not_replace_newer_functions(
    site: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    engine = _engine(site, prod=True)
    original = engine._read_sources
    calls: list[int] = []

    def read_while_registering() -> dict[str, str]:
        if not calls:
            registrar = threading.Thread(
                target=engine.register_functions, args=({"late": lambda: "late"},)
            )
            registrar.start()
            registrar.join(timeout=5)
        calls.append(1)
        return original()

    monkeypatch.setattr(engine, "_read_sources", read_while_registering)
    stale = engine.compile()
    current = engine.snapshot()

    assert current is not stale
    assert "late" not in stale.environment.globals
    assert "late" in current.environment.globals
    assert engine.snapshot() is current
    assert len(calls) == 2
