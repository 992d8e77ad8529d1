import logging
from pathlib import Path

import pytest

from mole.build import (
    DEFAULT_CONFIG,
    Build,
    BuildError,
    LayoutsNotLoadedError,
    build_site,
    load_config,
)
from mole.utils import output_path_for_url


def _write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _project(root: Path) -> Path:
    source = root / "_source"
    _write(source / "_layouts" / "default.html", "<html>{% include layout %}</html>")
    _write(source / "_layouts" / "page.html", "<main>{{ content }}</main>")
    _write(source / "_include" / "byline.html", "by {{ page.title }}")
    _write(source / "index.md", "---\ntitle: home\nlayout: page\npermalink: /\n---\nhello")
    _write(
        source / "_articles" / "post.md",
        "---\ntitle: first post\nlayout: page\n---\n{% include 'byline' %}\n\nbody",
    )
    _write(source / "css" / "site.css", "body {}")
    _write(source / "_drafts" / "draft.md", "---\ntitle: draft\n---\n")
    return source


def test_articles_before_layouts_is_fatal(tmp_path):
    with pytest.raises(LayoutsNotLoadedError):
        Build(tmp_path / "out").articles(tmp_path)


def test_builder_stages_return_new_builds(tmp_path):
    source = _project(tmp_path)
    empty = Build(tmp_path / "out")
    with_layouts = empty.layouts(source / "_layouts")
    assert empty.registry.layouts == frozenset()
    assert with_layouts.registry.layouts == {"default", "page"}
    parsed = with_layouts.articles(source)
    assert with_layouts.documents == ()
    assert [doc.config.title for doc in parsed.documents] == ["home"]


def test_missing_partial_directory_is_logged(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        build = Build(tmp_path / "out").includes(tmp_path / "nope")
    assert dict(build.registry.sources) == {}
    assert "is not a path or directory" in caplog.text


def test_run_writes_pages_and_copies_files(tmp_path):
    source = _project(tmp_path)
    output = tmp_path / "out"
    report = (
        Build(output)
        .includes(source / "_include")
        .layouts(source / "_layouts")
        .articles(source, source / "_articles")
        .run()
    )
    assert report.ok
    assert (output / "index.html").read_text(encoding="utf-8") == (
        "<html><main><p>hello</p>\n</main></html>"
    )
    post = (output / "first%20post.html").read_text(encoding="utf-8")
    assert post == "<html><main><p>by first post</p>\n<p>body</p>\n</main></html>"
    assert (output / "css" / "site.css").read_text(encoding="utf-8") == "body {}"
    assert not (output / "_drafts").exists()
    assert not (output / "draft.html").exists()
    assert sorted(p.name for p in report.written) == ["first%20post.html", "index.html"]


def test_run_can_be_repeated(tmp_path):
    source = _project(tmp_path)
    build = Build(tmp_path / "out").includes(source / "_include").layouts(
        source / "_layouts"
    ).articles(source)
    first = build.run()
    second = build.run()
    assert first.written == second.written
    assert (tmp_path / "out" / "index.html").read_text(encoding="utf-8").startswith("<html>")


def test_parse_failures_drop_only_that_document(tmp_path, caplog):
    source = _project(tmp_path)
    _write(source / "broken.md", "---\ntitle: x\ntags: [a\n---\n")
    build = Build(tmp_path / "out").includes(source / "_include").layouts(
        source / "_layouts"
    )
    with caplog.at_level(logging.ERROR):
        report = build.articles(source).run()
    assert [failure.path.name for failure in report.parse_failures] == ["broken.md"]
    assert "no closing bracket" in caplog.text
    assert len(report.written) == 1
    assert not report.ok


def test_shared_include_errors_are_grouped(tmp_path, caplog):
    source = tmp_path / "src"
    _write(source / "_layouts" / "default.html", "{% include 'footer' %}")
    _write(source / "_include" / "footer.html", "{{ site.missing_value }}")
    _write(source / "a.md", "---\ntitle: a\n---\na")
    _write(source / "b.md", "---\ntitle: b\n---\nb")

    build = (
        Build(tmp_path / "out")
        .includes(source / "_include")
        .layouts(source / "_layouts")
        .articles(source)
    )
    with caplog.at_level(logging.ERROR):
        report = build.run()

    assert len(report.shared_failures) == 1
    (message, paths), = report.shared_failures.items()
    assert [path.name for path in paths] == ["a.md", "b.md"]
    assert "from: {% include 'footer' %} (partial 'footer')" in message
    assert report.render_failures == []
    assert report.failed == 2
    errors = [r for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert "2 document(s)" in errors[0].getMessage()
    assert str(source / "a.md") in errors[0].getMessage()
    assert str(source / "b.md") in errors[0].getMessage()


def test_body_errors_are_reported_per_document(tmp_path):
    source = tmp_path / "src"
    _write(source / "_layouts" / "default.html", "{{ content }}")
    _write(source / "a.md", "---\ntitle: a\n---\n{{ oops }}")
    _write(source / "b.md", "---\ntitle: b\n---\n{{ oops }}")
    report = Build(tmp_path / "out").layouts(source / "_layouts").articles(source).run()
    assert report.shared_failures == {}
    assert [failure.path.name for failure in report.render_failures] == ["a.md", "b.md"]


def test_include_used_as_layout_warns(tmp_path, caplog):
    source = tmp_path / "src"
    _write(source / "_layouts" / "default.html", "{{ content }}")
    _write(source / "_include" / "card.html", "card")
    _write(source / "a.md", "---\ntitle: a\nlayout: card\n---\na")
    with caplog.at_level(logging.WARNING):
        Build(tmp_path / "out").includes(source / "_include").layouts(
            source / "_layouts"
        ).articles(source)
    assert "'card' is an include, not a layout" in caplog.text


def test_output_path_for_url(tmp_path):
    assert output_path_for_url(tmp_path, "/a/b.html") == tmp_path / "a" / "b.html"
    assert output_path_for_url(tmp_path, "/blog/") == tmp_path / "blog" / "index.html"
    assert output_path_for_url(tmp_path, "/") == tmp_path / "index.html"


def test_load_config_defaults_and_overrides(tmp_path):
    assert load_config(tmp_path) == DEFAULT_CONFIG
    (tmp_path / "mole.yaml").write_text("output: public\nsite:\n  name: Blog\n", encoding="utf-8")
    config = load_config(tmp_path)
    assert config["output"] == "public"
    assert config["source"] == "_source"
    assert config["site"] == {"name": "Blog"}


def test_build_site_uses_config(tmp_path):
    _project(tmp_path)
    (tmp_path / "mole.yaml").write_text("output: public\nsite:\n  name: Blog\n", encoding="utf-8")
    (tmp_path / "public").mkdir()
    (tmp_path / "public" / "stale.html").write_text("old", encoding="utf-8")
    report = build_site(tmp_path)
    assert report.output_dir == tmp_path / "public"
    assert (tmp_path / "public" / "index.html").exists()
    assert (tmp_path / "public" / "first%20post.html").exists()
    assert not (tmp_path / "public" / "stale.html").exists()


def test_build_site_refuses_to_clean_sources(tmp_path):
    _project(tmp_path)
    with pytest.raises(BuildError, match="refusing to clean"):
        build_site(tmp_path, {"output": "."})


def test_expression_errors_do_not_abort_the_build(tmp_path):
    source = tmp_path / "src"
    _write(source / "_layouts" / "default.html", "{{ content }}")
    _write(source / "a.md", "---\ntitle: a\n---\n{{ 'x' + 1 }}")
    _write(source / "b.md", "---\ntitle: b\n---\nb")
    report = Build(tmp_path / "out").layouts(source / "_layouts").articles(source).run()
    assert [failure.path.name for failure in report.render_failures] == ["a.md"]
    assert report.render_failures[0].message.startswith("TypeError: ")
    assert (tmp_path / "out" / "b.html").read_text(encoding="utf-8") == "<p>b</p>\n"


def test_expression_errors_in_partials_are_grouped(tmp_path):
    source = tmp_path / "src"
    _write(source / "_layouts" / "default.html", "{{ content }}{% include 'footer' %}")
    _write(source / "_include" / "footer.html", "{{ 1 / 0 }}")
    _write(source / "a.md", "---\ntitle: a\n---\na")
    _write(source / "b.md", "---\ntitle: b\n---\nb")
    report = (
        Build(tmp_path / "out")
        .includes(source / "_include")
        .layouts(source / "_layouts")
        .articles(source)
        .run()
    )
    (message, paths), = report.shared_failures.items()
    assert message.startswith("ZeroDivisionError: division by zero")
    assert "(partial 'footer')" in message
    assert [path.name for path in paths] == ["a.md", "b.md"]
    assert report.render_failures == []


def test_copy_failures_are_recorded(tmp_path, monkeypatch, caplog):
    source = _project(tmp_path)

    def failing_copy(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("mole.build.shutil.copy2", failing_copy)
    build = Build(tmp_path / "out").includes(source / "_include").layouts(
        source / "_layouts"
    ).articles(source)
    with caplog.at_level(logging.ERROR):
        report = build.run()
    assert [failure.path.name for failure in report.copy_failures] == ["site.css"]
    assert report.copied == []
    assert report.written
    assert report.failed == 0
    assert not report.ok
    assert "disk full" in caplog.text
