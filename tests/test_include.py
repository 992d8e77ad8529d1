import logging

import pytest
from jinja2 import TemplateRuntimeError, TemplateSyntaxError

from mole.include import MAX_INCLUDE_DEPTH, IncludeError, IncludeFrame, describe_error
from mole.templates import PartialRegistry, TemplateEngine


def _engine(**partials):
    registry = PartialRegistry()
    for name, source in partials.items():
        registry = registry.add(name, source)
    return TemplateEngine(registry)


def test_include_quoted_name():
    engine = _engine(header="<header>{{ page.title }}</header>")
    rendered = engine.render_string("{% include 'header' %}!", {"page": {"title": "Cats"}})
    assert rendered == "<header>Cats</header>!"


def test_include_arguments_are_scoped_to_include():
    engine = _engine(image='<img src="{{ include.path }}" alt="{{ include.alt }}">')
    rendered = engine.render_string(
        "{% include 'image' path='cat.png' alt=page.title %}", {"page": {"title": "Cat"}}
    )
    assert rendered == '<img src="cat.png" alt="Cat">'


def test_nested_include_without_arguments_inherits_outer_include():
    engine = _engine(outer="{% include 'inner' %}", inner="{{ include.x }}")
    assert engine.render_string("{% include 'outer' x=1 %}", {}) == "1"


def test_caller_assignments_do_not_leak_into_partial():
    engine = _engine(partial="{{ secret }}")
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% set secret = 1 %}{% include 'partial' %}", {})
    assert exc.value.reason == "Unknown variable: 'secret' is undefined"
    assert exc.value.frames == (IncludeFrame("'partial'", "partial"),)


def test_include_variable_name():
    engine = _engine(page="<article>{{ content }}</article>")
    rendered = engine.render_string(
        "<main>{% include layout %}</main>", {"layout": "page", "content": "x"}
    )
    assert rendered == "<main><article>x</article></main>"


def test_legacy_unquoted_file_name(caplog):
    engine = _engine(header="<header/>")
    with caplog.at_level(logging.WARNING):
        rendered = engine.render_string("{% include header.html %}", {})
    assert rendered == "<header/>"
    assert "potential jekyll include tag found: header.html" in caplog.text


def test_unknown_partial():
    engine = _engine()
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% include 'missing' %}", {})
    assert exc.value.reason == "Unknown partial 'missing'"


def test_include_breadcrumbs_innermost_first():
    engine = _engine(a="{% include 'b' %}", b="{{ nope }}")
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% include 'a' %}", {})
    assert [frame.partial for frame in exc.value.frames] == ["b", "a"]
    assert str(exc.value).splitlines() == [
        "Unknown variable: 'nope' is undefined",
        "from: {% include 'b' %} (partial 'b')",
        "from: {% include 'a' %} (partial 'a')",
    ]


def test_syntax_error_inside_partial():
    engine = _engine(broken="{% if %}")
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% include 'broken' %}", {})
    assert exc.value.reason.startswith("Template syntax error on line 1:")


def test_missing_assignment_is_a_syntax_error():
    engine = _engine(p="x")
    with pytest.raises(TemplateSyntaxError, match="expected '=' to be used"):
        engine.render_string("{% include 'p' key %}", {})


def test_non_string_name_is_rejected():
    engine = _engine()
    with pytest.raises(TemplateRuntimeError, match="Can only `include` strings"):
        engine.render_string("{% include name %}", {"name": 3})


def test_self_include_hits_depth_limit():
    engine = _engine(loop="{% include 'loop' %}")
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% include 'loop' %}", {})
    assert "maximum include depth" in exc.value.reason
    assert len(exc.value.frames) == MAX_INCLUDE_DEPTH + 1


def test_describe_error_for_other_errors():
    assert describe_error(TemplateRuntimeError("boom")) == "TemplateRuntimeError: boom"


def test_python_error_inside_partial_gets_a_frame():
    engine = _engine(divide="{{ 1 / 0 }}")
    with pytest.raises(IncludeError) as exc:
        engine.render_string("{% include 'divide' %}", {})
    assert exc.value.reason == "ZeroDivisionError: division by zero"
    assert exc.value.frames == (IncludeFrame("'divide'", "divide"),)
