from pathlib import Path

from mole.diagnostics import Diagnostic, format_diagnostic


def test_format_diagnostic_underlines_span():
    text = format_diagnostic("bad value", "post.md", "tags: [a, b", 6, 11, 3)
    assert text.splitlines() == [
        "",
        "   --> post.md 3:6",
        "   |",
        " 3 | tags: [a, b",
        "   |       ^^^^^",
        "   |",
        "  bad value",
    ]


def test_gutter_widens_with_line_number():
    three = format_diagnostic("m", "p", "x", 0, 1, 120).splitlines()
    four = format_diagnostic("m", "p", "x", 0, 1, 1200).splitlines()
    assert three[3] == "120 | x"
    assert three[2] == "    |"
    assert four[3] == "1200 | x"
    assert four[2] == "     |"


def test_negative_start_is_clamped_and_empty_span_has_no_carets():
    lines = format_diagnostic("m", "p", "abc", -3, -1, 1).splitlines()
    assert lines[1] == "   --> p 1:0"
    assert lines[4] == "   | "


def test_diagnostic_str_matches_render():
    diagnostic = Diagnostic("oops", Path("a.md"), 2, "title:", 6, 7)
    assert str(diagnostic) == diagnostic.render()
    assert "a.md 2:6" in str(diagnostic)
