import pytest

from meme.layout import TextLayoutEngine, WrappedLine, wrap, TOP, BOTTOM


def measure(text):
    """Monospace measure: 5px per character, separators included."""
    return 5 * len(text)


def test_wrap_quick_brown_fox():
    lines = wrap("THE QUICK BROWN FOX", 60, measure)

    assert lines == ["THE QUICK", "BROWN FOX"]
    assert all(measure(line) <= 60 for line in lines)


def test_wrap_counts_trailing_separator():
    # "AB CD" is 25px but the candidate "AB CD " is 30px
    assert wrap("AB CD", 25, measure) == ["AB", "CD"]
    assert wrap("AB CD", 30, measure) == ["AB CD"]


def test_wrap_is_deterministic():
    text = "one does not simply walk into mordor " * 5
    first = wrap(text, 120, measure)

    for _ in range(10):
        assert wrap(text, 120, measure) == first


def test_wrap_never_splits_words():
    text = "when the code works on the first try and you have no idea why"
    lines = wrap(text, 80, measure)

    assert len(lines) > 1
    assert " ".join(lines).split() == text.split()


def test_overlong_word_gets_its_own_line():
    lines = wrap("A SUPERCALIFRAGILISTIC WORD", 40, measure)

    assert lines == ["A", "SUPERCALIFRAGILISTIC", "WORD"]
    assert measure(lines[1]) > 40


def test_overlong_first_word_is_not_an_error():
    assert wrap("SUPERCALIFRAGILISTIC", 40, measure) == ["SUPERCALIFRAGILISTIC"]


def test_wrap_empty_text():
    assert wrap("", 100, measure) == [""]


@pytest.mark.parametrize("text,expected", [
    ("A  B", ["A", "B"]),
    (" HELLO", ["HELLO"]),
    ("HELLO ", ["HELLO"]),
    ("   ", [""]),
])
def test_wrap_ignores_repeated_separators(text, expected):
    assert wrap(text, 10, measure) == expected


def test_wrap_repeated_separators_wide_line():
    assert wrap("A   B", 1000, measure) == ["A B"]


def test_wrap_short_text_single_line():
    assert wrap("HELLO WORLD", 1000, measure) == ["HELLO WORLD"]


def test_custom_separator():
    engine = TextLayoutEngine(separator="|")

    assert engine.wrap("AAA|BBB|CCC", 40, measure) == ["AAA|BBB", "CCC"]
    assert engine.wrap("AAA|BBB|CCC", 20, measure) == ["AAA", "BBB", "CCC"]


def test_place_top_lines_grow_downward():
    engine = TextLayoutEngine()
    placed = engine.place_lines(["ONE", "TWO", "THREE"], anchor_y=20, line_height=10, position=TOP)

    assert placed == [
        WrappedLine("ONE", 20),
        WrappedLine("TWO", 30),
        WrappedLine("THREE", 40),
    ]


def test_place_bottom_lines_anchor_last_line():
    engine = TextLayoutEngine()
    line_height = 57.6
    placed = engine.place_lines(["ONE", "TWO", "THREE"], anchor_y=380, line_height=line_height, position=BOTTOM)

    assert [p.text for p in placed] == ["ONE", "TWO", "THREE"]
    assert placed[-1].y == 380
    assert placed[0].y == 380 - 2 * line_height


def test_place_single_bottom_line():
    engine = TextLayoutEngine()
    placed = engine.place_lines(["ONLY"], anchor_y=380, line_height=96, position=BOTTOM)

    assert placed == [WrappedLine("ONLY", 380)]


def test_place_unknown_position():
    with pytest.raises(ValueError):
        TextLayoutEngine().place_lines(["X"], anchor_y=0, line_height=10, position="middle")


def test_layout_combines_wrap_and_place():
    placed = TextLayoutEngine().layout(
        "THE QUICK BROWN FOX", 60, measure, anchor_y=100, line_height=12, position=BOTTOM
    )

    assert placed == [WrappedLine("THE QUICK", 88), WrappedLine("BROWN FOX", 100)]
