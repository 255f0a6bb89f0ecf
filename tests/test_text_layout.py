"""
Tests for line breaking and justification.
"""

import pytest

from text_layout import (
    Paragraph,
    break_paragraph,
    justify_line,
    layout_paragraph,
    natural_width,
    text_width,
)

FONT = "Helvetica"
SIZE = 11

SAMPLE = (
    "JANE DOE, Unique Candidate Identifier (1234567890123) had sat her London Edexcel "
    "INTERNATIONAL SUBSIDIARY LEVEL (IAS) examination in June 2026. She had obtained the "
    "following results in the subjects listed below."
)


class TestBreakParagraph:
    """Greedy word wrap."""

    def test_every_line_fits(self):
        lines = break_paragraph(SAMPLE, 250, FONT, SIZE)
        assert len(lines) > 1
        for line in lines:
            assert text_width(" ".join(line), FONT, SIZE) <= 250

    def test_keeps_every_word_in_order(self):
        lines = break_paragraph(SAMPLE, 250, FONT, SIZE)
        assert [word for line in lines for word in line] == SAMPLE.split()

    def test_lines_are_filled_greedily(self):
        lines = break_paragraph(SAMPLE, 250, FONT, SIZE)
        for line, following in zip(lines, lines[1:]):
            widened = " ".join(line + (following[0],))
            assert text_width(widened, FONT, SIZE) > 250

    def test_oversized_word_gets_its_own_line(self):
        lines = break_paragraph("a Supercalifragilisticexpialidocious b", 60, FONT, SIZE)
        assert lines == [("a",), ("Supercalifragilisticexpialidocious",), ("b",)]

    def test_whitespace_runs_collapse(self):
        assert break_paragraph("  one \n two\t\tthree  ", 500, FONT, SIZE) == [("one", "two", "three")]

    def test_empty_text_has_no_lines(self):
        assert break_paragraph("   ", 200, FONT, SIZE) == []


class TestJustifyLine:
    """Stretching inter-word gaps."""

    def test_line_fills_target_width(self):
        line = ("the", "quick", "brown", "fox")
        placements = justify_line(line, 300, FONT, SIZE, left=70)
        last_word, last_x = placements[-1]
        right_edge = last_x + text_width(last_word, FONT, SIZE)
        assert placements[0][1] == 70
        assert right_edge == pytest.approx(370, abs=0.01)

    def test_gaps_are_equal(self):
        line = ("a", "bb", "ccc", "dddd")
        placements = justify_line(line, 200, FONT, SIZE)
        gaps = [
            next_x - (x + text_width(word, FONT, SIZE))
            for (word, x), (_, next_x) in zip(placements, placements[1:])
        ]
        assert max(gaps) - min(gaps) == pytest.approx(0, abs=1e-9)
        assert gaps[0] > text_width(" ", FONT, SIZE)

    def test_single_word_is_not_stretched(self):
        assert justify_line(("alone",), 300, FONT, SIZE, left=12) == [("alone", 12)]

    def test_natural_width_matches_joined_text(self):
        line = ("Unique", "Candidate", "Identifier")
        assert natural_width(line, FONT, SIZE) == pytest.approx(text_width(" ".join(line), FONT, SIZE))


class TestLayoutParagraph:
    """Paragraph placement with the last-line rule."""

    def make(self, **overrides):
        values = dict(
            text=SAMPLE,
            font_name=FONT,
            size=SIZE,
            max_width=250,
            line_spacing=18,
            start_y=600,
            left=70,
        )
        values.update(overrides)
        return Paragraph(**values)

    def test_lines_step_down_by_line_spacing(self):
        placed, next_y = layout_paragraph(self.make())
        line_count = len(break_paragraph(SAMPLE, 250, FONT, SIZE))
        ys = sorted({item.y for item in placed}, reverse=True)
        assert ys == [600 - 18 * i for i in range(line_count)]
        assert next_y == 600 - 18 * line_count

    def test_last_line_keeps_natural_spacing(self):
        placed, _ = layout_paragraph(self.make())
        last_y = min(item.y for item in placed)
        last_items = [item for item in placed if item.y == last_y]
        assert len(last_items) == 1
        assert last_items[0].x == 70
        assert last_items[0].text == " ".join(break_paragraph(SAMPLE, 250, FONT, SIZE)[-1])

    def test_earlier_lines_reach_the_right_edge(self):
        placed, _ = layout_paragraph(self.make())
        last_y = min(item.y for item in placed)
        for y in {item.y for item in placed if item.y != last_y}:
            words = sorted((item for item in placed if item.y == y), key=lambda item: item.x)
            right_edge = words[-1].x + text_width(words[-1].text, FONT, SIZE)
            assert words[0].x == 70
            assert right_edge == pytest.approx(320, abs=0.01)

    def test_unjustified_paragraph_places_whole_lines(self):
        placed, _ = layout_paragraph(self.make(justify=False))
        lines = break_paragraph(SAMPLE, 250, FONT, SIZE)
        assert [item.text for item in placed] == [" ".join(line) for line in lines]
        assert {item.x for item in placed} == {70}

    def test_single_line_paragraph_is_left_aligned(self):
        placed, next_y = layout_paragraph(self.make(text="Short line of text"))
        assert [(item.text, item.x, item.y) for item in placed] == [("Short line of text", 70, 600)]
        assert next_y == 582
