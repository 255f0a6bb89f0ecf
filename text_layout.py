"""Greedy word-wrap and inter-word justification measured with reportlab font metrics."""

from __future__ import annotations

from dataclasses import dataclass

from reportlab.pdfbase import pdfmetrics

# One visual row of a paragraph.
Line = tuple[str, ...]


def text_width(text: str, font_name: str, size: float) -> float:
    return pdfmetrics.stringWidth(text, font_name, size)


def break_paragraph(text: str, max_width: float, font_name: str, size: float) -> list[Line]:
    """Pack as many words onto each line as fit within *max_width* at *size* pt.

    Runs of whitespace collapse to single word boundaries.  A word that is wider
    than max_width on its own still gets a line to itself; words are never split.
    """
    lines: list[Line] = []
    buffer: list[str] = []
    for word in text.split():
        candidate = " ".join(buffer + [word])
        if buffer and text_width(candidate, font_name, size) > max_width:
            lines.append(tuple(buffer))
            buffer = [word]
        else:
            buffer.append(word)
    if buffer:
        lines.append(tuple(buffer))
    return lines


def natural_width(line: Line, font_name: str, size: float) -> float:
    if not line:
        return 0.0
    space = text_width(" ", font_name, size)
    return sum(text_width(word, font_name, size) for word in line) + space * (len(line) - 1)


def justify_line(
    line: Line,
    target_width: float,
    font_name: str,
    size: float,
    left: float = 0.0,
) -> list[tuple[str, float]]:
    """Return (word, x) pairs that stretch *line* to exactly *target_width*.

    The extra width is shared evenly between the gaps.  Lines with fewer than
    two words have no gap to stretch and are returned left aligned at *left*.
    """
    if len(line) < 2:
        return [(word, left) for word in line]

    widths = [text_width(word, font_name, size) for word in line]
    space = text_width(" ", font_name, size)
    extra = target_width - (sum(widths) + space * (len(line) - 1))
    gap = space + extra / (len(line) - 1)

    placements: list[tuple[str, float]] = []
    cursor = left
    for word, width in zip(line, widths):
        placements.append((word, cursor))
        cursor += width + gap
    return placements


@dataclass(frozen=True)
class Paragraph:
    text: str
    font_name: str
    size: float
    max_width: float
    line_spacing: float
    start_y: float
    left: float = 0.0
    justify: bool = True
    target_width: float | None = None


@dataclass(frozen=True)
class PlacedText:
    text: str
    x: float
    y: float


def layout_paragraph(paragraph: Paragraph) -> tuple[list[PlacedText], float]:
    """Break and place a paragraph, top line at ``start_y``.

    Every line but the last is justified when ``paragraph.justify`` is set; the
    last line always keeps natural spacing.  Returns the placed text and the
    baseline one ``line_spacing`` below the last line.
    """
    lines = break_paragraph(paragraph.text, paragraph.max_width, paragraph.font_name, paragraph.size)
    target = paragraph.target_width if paragraph.target_width is not None else paragraph.max_width

    placed: list[PlacedText] = []
    y = paragraph.start_y
    last_index = len(lines) - 1
    for index, line in enumerate(lines):
        if paragraph.justify and index < last_index and len(line) > 1:
            for word, x in justify_line(line, target, paragraph.font_name, paragraph.size, paragraph.left):
                placed.append(PlacedText(word, x, y))
        else:
            placed.append(PlacedText(" ".join(line), paragraph.left, y))
        y -= paragraph.line_spacing
    return placed, y
