"""
Stamp text and images onto fixed template PDFs.

Drawing happens in two steps.  Callers first describe what goes where as an
`Overlay` (text runs, rules, images, each tagged with a page index).  Then
`render_overlay` draws those onto one reportlab canvas per page and merges
each canvas into the matching template page with pypdf.

`stamp` is the field-map path: every payload value that has a `FieldSpec` is
drawn at that spec's coordinates.  Empty values, unmapped fields and specs
pointing at a page the template lacks are all skipped without raising.
"""

from __future__ import annotations

import argparse
import base64
import binascii
import io
import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import requests
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError
from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

import config
from document_errors import InvalidTemplate, SerializationFailure
from field_maps import (
    GRADE_BLOCKS,
    GRADE_ROW_SPACING,
    MAX_GRADE_ROWS,
    FieldMap,
    FieldSpec,
    get_field_map,
    grade_field,
    load_field_map,
    subject_field,
)
from fonts import DEFAULT_FONTS, FontPair, register_font, register_fonts_from_directory, resolve_font_name
from text_layout import Paragraph, layout_paragraph, text_width

logger = logging.getLogger(__name__)

RGB = tuple[float, float, float]
BLACK: RGB = (0.0, 0.0, 0.0)
GREY: RGB = (0.5, 0.5, 0.5)

KNOWN_GRADES = frozenset({"A*", "A", "B", "C", "D", "E", "U"})

_GRADE_QUALIFIER = re.compile(r"\s*\(.*\)")
_ROW_FIELD = re.compile(r"^(?:%s)_(?:SUBJECT|GRADE)_\d+$" % "|".join(GRADE_BLOCKS))


# ---------------------------------------------------------------------------
# Draw operations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextRun:
    page: int
    x: float
    y: float
    text: str
    font_name: str
    size: float
    color: RGB = BLACK


@dataclass(frozen=True)
class Rule:
    page: int
    x0: float
    y0: float
    x1: float
    y1: float
    thickness: float = 1.0
    color: RGB = BLACK


@dataclass(frozen=True)
class ImagePlacement:
    page: int
    x: float
    y: float
    width: float
    height: float
    data: bytes
    opacity: float = 1.0


@dataclass(frozen=True)
class SafeArea:
    """Printable region of a letterhead, below its header and above its footer."""

    left: float
    right: float
    top: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def center_x(self) -> float:
        return (self.left + self.right) / 2.0


class Overlay:
    """Everything to be drawn over a template, in drawing order."""

    def __init__(self, fonts: FontPair = DEFAULT_FONTS, safe_area: SafeArea | None = None) -> None:
        self.fonts = fonts
        self.safe_area = safe_area
        self.runs: list[TextRun] = []
        self.rules: list[Rule] = []
        self.images: list[ImagePlacement] = []

    def font(self, bold: bool = False) -> str:
        return self.fonts.bold if bold else self.fonts.regular

    def pages(self) -> set[int]:
        return {op.page for op in (*self.runs, *self.rules, *self.images)}

    def text(
        self,
        x: float,
        y: float,
        value: Any,
        size: float = 10.0,
        bold: bool = False,
        page: int = 0,
        color: RGB = BLACK,
    ) -> bool:
        if is_blank(value):
            return False
        self.runs.append(TextRun(page, x, y, str(value), self.font(bold), size, color))
        return True

    def centered_text(
        self,
        y: float,
        value: Any,
        size: float = 10.0,
        bold: bool = False,
        page: int = 0,
        center_x: float | None = None,
    ) -> float | None:
        """Center *value* on *center_x* (the safe area's middle by default).

        Returns the left x the text starts at, or None when nothing was drawn.
        """
        if is_blank(value):
            return None
        text = str(value)
        if center_x is None:
            if self.safe_area is None:
                raise ValueError("center_x is required when the overlay has no safe area.")
            center_x = self.safe_area.center_x
        width = text_width(text, self.font(bold), size)
        x = center_x - width / 2.0
        if self.safe_area and (x < self.safe_area.left or x + width > self.safe_area.right):
            logger.warning("Text overflow detected at y=%s: %r", y, text)
        self.runs.append(TextRun(page, x, y, text, self.font(bold), size))
        return x

    def line(self, x0: float, y0: float, x1: float, y1: float, thickness: float = 1.0, page: int = 0, color: RGB = BLACK) -> None:
        self.rules.append(Rule(page, x0, y0, x1, y1, thickness, color))

    def dotted_line(
        self,
        x: float,
        y: float,
        length: float,
        page: int = 0,
        dash: float = 2.0,
        step: float = 4.0,
        thickness: float = 0.5,
    ) -> None:
        cursor = x
        while cursor < x + length:
            self.rules.append(Rule(page, cursor, y, cursor + dash, y, thickness))
            cursor += step

    def paragraph(
        self,
        text: str,
        y: float,
        size: float = 10.0,
        line_spacing: float = 15.0,
        justify: bool = True,
        bold: bool = False,
        left: float | None = None,
        max_width: float | None = None,
        page: int = 0,
    ) -> float:
        """Wrap *text* from baseline *y* downwards; returns the next free baseline."""
        if left is None or max_width is None:
            if self.safe_area is None:
                raise ValueError("left and max_width are required when the overlay has no safe area.")
            left = self.safe_area.left if left is None else left
            max_width = self.safe_area.width if max_width is None else max_width
        placed, next_y = layout_paragraph(
            Paragraph(
                text=text,
                font_name=self.font(bold),
                size=size,
                max_width=max_width,
                line_spacing=line_spacing,
                start_y=y,
                left=left,
                justify=justify,
            )
        )
        for item in placed:
            self.runs.append(TextRun(page, item.x, item.y, item.text, self.font(bold), size))
        return next_y

    def image(self, data: bytes | None, x: float, y: float, width: float, page: int = 0, opacity: float = 1.0) -> bool:
        """Place an image scaled to *width*, keeping its aspect ratio.

        Undecodable data is logged and dropped; the rest of the document is
        unaffected.
        """
        if not data:
            return False
        size = image_size(data)
        if size is None:
            return False
        img_w, img_h = size
        height = (img_h / img_w) * width
        self.images.append(ImagePlacement(page, x, y, width, height, data, opacity))
        return True

    def check_bottom(self, y: float) -> None:
        if self.safe_area and y < self.safe_area.bottom:
            logger.warning("Content overflow detected. Final Y: %s, Safe Bottom: %s", y, self.safe_area.bottom)


# ---------------------------------------------------------------------------
# Payload rules
# ---------------------------------------------------------------------------


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def normalize_grade(raw: Any) -> str:
    """Drop a parenthetical qualifier: ``"A (a)"`` becomes ``"A"``.

    Unrecognised grades are still returned; the known-grade check only logs.
    """
    cleaned = _GRADE_QUALIFIER.sub("", str(raw)).strip()
    if cleaned and cleaned not in KNOWN_GRADES:
        logger.info("Grade %r is not in the known grade list; drawing it as given.", cleaned)
    return cleaned


def collect_grade_rows(payload: Mapping[str, Any], block: str, first_row: int = 1) -> list[tuple[str, str]]:
    """(subject, grade) pairs for rows where both halves are filled, in row order."""
    rows: list[tuple[str, str]] = []
    for row in range(first_row, MAX_GRADE_ROWS + 1):
        subject = payload.get(subject_field(block, row))
        grade = payload.get(grade_field(block, row))
        if is_blank(subject) or is_blank(grade):
            continue
        cleaned = normalize_grade(grade)
        if not cleaned:
            continue
        rows.append((str(subject).strip(), cleaned))
    return rows


def _page_in_range(name: str, spec: FieldSpec, page_count: int) -> bool:
    if spec.page >= page_count:
        logger.warning(
            "Field %s references page %d but the template only has %d page(s).",
            name,
            spec.page,
            page_count,
        )
        return False
    return True


def plan_grade_rows(
    payload: Mapping[str, Any],
    field_map: FieldMap,
    block: str,
    page_count: int,
    font_name: str = "Helvetica",
) -> list[TextRun]:
    """Lay out one grade table from the field map.

    The table starts at the first row that has both a subject and a grade
    spec.  Filled rows are drawn one after another at the table's row pitch,
    so empty rows leave no gap and a fully filled table lands on its mapped
    rows.
    """
    mapped_rows = [
        row
        for row in range(1, MAX_GRADE_ROWS + 1)
        if subject_field(block, row) in field_map and grade_field(block, row) in field_map
    ]
    if not mapped_rows:
        return []

    anchor = mapped_rows[0]
    subject_spec = field_map[subject_field(block, anchor)]
    grade_spec = field_map[grade_field(block, anchor)]
    if not _page_in_range(subject_field(block, anchor), subject_spec, page_count):
        return []
    if not _page_in_range(grade_field(block, anchor), grade_spec, page_count):
        return []

    step = row_pitch(field_map, block, mapped_rows)
    runs: list[TextRun] = []
    y = subject_spec.y
    for subject, grade in collect_grade_rows(payload, block, first_row=anchor):
        runs.append(TextRun(subject_spec.page, subject_spec.x, y, subject, font_name, subject_spec.size))
        runs.append(TextRun(grade_spec.page, grade_spec.x, y, grade, font_name, grade_spec.size))
        y -= step
    return runs


def row_pitch(field_map: FieldMap, block: str, mapped_rows: list[int]) -> float:
    """Vertical distance between rows of a grade table.

    Taken from the first two mapped rows of the block; GRADE_ROW_SPACING when
    only one row is mapped or the rows do not step downwards.
    """
    if len(mapped_rows) < 2:
        return GRADE_ROW_SPACING
    first, second = mapped_rows[:2]
    first_spec = field_map[subject_field(block, first)]
    second_spec = field_map[subject_field(block, second)]
    if second_spec.page != first_spec.page:
        return GRADE_ROW_SPACING
    pitch = (first_spec.y - second_spec.y) / (second - first)
    return pitch if pitch > 0 else GRADE_ROW_SPACING


def plan_fields(
    payload: Mapping[str, Any],
    field_map: FieldMap,
    page_count: int,
    font_name: str = "Helvetica",
) -> list[TextRun]:
    runs: list[TextRun] = []
    for key, value in payload.items():
        if _ROW_FIELD.match(key):
            continue
        if is_blank(value):
            logger.debug("Skipping empty field %s", key)
            continue
        spec = field_map.get(key)
        if spec is None:
            logger.debug("Skipping unmapped field %s", key)
            continue
        if isinstance(value, (Mapping, list, tuple)):
            logger.debug("Skipping structured value for field %s", key)
            continue
        if not _page_in_range(key, spec, page_count):
            continue
        runs.append(TextRun(spec.page, spec.x, spec.y, str(value), font_name, spec.size))

    for block in GRADE_BLOCKS:
        runs.extend(plan_grade_rows(payload, field_map, block, page_count, font_name))
    return runs


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def image_size(data: bytes) -> tuple[int, int] | None:
    try:
        width, height = ImageReader(io.BytesIO(data)).getSize()
    except Exception as exc:
        logger.warning("Could not decode image (%d bytes): %s", len(data), exc)
        return None
    if not width or not height:
        logger.warning("Image has no size; skipping it.")
        return None
    return int(width), int(height)


def decode_base64_image(source: str) -> bytes | None:
    encoded = source.split(",", 1)[1] if source.startswith("data:") else source
    # Wrapped base64 carries line breaks.
    encoded = "".join(encoded.split())
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning("Could not decode inline image: %s", exc)
        return None


def load_image(
    source: str | None,
    session: requests.Session | None = None,
    timeout: float = config.IMAGE_FETCH_TIMEOUT,
) -> bytes | None:
    """Fetch image bytes from a data URL, bare base64 or an http(s) URL.

    Returns None, after logging, on any failure.
    """
    if not isinstance(source, str) or not source.strip():
        return None
    source = source.strip()

    if source.startswith("data:"):
        if ";base64," not in source:
            logger.warning("Inline image is not base64 encoded; skipping it.")
            return None
        return decode_base64_image(source)

    if source.startswith(("http://", "https://")):
        return fetch_remote_image(source, session=session, timeout=timeout)

    return decode_base64_image(source)


def fetch_remote_image(
    url: str,
    session: requests.Session | None = None,
    timeout: float = config.IMAGE_FETCH_TIMEOUT,
    max_bytes: int = config.IMAGE_MAX_BYTES,
) -> bytes | None:
    """Download *url* within *timeout* seconds in total and at most *max_bytes*.

    The requests timeout only bounds each connect and read, so the body is
    streamed and the overall deadline checked per chunk.
    """
    get = session.get if session is not None else requests.get
    deadline = time.monotonic() + timeout
    chunks: list[bytes] = []
    received = 0
    try:
        response = get(url, timeout=timeout, stream=True)
        try:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=16 * 1024):
                received += len(chunk)
                if received > max_bytes:
                    logger.warning("Image %s is larger than %d bytes; skipping it.", url, max_bytes)
                    return None
                if time.monotonic() > deadline:
                    logger.warning("Image %s took longer than %ss to download; skipping it.", url, timeout)
                    return None
                chunks.append(chunk)
        finally:
            response.close()
    except requests.RequestException as exc:
        logger.warning("Could not fetch image %s: %s", url, exc)
        return None
    return b"".join(chunks)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def read_template(template_bytes: bytes) -> PdfReader:
    try:
        reader = PdfReader(io.BytesIO(template_bytes))
        page_count = len(reader.pages)
    except (PdfReadError, ValueError) as exc:
        raise InvalidTemplate(f"Template is not a readable PDF: {exc}") from exc
    if page_count == 0:
        raise InvalidTemplate("Template has no pages.")
    return reader


def draw_grid(c: canvas.Canvas, page_w: float, page_h: float, step: float) -> None:
    if step <= 0:
        return
    c.saveState()
    c.setStrokeColor(Color(0.75, 0.75, 0.75, alpha=0.35))
    c.setLineWidth(0.35)
    x = 0.0
    while x <= page_w:
        c.line(x, 0, x, page_h)
        x += step
    y = 0.0
    while y <= page_h:
        c.line(0, y, page_w, y)
        y += step
    c.restoreState()


def draw_anchor(c: canvas.Canvas, x: float, y: float) -> None:
    c.saveState()
    c.setStrokeColor(Color(1, 0, 0, alpha=0.8))
    c.setLineWidth(0.7)
    c.line(x - 6, y, x + 6, y)
    c.line(x, y - 6, x, y + 6)
    c.restoreState()


def draw_overlay_page(
    page_w: float,
    page_h: float,
    overlay: Overlay,
    page_index: int,
    anchors: list[tuple[float, float]] | None = None,
    grid_step: float = 0.0,
) -> bytes:
    packet = io.BytesIO()
    # invariant=1 keeps timestamps and ids out, so equal input gives equal bytes.
    c = canvas.Canvas(packet, pagesize=(page_w, page_h), invariant=1)

    draw_grid(c, page_w, page_h, grid_step)

    for rule in overlay.rules:
        if rule.page != page_index:
            continue
        c.saveState()
        c.setStrokeColor(Color(*rule.color))
        c.setLineWidth(rule.thickness)
        c.line(rule.x0, rule.y0, rule.x1, rule.y1)
        c.restoreState()

    for image in overlay.images:
        if image.page != page_index:
            continue
        c.saveState()
        if image.opacity < 1.0:
            c.setFillAlpha(image.opacity)
        c.drawImage(
            ImageReader(io.BytesIO(image.data)),
            image.x,
            image.y,
            width=image.width,
            height=image.height,
            mask="auto",
        )
        c.restoreState()

    for run in overlay.runs:
        if run.page != page_index:
            continue
        c.setFillColor(Color(*run.color))
        c.setFont(run.font_name, run.size)
        c.drawString(run.x, run.y, run.text)

    for x, y in anchors or []:
        draw_anchor(c, x, y)

    c.showPage()
    c.save()
    packet.seek(0)
    return packet.read()


def render_overlay(
    template_bytes: bytes,
    overlay: Overlay,
    debug_field_map: FieldMap | None = None,
    grid_step: float = 0.0,
) -> bytes:
    return render_pages(read_template(template_bytes), overlay, debug_field_map, grid_step)


def render_pages(
    reader: PdfReader,
    overlay: Overlay,
    debug_field_map: FieldMap | None = None,
    grid_step: float = 0.0,
) -> bytes:
    page_count = len(reader.pages)
    used_pages = overlay.pages()

    for index in sorted(used_pages):
        if index >= page_count:
            logger.warning("Overlay content for page %d dropped; template has %d page(s).", index, page_count)

    writer = PdfWriter()
    for index, page in enumerate(reader.pages):
        anchors = [
            (spec.x, spec.y) for spec in (debug_field_map or {}).values() if spec.page == index
        ]
        if index in used_pages or anchors or grid_step > 0:
            overlay_bytes = draw_overlay_page(
                page_w=float(page.mediabox.width),
                page_h=float(page.mediabox.height),
                overlay=overlay,
                page_index=index,
                anchors=anchors,
                grid_step=grid_step,
            )
            page.merge_page(PdfReader(io.BytesIO(overlay_bytes)).pages[0])
        writer.add_page(page)

    output = io.BytesIO()
    try:
        writer.write(output)
    except Exception as exc:
        raise SerializationFailure(f"Could not write stamped PDF: {exc}") from exc
    return output.getvalue()


def stamp(
    template_bytes: bytes,
    payload: Mapping[str, Any],
    field_map: FieldMap,
    font_name: str = "Helvetica",
    debug: bool = False,
    grid_step: float = 0.0,
) -> bytes:
    """Draw each mapped payload value at its field's coordinates, in black."""
    reader = read_template(template_bytes)
    overlay = Overlay()
    overlay.runs.extend(plan_fields(payload, field_map, len(reader.pages), font_name))
    return render_pages(
        reader,
        overlay,
        debug_field_map=field_map if debug else None,
        grid_step=grid_step,
    )


class DocumentStamper:
    """Template loading, image fetching and rendering with injected collaborators.

    *store* is anything with ``load(name) -> bytes`` that raises
    ``TemplateNotFound`` (see template_store).  *session* is an optional
    requests session used for signature and stamp downloads.
    """

    def __init__(
        self,
        store: Any,
        session: requests.Session | None = None,
        image_timeout: float = config.IMAGE_FETCH_TIMEOUT,
        fonts: FontPair = DEFAULT_FONTS,
    ) -> None:
        self.store = store
        self.session = session
        self.image_timeout = image_timeout
        self.fonts = fonts

    def load_template(self, name: str) -> bytes:
        return self.store.load(name)

    def fetch_image(self, source: str | None) -> bytes | None:
        return load_image(source, session=self.session, timeout=self.image_timeout)

    def stamp_fields(self, template_name: str, payload: Mapping[str, Any], field_map: FieldMap) -> bytes:
        return stamp(self.load_template(template_name), payload, field_map, font_name=self.fonts.regular)

    def render(self, template_name: str, build: Callable[["DocumentStamper"], Overlay]) -> bytes:
        """Load the template, then build the overlay and draw it.

        The template is loaded first so a missing one fails before any image
        is fetched.
        """
        template_bytes = self.load_template(template_name)
        return render_overlay(template_bytes, build(self))


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Stamp payload values onto a template PDF using a field placement table."
    )
    parser.add_argument("--template", required=True, help="Path to the template PDF.")
    parser.add_argument("--fields", help="Path to a field map JSON file.")
    parser.add_argument(
        "--field-map",
        choices=["v1", "v2"],
        help="Use a built-in expected grade field map instead of --fields.",
    )
    parser.add_argument("--data-json", help="Path to JSON file with the payload.")
    parser.add_argument("--output", required=True, help="Output PDF path.")
    parser.add_argument(
        "--placeholder-mode",
        action="store_true",
        help="Fill every mapped field with its own name instead of payload values.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Draw an anchor at every field coordinate for calibration.",
    )
    parser.add_argument(
        "--grid-step",
        type=float,
        default=0.0,
        help="Draw a light calibration grid with this spacing (points). 0 disables grid.",
    )
    parser.add_argument("--font-path", help="Optional TTF font to stamp with instead of Helvetica.")
    return parser.parse_args()


def main() -> None:
    config.configure_logging()
    args = parse_args()

    if bool(args.fields) == bool(args.field_map):
        raise ValueError("Provide exactly one of --fields or --field-map.")
    if args.placeholder_mode and args.data_json:
        raise ValueError("Use either --placeholder-mode or --data-json, not both.")
    if not args.placeholder_mode and not args.data_json:
        raise ValueError("Provide --data-json or use --placeholder-mode.")

    field_map = load_field_map(Path(args.fields)) if args.fields else get_field_map(args.field_map)

    if args.placeholder_mode:
        payload: dict[str, Any] = {name: "{" + name + "}" for name in field_map}
    else:
        payload = json.loads(Path(args.data_json).read_text(encoding="utf-8"))

    registered = register_fonts_from_directory(config.FONTS_DIR)
    if registered:
        print(f"Registered {len(registered)} custom font(s)")
    font_name = resolve_font_name(register_font(Path(args.font_path))) if args.font_path else "Helvetica"

    template_bytes = Path(args.template).read_bytes()
    pdf_bytes = stamp(
        template_bytes,
        payload,
        field_map,
        font_name=font_name,
        debug=args.debug,
        grid_step=args.grid_step,
    )

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(pdf_bytes)
    print(f"Wrote: {output_path}")


if __name__ == "__main__":
    main()
