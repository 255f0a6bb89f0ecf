from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

logger = logging.getLogger(__name__)

_BASE14_FONTS = {
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Symbol",
    "ZapfDingbats",
}


@dataclass(frozen=True)
class FontPair:
    """The two weights every document in this service is set in."""

    regular: str = "Helvetica"
    bold: str = "Helvetica-Bold"


DEFAULT_FONTS = FontPair()


def _normalize_font_name(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


def font_is_available(font_name: str) -> bool:
    if font_name in _BASE14_FONTS:
        return True
    try:
        pdfmetrics.getFont(font_name)
        return True
    except Exception:
        return False


def resolve_font_name(font_name: str, fallback_font: str = "Helvetica") -> str:
    if font_is_available(font_name):
        return font_name

    # Case/spacing-insensitive match against registered fonts.
    normalized = _normalize_font_name(font_name)
    for candidate in list(pdfmetrics.getRegisteredFontNames()) + sorted(_BASE14_FONTS):
        if _normalize_font_name(candidate) == normalized and font_is_available(candidate):
            return candidate

    if font_is_available(fallback_font):
        logger.warning("Font '%s' is unavailable. Falling back to '%s'.", font_name, fallback_font)
        return fallback_font

    logger.warning("Font '%s' is unavailable. Falling back to 'Helvetica'.", font_name)
    return "Helvetica"


def resolve_font_pair(regular: str, bold: str) -> FontPair:
    resolved_regular = resolve_font_name(regular)
    return FontPair(
        regular=resolved_regular,
        bold=resolve_font_name(bold, fallback_font="Helvetica-Bold"),
    )


def register_font(font_path: Path, font_name: str | None = None) -> str:
    name = font_name or font_path.stem
    pdfmetrics.registerFont(TTFont(name, str(font_path)))
    return name


def register_fonts_from_directory(fonts_dir: Path) -> dict[str, str]:
    """Register every .ttf/.otf font in *fonts_dir* under its file stem.

    Returns a dict mapping font names to file paths.  Files that fail to load
    are logged and skipped.
    """
    font_map: dict[str, str] = {}
    if not fonts_dir.exists():
        return font_map

    for pattern in ("*.ttf", "*.otf"):
        for font_file in sorted(fonts_dir.glob(pattern)):
            try:
                font_name = register_font(font_file)
            except Exception as exc:
                logger.warning("Failed to register font %s: %s", font_file.name, exc)
                continue
            font_map[font_name] = str(font_file)
            logger.info("Registered font: %s", font_name)

    return font_map
