"""
Runtime configuration for the document stamping service.

Values come from the process environment. `load_dotenv()` runs first so a
local `.env` file can supply them during development.

    TEMPLATES_DIR: directory holding letterhead/form PDFs
    LETTERHEAD_TEMPLATE: background used by every letter
    EXPECTED_GRADE_TEMPLATE_V1: expected grade form, first calibration
    EXPECTED_GRADE_TEMPLATE_V2: expected grade form, second calibration
    FONTS_DIR: optional .ttf/.otf fonts registered at startup
    REGULAR_FONT / BOLD_FONT: the two weights used for all documents
    IMAGE_FETCH_TIMEOUT: seconds allowed for a whole signature/stamp download
    IMAGE_MAX_BYTES: largest signature/stamp download accepted
    SCHOOL_NAME / SCHOOL_LOCATION
    CORS_ORIGINS: comma separated
    LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ROOT_DIR = Path(__file__).resolve().parent

TEMPLATES_DIR = Path(os.environ.get("TEMPLATES_DIR", str(ROOT_DIR / "assets")))
LETTERHEAD_TEMPLATE: str = os.environ.get("LETTERHEAD_TEMPLATE", "expected-grade-letterhead.pdf")
EXPECTED_GRADE_TEMPLATES: dict[str, str] = {
    "v1": os.environ.get("EXPECTED_GRADE_TEMPLATE_V1", "SLISR_EXPECTED_GRADE_TEMPLATE_v1.pdf"),
    "v2": os.environ.get("EXPECTED_GRADE_TEMPLATE_V2", "SLISR_EXPECTED_GRADE_TEMPLATE_v2.pdf"),
}

FONTS_DIR = Path(os.environ.get("FONTS_DIR", str(ROOT_DIR / "fonts")))
REGULAR_FONT: str = os.environ.get("REGULAR_FONT", "Helvetica")
BOLD_FONT: str = os.environ.get("BOLD_FONT", "Helvetica-Bold")

IMAGE_FETCH_TIMEOUT: float = float(os.environ.get("IMAGE_FETCH_TIMEOUT", "10"))
IMAGE_MAX_BYTES: int = int(os.environ.get("IMAGE_MAX_BYTES", str(5 * 1024 * 1024)))

SCHOOL_NAME: str = os.environ.get("SCHOOL_NAME", "Sri Lankan International School")
SCHOOL_LOCATION: str = os.environ.get("SCHOOL_LOCATION", "Riyadh, KSA")

CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
