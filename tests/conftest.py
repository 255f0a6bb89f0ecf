"""
Pytest configuration and fixtures for the stamping service tests.
"""

import io
import os
import tempfile

import pytest
from PIL import Image
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

# Keep the app away from any real assets folder or .env settings.
os.environ["TEMPLATES_DIR"] = tempfile.mkdtemp(prefix="stamper_test_templates_")
os.environ["FONTS_DIR"] = tempfile.mkdtemp(prefix="stamper_test_fonts_")

import config
from app_server import app, get_stamper
from document_stamper import DocumentStamper
from template_store import LocalTemplateStore


def make_template(pages: int = 1, pagesize=A4) -> bytes:
    """Blank template PDF with the given number of pages."""
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=pagesize, invariant=1)
    for _ in range(pages):
        c.showPage()
    c.save()
    return buffer.getvalue()


def make_png(width: int = 40, height: int = 20) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def template_pdf():
    return make_template()


@pytest.fixture
def two_page_template():
    return make_template(pages=2)


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def templates_dir(tmp_path):
    """A templates folder holding the letterhead and both grade forms."""
    (tmp_path / config.LETTERHEAD_TEMPLATE).write_bytes(make_template())
    for name in config.EXPECTED_GRADE_TEMPLATES.values():
        (tmp_path / name).write_bytes(make_template())
    return tmp_path


@pytest.fixture
def stamper(templates_dir):
    return DocumentStamper(LocalTemplateStore(templates_dir))


@pytest.fixture
def client(stamper):
    """Test client whose routes use the temporary templates folder."""
    from fastapi.testclient import TestClient

    app.dependency_overrides[get_stamper] = lambda: stamper
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def grade_payload():
    return {
        "STUDENT_FULL_NAME": "JANE DOE",
        "UCI_NUMBER": "1234567890123",
        "DOCUMENT_ISSUE_DATE": "19 October 2026",
        "IAS_SESSION_MONTH_YEAR": "June 2026",
        "IAL_SESSION_MONTH_YEAR": "June 2027",
        "GENDER": "female",
        "ORIGINAL_SUBJECT_1": "Mathematics",
        "ORIGINAL_GRADE_1": "A (a)",
        "ORIGINAL_SUBJECT_2": "Physics",
        "ORIGINAL_GRADE_2": "B (b)",
        "PREDICTED_SUBJECT_1": "Mathematics",
        "PREDICTED_GRADE_1": "A*",
    }
