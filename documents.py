"""
The school documents built on the stamping engine.

Each builder turns a request payload into an `Overlay` for the shared
letterhead.  Prose is interpolated here, then wrapped (and justified where the
document calls for it) by the overlay's paragraph layout.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Mapping

import config
from document_stamper import GREY, Overlay, SafeArea, collect_grade_rows
from fonts import DEFAULT_FONTS, FontPair
from text_layout import text_width

logger = logging.getLogger(__name__)

LETTER_AREA = SafeArea(left=70, right=525, top=680, bottom=120)
REFERENCE_AREA = SafeArea(left=70, right=525, top=680, bottom=80)

EXPECTED_GRADE_SIGNATORIES = (
    ("Ruxshan Razak", "Principal"),
    ("S.M.M. Hajath", "Academic & Public Exams Coordinator"),
)

SPORTS_KEYWORDS = (
    "badminton",
    "athletics",
    "football",
    "cricket",
    "basketball",
    "swimming",
    "volleyball",
    "table tennis",
)

BOOKING_TERMS = (
    "The person-in-charge must arrive within 20 minutes of the scheduled start time.",
    "Failure to do so will result in automatic cancellation of the booking.",
    "The facility must be used strictly for its intended purpose.",
    "Any damage to the facility or equipment will be the responsibility of the booking party.",
    "The facility must be vacated immediately at the end of the approved booking time.",
)

ImageFetcher = Callable[[Any], "bytes | None"]


@dataclass(frozen=True)
class Pronouns:
    subject: str
    object: str
    possessive: str

    @property
    def subject_title(self) -> str:
        return self.subject.capitalize()

    @property
    def possessive_title(self) -> str:
        return self.possessive.capitalize()


def pronouns_for(gender: Any) -> Pronouns:
    if str(gender or "").strip().lower() == "female":
        return Pronouns("she", "her", "her")
    return Pronouns("he", "him", "his")


def format_long_date(value: date) -> str:
    """en-GB long form, e.g. ``19 October 2026``."""
    return f"{value.day} {value:%B %Y}"


def _text(payload: Mapping[str, Any], key: str, default: str = "") -> str:
    value = payload.get(key)
    if value is None:
        return default
    return str(value).strip()


# ---------------------------------------------------------------------------
# Expected grade letter
# ---------------------------------------------------------------------------


def build_expected_grade_letter(payload: Mapping[str, Any], fonts: FontPair = DEFAULT_FONTS) -> Overlay:
    overlay = Overlay(fonts, LETTER_AREA)
    area = LETTER_AREA
    size = 11
    line_spacing = 18
    result_spacing = 20

    pronouns = pronouns_for(payload.get("GENDER"))
    student = _text(payload, "STUDENT_FULL_NAME")
    uci = _text(payload, "UCI_NUMBER")
    issue_date = _text(payload, "DOCUMENT_ISSUE_DATE")
    ias_session = _text(payload, "IAS_SESSION_MONTH_YEAR")
    ial_session = _text(payload, "IAL_SESSION_MONTH_YEAR")

    y = area.top
    if issue_date:
        overlay.text(area.left, y, f"{issue_date},", size=size)
    y -= 50

    title = "TO WHOM IT MAY CONCERN"
    title_x = overlay.centered_text(y, title, size=13, bold=True)
    title_width = text_width(title, fonts.bold, 13)
    overlay.line(title_x, y - 2, title_x + title_width, y - 2, thickness=1)
    y -= 35

    overlay.text(
        area.left,
        y,
        f"EXPECTED GRADE SHEET – LONDON EDEXCEL IAL EXAMINATION – {ial_session}",
        size=size,
        bold=True,
    )
    y -= 35

    intro = (
        f"{student}, Unique Candidate Identifier ({uci}) had sat {pronouns.possessive} London Edexcel "
        f"INTERNATIONAL SUBSIDIARY LEVEL (IAS) examination in {ias_session}. "
        f"{pronouns.subject_title} had obtained the following results:"
    )
    y = overlay.paragraph(intro, y, size=size, line_spacing=line_spacing)
    y -= 10

    for subject, grade in collect_grade_rows(payload, "ORIGINAL"):
        overlay.centered_text(y, f"{subject.upper()}    {grade}", size=size, bold=True)
        y -= result_spacing
    y -= 10

    expectation = (
        f"{student} will be sitting {pronouns.possessive} London Edexcel INTERNATIONAL ADVANCED LEVEL (IAL) "
        f"examination which will be held during {ial_session}. Based on {pronouns.possessive} IAS results "
        f"and the performance in the school examination, the respective subject teachers firmly expect "
        f"{pronouns.object} to obtain the following results in the {ial_session} IAL Examination:"
    )
    y = overlay.paragraph(expectation, y, size=size, line_spacing=line_spacing)
    y -= 10

    for subject, grade in collect_grade_rows(payload, "PREDICTED"):
        overlay.centered_text(y, f"{subject.upper()}    {grade}", size=size, bold=True)
        y -= result_spacing
    y -= 20

    footer = (
        f"This letter is issued on {pronouns.possessive} request to be reviewed by Universities "
        f"for admission and scholarship."
    )
    y = overlay.paragraph(footer, y, size=size, line_spacing=line_spacing)
    y -= 85

    signature_line = 120
    columns = (area.left, area.right - 170)
    for x, (name, title_text) in zip(columns, EXPECTED_GRADE_SIGNATORIES):
        overlay.dotted_line(x, y, signature_line)
        overlay.text(x, y - 15, name, size=size)
        overlay.text(x, y - 30, title_text, size=size)

    overlay.check_bottom(y - 30)
    return overlay


def expected_grade_filename(now: datetime | None = None) -> str:
    stamp = int((now or datetime.now()).timestamp() * 1000)
    return f"Expected_Grade_Sheet_{stamp}.pdf"


# ---------------------------------------------------------------------------
# Facility booking confirmation
# ---------------------------------------------------------------------------


def build_booking_confirmation(payload: Mapping[str, Any], fonts: FontPair = DEFAULT_FONTS) -> Overlay:
    overlay = Overlay(fonts, LETTER_AREA)
    area = LETTER_AREA
    size = 10
    leading = 15

    y = 650
    overlay.centered_text(y, "FACILITY BOOKING APPROVAL CONFIRMATION", size=14, bold=True)
    y -= 40

    intro = (
        "This document serves as an official confirmation that the following facility booking request "
        "has been reviewed and approved by the Sports Coordination Department."
    )
    y = overlay.paragraph(intro, y, size=size, line_spacing=leading, justify=False)
    y -= 20

    overlay.text(area.left, y, "Booking Details", size=12, bold=True)
    y -= 20
    details = (
        f"Facility Booked: {_text(payload, 'facility')}",
        f"Date: {_text(payload, 'date')}",
        f"Time: {_text(payload, 'time')}",
        f"Person-in-Charge: {_text(payload, 'person_in_charge')}",
        f"Booking Reference: {_text(payload, 'booking_ref') or 'N/A'}",
    )
    for detail in details:
        overlay.text(area.left, y, detail, size=size)
        y -= leading
    y -= 20

    overlay.text(area.left, y, "Approval Status", size=12, bold=True)
    y -= 20
    y = overlay.paragraph(
        "This booking has been officially approved and confirmed.", y, size=size, line_spacing=leading, justify=False
    )
    y -= 5
    y = overlay.paragraph(
        "The facility has been reserved exclusively for the date and time stated above.",
        y,
        size=size,
        line_spacing=leading,
        justify=False,
    )
    y -= 20

    overlay.text(area.left, y, "Terms & Conditions", size=12, bold=True)
    y -= 20
    for term in BOOKING_TERMS:
        y = overlay.paragraph(term, y, size=size, line_spacing=leading, justify=False)
        y -= 5
    y -= 30

    overlay.text(area.left, y, "Authorization", size=12, bold=True)
    y -= 20
    overlay.text(area.left, y, "Authorized by Sports Coordinator", size=size)
    y -= leading
    overlay.text(
        area.left,
        y,
        "This is a system-generated confirmation document. No physical signature or stamp is required.",
        size=size,
    )

    footer_y = 50
    overlay.text(area.left, footer_y + 24, "Generated automatically by the Facilities Booking System", size=8, color=GREY)
    overlay.text(area.left, footer_y + 12, "This document is valid only for the approved date and time", size=8, color=GREY)
    overlay.text(area.left, footer_y, "A downloaded copy is considered an official confirmation", size=8, color=GREY)
    return overlay


def booking_filename(booking_date: str) -> str:
    """``2026-03-20`` becomes ``Facility_Booking_Confirmation_20-03-2026.pdf``."""
    parts = str(booking_date).split("-")
    formatted = f"{parts[2]}-{parts[1]}-{parts[0]}" if len(parts) == 3 else str(booking_date)
    return f"Facility_Booking_Confirmation_{formatted}.pdf"


# ---------------------------------------------------------------------------
# Recommendation letters
# ---------------------------------------------------------------------------


def apply_markers(text: str, first_name: str, pronouns: Pronouns, name_once: bool = False) -> str:
    """Fill ``[his/her]``, ``[him/her]``, ``[he/she]`` and ``[First Name]`` markers.

    With *name_once* the first ``[First Name]`` becomes the name and later ones
    the capitalised subject pronoun; otherwise all of them become the pronoun.
    """
    formatted = (
        text.replace("[his/her]", pronouns.possessive)
        .replace("[him/her]", pronouns.object)
        .replace("[he/she]", pronouns.subject)
    )
    if name_once and "[First Name]" in formatted:
        head, tail = formatted.split("[First Name]", 1)
        return head + first_name + tail.replace("[First Name]", pronouns.subject_title)
    return formatted.replace("[First Name]", pronouns.subject_title)


def mentioned_sports(achievements: list[Mapping[str, Any]]) -> list[str]:
    descriptions = [str(item.get("description", "")).lower() for item in achievements]
    return [sport for sport in SPORTS_KEYWORDS if any(sport in text for text in descriptions)]


def _referee_block(overlay: Overlay, y: float, payload: Mapping[str, Any], size: float, spacing: float) -> float:
    left = REFERENCE_AREA.left
    overlay.text(left, y, _text(payload, "referee_name"), size=size, bold=True)
    y -= spacing
    overlay.text(left, y, _text(payload, "referee_designation"), size=size)
    y -= spacing
    overlay.text(left, y, config.SCHOOL_NAME, size=size)
    y -= spacing
    overlay.text(left, y, config.SCHOOL_LOCATION, size=size)
    return y


def _letter_heading(
    overlay: Overlay,
    payload: Mapping[str, Any],
    title: str,
    size: float,
    title_size: float,
    spacing: float,
    issued_on: date,
) -> float:
    left = REFERENCE_AREA.left
    y = _referee_block(overlay, REFERENCE_AREA.top, payload, size, spacing)
    y -= spacing * 1.5

    overlay.text(left, y, format_long_date(issued_on), size=size)
    y -= spacing * 1.5

    overlay.text(left, y, "Admission Committee", size=size, bold=True)
    y -= spacing
    overlay.text(left, y, _text(payload, "country"), size=size)
    y -= spacing * 3.5

    overlay.centered_text(y, title, size=title_size, bold=True)
    return y - spacing * 1.5


def build_recommendation_letter(
    payload: Mapping[str, Any],
    fonts: FontPair = DEFAULT_FONTS,
    issued_on: date | None = None,
) -> Overlay:
    overlay = Overlay(fonts, REFERENCE_AREA)
    size = 11
    spacing = 16
    paragraph_gap = 12

    first_name = _text(payload, "first_name")
    last_name = _text(payload, "last_name")
    country = _text(payload, "country")
    pronouns = pronouns_for(payload.get("gender"))

    y = _letter_heading(
        overlay,
        payload,
        f"Reference Letter – {first_name} {last_name}",
        size,
        size + 1,
        spacing,
        issued_on or date.today(),
    )

    opening = (
        f"I am writing this letter to formally recommend {first_name} {last_name}, a student in "
        f"{_text(payload, 'grade')} at {config.SCHOOL_NAME}, {config.SCHOOL_LOCATION.split(',')[0]}, for admission "
        f"to your esteemed institution in {country}. {pronouns.subject_title} has been an exemplary student at our "
        f"school, and it is with great pleasure that I provide this reference based on {pronouns.possessive} "
        f"academic performance and character."
    )
    y = overlay.paragraph(opening, y, size=size, line_spacing=spacing)
    y -= paragraph_gap

    options = [str(option).strip() for option in payload.get("selected_options") or []]
    options += [""] * (3 - len(options))

    first_block = apply_markers(f"{options[0]} {options[1]}".strip(), first_name, pronouns, name_once=True)
    y = overlay.paragraph(first_block, y, size=size, line_spacing=spacing)
    y -= paragraph_gap

    second_raw = options[2]
    additional = _text(payload, "additional_info")
    if additional:
        second_raw = f"{second_raw} {additional}".strip()
    y = overlay.paragraph(apply_markers(second_raw, first_name, pronouns), y, size=size, line_spacing=spacing)
    y -= paragraph_gap

    closing = (
        f"Based on my observation and reports from the teaching staff, I am confident that {first_name} "
        f"will be a valuable asset to your academic community. {pronouns.subject_title} carries our highest "
        f"recommendation for {pronouns.possessive} future endeavors. If you require any further information, "
        f"please do not hesitate to contact me at {_text(payload, 'referee_email')}."
    )
    y = overlay.paragraph(closing, y, size=size, line_spacing=spacing)
    y -= spacing

    if y < 150:
        logger.warning("Signature block may overflow the page at y=%s", y)

    y -= spacing
    overlay.text(REFERENCE_AREA.left, y, "Yours sincerely,", size=size)
    y -= spacing * 2
    _referee_block(overlay, y, payload, size, spacing)
    return overlay


def build_sports_recommendation(
    payload: Mapping[str, Any],
    fonts: FontPair = DEFAULT_FONTS,
    fetch_image: ImageFetcher | None = None,
    issued_on: date | None = None,
) -> Overlay:
    overlay = Overlay(fonts, REFERENCE_AREA)
    left = REFERENCE_AREA.left
    size = 10
    spacing = 16
    paragraph_gap = 12

    first_name = _text(payload, "first_name")
    last_name = _text(payload, "last_name")
    pronouns = pronouns_for(payload.get("gender"))
    achievements = list(payload.get("sports_achievements") or [])

    y = _letter_heading(
        overlay,
        payload,
        f"Recommendation Letter – {first_name} {last_name}",
        size,
        12,
        spacing,
        issued_on or date.today(),
    )

    introduction = (
        f"I am writing this letter in my capacity as the Sports Coordinator at {config.SCHOOL_NAME}, "
        f"{config.SCHOOL_LOCATION.split(',')[0]}, to formally recommend {first_name} {last_name}. Having observed "
        f"{pronouns.possessive} athletic journey over the years, I have seen {pronouns.object} grow into a "
        f"dedicated and highly disciplined individual. {pronouns.subject_title} has been an integral part of our "
        f"school’s sporting community, consistently demonstrating a passion for excellence."
    )
    y = overlay.paragraph(introduction, y, size=size, line_spacing=spacing)
    y -= paragraph_gap

    sports = mentioned_sports(achievements)
    represented = " and ".join(sports) if sports else "various sporting disciplines"
    involvement = (
        f"During {pronouns.possessive} time at the school, {pronouns.subject} has actively represented the "
        f"institution in {represented}, achieving notable success in several competitions. {pronouns.subject_title} "
        f"has participated in numerous tournaments, contributing significantly to the school’s athletic progress."
    )
    y = overlay.paragraph(involvement, y, size=size, line_spacing=spacing)
    y -= paragraph_gap

    statement = _text(payload, "appreciative_statement")
    if not statement and achievements:
        highlights = ", and later ".join(
            f"emerged as the {_text(item, 'description')} in {_text(item, 'month')} {_text(item, 'year')}"
            for item in achievements
        )
        statement = (
            f"Notably, {pronouns.subject} {highlights}. These achievements reflect {pronouns.possessive} hard "
            f"work and the high standards {pronouns.subject} sets for {pronouns.object}self."
        )
    if statement:
        y = overlay.paragraph(statement, y, size=size, line_spacing=spacing)
        y -= paragraph_gap

    character = (
        f"This success is a direct result of {pronouns.possessive} discipline, teamwork, and perseverance. "
        f"{pronouns.subject_title} possesses the resilience required to succeed in competitive environments, and I am "
        f"confident that {pronouns.subject} will be a valuable asset to your university. {pronouns.subject_title} "
        f"carries my highest recommendation for future endeavors. If you require further information, please "
        f"feel free to contact me at {_text(payload, 'referee_email')}."
    )
    y = overlay.paragraph(character, y, size=size, line_spacing=spacing)
    y -= spacing

    overlay.text(left, y, "Yours sincerely,", size=size)
    line_y = y - 45
    overlay.dotted_line(left, line_y, 150)

    if fetch_image is not None:
        overlay.image(fetch_image(payload.get("signature_url")), left + 10, line_y - 12, 90)
        overlay.image(fetch_image(payload.get("principal_signature_url")), left + 60, line_y - 12, 90)
        overlay.image(fetch_image(payload.get("principal_stamp_url")), 335, 90, 120, opacity=0.85)

    y = _referee_block(overlay, line_y - 20, payload, size, spacing)
    overlay.check_bottom(y)
    return overlay


def recommendation_filename(first_name: str, last_name: str, sports: bool = False) -> str:
    kind = "Sports Recommendation" if sports else "Reference Letter"
    name = re.sub(r"[\\/\"\r\n]", "", f"{first_name} {last_name}".strip())
    return f"{kind} - {name}.pdf"
