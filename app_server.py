import json
import logging
from datetime import date
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

import config
from document_errors import FieldMapError, InvalidTemplate, StampingError
from document_stamper import DocumentStamper, stamp
from documents import (
    booking_filename,
    build_booking_confirmation,
    build_expected_grade_letter,
    build_recommendation_letter,
    build_sports_recommendation,
    expected_grade_filename,
    recommendation_filename,
)
from field_maps import field_map_from_dict, get_field_map
from fonts import register_fonts_from_directory, resolve_font_pair
from template_store import LocalTemplateStore

config.configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="School Document Stamping API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_stamper() -> DocumentStamper:
    """The stamper used by every route; tests override this dependency."""
    register_fonts_from_directory(config.FONTS_DIR)
    return DocumentStamper(
        LocalTemplateStore(config.TEMPLATES_DIR),
        image_timeout=config.IMAGE_FETCH_TIMEOUT,
        fonts=resolve_font_pair(config.REGULAR_FONT, config.BOLD_FONT),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "message": "Request validation failed.",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


@app.exception_handler(StampingError)
async def stamping_exception_handler(request: Request, exc: StampingError) -> JSONResponse:
    status_code = 400 if isinstance(exc, FieldMapError) else 500
    logger.error("PDF generation failed for %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"message": "Failed to generate PDF.", "error": str(exc)},
    )


class ApiModel(BaseModel):
    # The web forms post camelCase keys.
    model_config = ConfigDict(populate_by_name=True)


class BookingRequest(ApiModel):
    facility: str
    date: str
    time: str
    person_in_charge: str = Field(alias="personInCharge")
    booking_ref: str | None = Field(default=None, alias="bookingRef")


class RecommendationRequest(ApiModel):
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    gender: str = "male"
    grade: str = ""
    referee_name: str = Field(alias="refereeName")
    referee_designation: str = Field(alias="refereeDesignation")
    referee_email: str = Field(alias="refereeEmail")
    country: str
    selected_options: list[str] = Field(alias="selectedOptions", min_length=3, max_length=3)
    additional_info: str | None = Field(default=None, alias="additionalInfo")


class SportsAchievement(ApiModel):
    description: str
    month: str = ""
    year: str | int = ""


class SportsRecommendationRequest(ApiModel):
    first_name: str = Field(alias="firstName")
    last_name: str = Field(alias="lastName")
    gender: str = "male"
    grade: str = ""
    referee_name: str = Field(alias="refereeName")
    referee_designation: str = Field(alias="refereeDesignation")
    referee_email: str = Field(alias="refereeEmail")
    country: str
    sports_achievements: list[SportsAchievement] = Field(default_factory=list, alias="sportsAchievements")
    appreciative_statement: str | None = Field(default=None, alias="appreciativeStatement")
    signature_url: str | None = Field(default=None, alias="signatureUrl")
    principal_signature_url: str | None = Field(default=None, alias="PRINCIPAL_SIGNATURE_URL")
    principal_stamp_url: str | None = Field(default=None, alias="PRINCIPAL_STAMP_URL")


def pdf_response(pdf_bytes: bytes, filename: str) -> Response:
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/api/generate-expected-grade-pdf")
def generate_expected_grade_pdf(
    payload: dict[str, Any],
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    pdf_bytes = stamper.render(
        config.LETTERHEAD_TEMPLATE,
        lambda s: build_expected_grade_letter(payload, fonts=s.fonts),
    )
    return pdf_response(pdf_bytes, expected_grade_filename())


@app.post("/api/generate-expected-grade-form")
def generate_expected_grade_form(
    payload: dict[str, Any],
    version: str = Query("v2", pattern="^v[12]$"),
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    pdf_bytes = stamper.stamp_fields(config.EXPECTED_GRADE_TEMPLATES[version], payload, get_field_map(version))
    return pdf_response(pdf_bytes, expected_grade_filename())


@app.post("/api/generate-booking-confirmation")
def generate_booking_confirmation(
    request: BookingRequest,
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    payload = request.model_dump()
    pdf_bytes = stamper.render(
        config.LETTERHEAD_TEMPLATE,
        lambda s: build_booking_confirmation(payload, fonts=s.fonts),
    )
    return pdf_response(pdf_bytes, booking_filename(request.date))


@app.post("/api/generate-recommendation-letter")
def generate_recommendation_letter(
    request: RecommendationRequest,
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    payload = request.model_dump()
    pdf_bytes = stamper.render(
        config.LETTERHEAD_TEMPLATE,
        lambda s: build_recommendation_letter(payload, fonts=s.fonts, issued_on=date.today()),
    )
    return pdf_response(pdf_bytes, recommendation_filename(request.first_name, request.last_name))


@app.post("/api/generate-sports-recommendation")
def generate_sports_recommendation(
    request: SportsRecommendationRequest,
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    payload = request.model_dump()
    pdf_bytes = stamper.render(
        config.LETTERHEAD_TEMPLATE,
        lambda s: build_sports_recommendation(
            payload,
            fonts=s.fonts,
            fetch_image=s.fetch_image,
            issued_on=date.today(),
        ),
    )
    return pdf_response(
        pdf_bytes,
        recommendation_filename(request.first_name, request.last_name, sports=True),
    )


def _parse_json_form(raw: str, label: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid JSON in {label}: {exc}") from exc


@app.post("/api/stamp")
def stamp_uploaded_template(
    template: UploadFile = File(...),
    payload_json: str = Form(...),
    fields_json: str = Form(...),
    stamper: DocumentStamper = Depends(get_stamper),
) -> Response:
    payload = _parse_json_form(payload_json, "payload_json")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="payload_json must be a JSON object.")
    field_map = field_map_from_dict(_parse_json_form(fields_json, "fields_json"))

    try:
        pdf_bytes = stamp(template.file.read(), payload, field_map, font_name=stamper.fonts.regular)
    except InvalidTemplate as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return pdf_response(pdf_bytes, "stamped.pdf")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
